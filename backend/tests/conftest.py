import pytest
from datetime import datetime
from decimal import Decimal
from fastapi.testclient import TestClient

from main import app
from database import Base, get_db, make_engine, make_session_factory
from models import User
from auth import create_access_token
from ledger.entities import Activity, ActivityItem, ActivityItemPayer, Event
from ledger.store import LedgerStore
from repository import SqlLedgerRepository, SqlUserDirectory

# Setup in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = make_engine(SQLALCHEMY_DATABASE_URL)
TestingSessionLocal = make_session_factory(engine)


# Plain builders for the pure ledger tests

def make_item(item_id, activity_id, cost, payers, name=None, is_split_evenly=False):
    """payers: {user_id: amount} with amounts as strings or Decimals"""
    return ActivityItem(
        id=item_id,
        activity_id=activity_id,
        name=name or f"Item {item_id}",
        cost=Decimal(str(cost)),
        is_split_evenly=is_split_evenly,
        payers=[ActivityItemPayer(payer_id=uid, amount_owing=Decimal(str(amount))) for uid, amount in payers.items()]
    )


def make_activity(activity_id, payee_id, items, gratuity="0", percent=True, tax=False, event_id=1):
    return Activity(
        id=activity_id,
        event_id=event_id,
        name=f"Activity {activity_id}",
        payee_id=payee_id,
        is_gratuity_percent=percent,
        gratuity_amount=Decimal(str(gratuity)),
        add_five_percent_tax=tax,
        items=items
    )


def make_event(creator_id, participant_ids, activities, event_id=1):
    return Event(
        id=event_id,
        name="Trip",
        date=datetime(2025, 10, 1, 18, 0),
        creator_id=creator_id,
        participant_ids=list(participant_ids),
        activities=activities
    )


def create_user(db, email: str, name: str) -> User:
    user = User(email=email, display_name=name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_auth_headers(user) -> dict:
    access_token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def users(db_session):
    """Four registered users keyed by first name."""
    return {
        "alice": create_user(db_session, "alice@example.com", "Alice"),
        "bob": create_user(db_session, "bob@example.com", "Bob"),
        "carol": create_user(db_session, "carol@example.com", "Carol"),
        "dave": create_user(db_session, "dave@example.com", "Dave"),
    }


@pytest.fixture
def repository(db_session):
    return SqlLedgerRepository(TestingSessionLocal)


@pytest.fixture
def store(db_session, repository):
    """Ledger store over the test database."""
    ledger_store = LedgerStore(gateway=repository, users=SqlUserDirectory(TestingSessionLocal))
    ledger_store.load()
    return ledger_store


@pytest.fixture(scope="function")
def client(db_session, store):
    """Create a FastAPI TestClient bound to the test ledger store and database."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.ledger_store = store
    with TestClient(app) as c:
        yield c
    app.state.ledger_store = None
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def auth_headers(users):
    """Authorization headers per user, keyed like the users fixture."""
    return {name: create_auth_headers(user) for name, user in users.items()}
