"""
Tabkeeper Backend API

A FastAPI backend for shared event expenses: who owes whom after tax,
gratuity and settlement. This module sets up the app and the ledger store -
all endpoint logic is in routers/, all ledger math in ledger/.
"""

import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import models
from database import engine, SessionLocal
from ledger.settlement import SettlementCheckMode
from ledger.store import LedgerStore
from repository import SqlLedgerRepository, SqlUserDirectory

# Import routers
from routers import events, activities, settlements, users, friends


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
SETTLEMENT_CHECK_MODE = SettlementCheckMode(os.getenv("SETTLEMENT_CHECK_MODE", "payer_entries"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def build_ledger_store(session_factory, settlement_mode: SettlementCheckMode = SETTLEMENT_CHECK_MODE) -> LedgerStore:
    """Create a ledger store over the SQL repository and hydrate it."""
    store = LedgerStore(
        gateway=SqlLedgerRepository(session_factory),
        users=SqlUserDirectory(session_factory),
        settlement_mode=settlement_mode
    )
    store.load()
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    # A store may already be attached (tests, embedding applications)
    if getattr(app.state, "ledger_store", None) is None:
        # Create database tables
        models.Base.metadata.create_all(bind=engine)
        app.state.ledger_store = build_ledger_store(SessionLocal)
        logger.info(f"Ledger store ready (settlement check mode: {SETTLEMENT_CHECK_MODE.value})")
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Tabkeeper API",
    description="API for shared event expenses and settlement",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(events.router)
app.include_router(activities.router)
app.include_router(settlements.router)
app.include_router(users.router)
app.include_router(friends.router)
