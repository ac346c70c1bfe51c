from sqlalchemy import Column, Integer, String, Boolean
from database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    display_name = Column(String)
    phone_number = Column(String, nullable=True)

class UserConnection(Base):
    __tablename__ = "user_connections"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True)
    other_user_id = Column(Integer, index=True)
    connection_type = Column(String) # 'friend' or 'request' (user_id sent to other_user_id)

class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String)
    date = Column(String) # ISO datetime string
    creator_id = Column(Integer, index=True)

class EventParticipant(Base):
    __tablename__ = "event_participants"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, index=True)
    user_id = Column(Integer, index=True)

class Activity(Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, index=True)
    name = Column(String)
    payee_id = Column(Integer)
    is_gratuity_percent = Column(Boolean, default=False)
    gratuity_amount = Column(String, default="0") # Decimal stored as text to stay exact
    add_five_percent_tax = Column(Boolean, default=False)

class ActivityItem(Base):
    __tablename__ = "activity_items"

    id = Column(Integer, primary_key=True, index=True)
    activity_id = Column(Integer, index=True)
    name = Column(String)
    cost = Column(String) # Decimal stored as text
    is_split_evenly = Column(Boolean, default=True)

class ActivityItemPayer(Base):
    __tablename__ = "activity_item_payers"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, index=True)
    activity_id = Column(Integer, index=True) # Denormalized for activity-wide flag updates
    user_id = Column(Integer, index=True)
    amount_owing = Column(String) # Decimal stored as text
    has_paid = Column(Boolean, default=False)
    payment_confirmed = Column(Boolean, default=False)
