from datetime import datetime

from sqlalchemy import create_engine, Column, Integer, String, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

Base = declarative_base()

# --- Models ---

class PlaidItem(Base):
    __tablename__ = "plaid_items"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(String, unique=True, index=True, nullable=False)
    access_token = Column(String, nullable=False)
    institution = Column(String, nullable=False)
    institution_id = Column(String, nullable=True)
    status = Column(String, default="active")
    last_updated = Column(DateTime, default=datetime.utcnow)

class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)             # checking, savings, credit, investment
    institution = Column(String, nullable=False)
    balance = Column(Float, nullable=False, default=0.0)
    account_number = Column(String, nullable=False)   # display mask only
    last_updated = Column(DateTime, default=datetime.utcnow)

    # Aggregator link
    plaid_item_id = Column(Integer, ForeignKey("plaid_items.id"), nullable=True)
    plaid_account_id = Column(String, nullable=True)
    is_plaid_connected = Column(Boolean, default=False)

class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    # Referential only; deleting an account leaves its transactions in place
    account_id = Column(Integer, index=True, nullable=False)
    date = Column(DateTime, nullable=False)
    description = Column(String, nullable=False)
    amount = Column(Float, nullable=False)            # negative = expense
    category = Column(String, nullable=False, default="Other")
    merchant = Column(String, nullable=False, default="")

    # Metadata
    plaid_transaction_id = Column(String, unique=True, nullable=True)
    pending = Column(Boolean, nullable=True)
    payment_channel = Column(String, nullable=True)

class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    color = Column(String, nullable=False)

class Insight(Base):
    __tablename__ = "insights"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)
    savings_amount = Column(Float, nullable=True)
    type = Column(String, nullable=False)             # subscription, high-yield, spending-alert
    action_link = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

# --- Engine / sessions ---
def make_engine(db_url: str):
    """Create an engine; SQLite URLs get the thread and in-memory settings they need."""
    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in db_url or db_url in ("sqlite://", "sqlite:///"):
            # A single shared connection keeps an in-memory database alive
            kwargs["poolclass"] = StaticPool
        return create_engine(db_url, **kwargs)
    return create_engine(db_url)

def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

def create_tables(engine):
    Base.metadata.create_all(bind=engine)
