"""Pydantic records shared by the parser, analytics, store and API."""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AccountType = Literal["checking", "savings", "credit", "investment"]


def _utcnow() -> datetime:
    return datetime.utcnow()


class InsightType(str, Enum):
    SUBSCRIPTION_OVERLAP = "subscription"
    HIGH_YIELD_SAVINGS = "high-yield"
    SPENDING_ALERT = "spending-alert"


# --- Accounts ---

class AccountCreate(BaseModel):
    name: str
    type: AccountType
    institution: str
    balance: float
    account_number: str
    last_updated: datetime = Field(default_factory=_utcnow)
    plaid_item_id: Optional[int] = None
    plaid_account_id: Optional[str] = None
    is_plaid_connected: bool = False


class AccountUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[AccountType] = None
    institution: Optional[str] = None
    balance: Optional[float] = None
    account_number: Optional[str] = None
    last_updated: Optional[datetime] = None


class Account(AccountCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int


# --- Transactions ---

class TransactionCreate(BaseModel):
    account_id: int
    date: datetime
    description: str
    amount: float
    category: Optional[str] = None
    merchant: str = ""
    plaid_transaction_id: Optional[str] = None
    pending: Optional[bool] = None
    payment_channel: Optional[str] = None


class Transaction(TransactionCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: str


class CategoryCorrection(BaseModel):
    category: str


# --- Categories ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1)
    color: str


class Category(CategoryCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int


# --- Insights ---

class InsightCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    title: str
    description: str
    savings_amount: Optional[float] = None
    type: InsightType
    action_link: Optional[str] = None


class Insight(InsightCreate):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: int
    created_at: datetime


# --- Aggregator items ---

class PlaidItemCreate(BaseModel):
    item_id: str
    access_token: str
    institution: str
    institution_id: Optional[str] = None
    status: str = "active"
    last_updated: datetime = Field(default_factory=_utcnow)


class PlaidItem(PlaidItemCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int


# --- Analytics results ---

class RecurringCharge(BaseModel):
    merchant: str
    category: str
    average_amount: float
    frequency: Literal["weekly", "bi-weekly", "monthly", "quarterly"]


class CsvParseResult(BaseModel):
    transactions: List[TransactionCreate] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
