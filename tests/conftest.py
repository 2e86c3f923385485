"""Shared pytest configuration for the project test suite."""
from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import pytest

# The project modules live at the repository root.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from schemas import Account, TransactionCreate  # noqa: E402
from storage import FinanceStore  # noqa: E402


@pytest.fixture
def store() -> FinanceStore:
    """A fresh in-memory database with the default categories seeded."""
    return FinanceStore.from_url("sqlite://")


@pytest.fixture
def make_tx():
    """Factory for transaction records; dates accept ``YYYY-MM-DD`` strings."""

    def _make(date, amount, description="Purchase", merchant=None, category="Other", account_id=1):
        if isinstance(date, str):
            date = datetime.strptime(date, "%Y-%m-%d")
        return TransactionCreate(
            account_id=account_id,
            date=date,
            description=description,
            amount=amount,
            category=category,
            merchant=merchant if merchant is not None else description,
        )

    return _make


@pytest.fixture
def make_account():
    counter = {"id": 0}

    def _make(type="checking", balance=500.0, name=None):
        counter["id"] += 1
        return Account(
            id=counter["id"],
            name=name or f"{type.title()} Account",
            type=type,
            institution="Test Bank",
            balance=balance,
            account_number="1234",
        )

    return _make


class FakeAggregator:
    """Stands in for PlaidAggregator with canned Plaid-shaped payloads."""

    def __init__(self, accounts=None, transactions=None, item_id="item-1"):
        self.accounts = accounts or []
        self.transactions = transactions or []
        self.item_id = item_id
        self.fetch_calls = []

    def create_link_token(self, user_id):
        return f"link-sandbox-{user_id}"

    def exchange_public_token(self, public_token):
        return f"access-{public_token}", self.item_id

    def fetch_accounts(self, access_token):
        return list(self.accounts)

    def fetch_transactions(self, access_token, start_date, end_date=None):
        self.fetch_calls.append((access_token, start_date, end_date))
        return list(self.transactions)


@pytest.fixture
def plaid_payload():
    accounts = [
        {
            "account_id": "acc-checking",
            "name": "Plaid Checking",
            "type": "depository",
            "subtype": "checking",
            "mask": "0000",
            "balances": {"current": 110.0},
        },
        {
            "account_id": "acc-savings",
            "name": "Plaid Saving",
            "type": "depository",
            "subtype": "savings",
            "mask": "1111",
            "balances": {"current": 210.0},
        },
    ]
    transactions = [
        {
            "transaction_id": "txn-1",
            "account_id": "acc-checking",
            "date": "2024-05-02",
            "name": "Starbucks Coffee 1234",
            "merchant_name": "Starbucks",
            "amount": 4.33,
            "personal_finance_category": {"primary": "FOOD_AND_DRINK"},
            "pending": False,
            "payment_channel": "in store",
        },
        {
            "transaction_id": "txn-2",
            "account_id": "acc-checking",
            "date": "2024-05-15",
            "name": "ACME PAYROLL",
            "merchant_name": None,
            "amount": -2500.0,
            "pending": False,
            "payment_channel": "other",
        },
        {
            "transaction_id": "txn-3",
            "account_id": "acc-unknown",
            "date": "2024-05-20",
            "name": "Mystery Charge",
            "amount": 10.0,
        },
    ]
    return accounts, transactions


@pytest.fixture
def fake_aggregator(plaid_payload):
    accounts, transactions = plaid_payload
    return FakeAggregator(accounts=accounts, transactions=transactions)
