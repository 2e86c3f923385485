"""Pull accounts and transactions from the aggregator into the store."""

import datetime
import logging
from typing import Dict, List, Optional

import pandas as pd

from categorize import CATEGORY_NAMES, categorize_transaction
from exceptions import NotFoundError, SyncError
from schemas import AccountCreate, PlaidItem, PlaidItemCreate, TransactionCreate

logger = logging.getLogger(__name__)

LINK_HISTORY_MONTHS = 12
RESYNC_HISTORY_MONTHS = 3

# Plaid personal_finance_category.primary -> our taxonomy
PLAID_CATEGORY_MAP = {
    "INCOME": "Income",
    "FOOD_AND_DRINK": "Food",
    "TRANSPORTATION": "Transportation",
    "TRAVEL": "Travel",
    "GENERAL_MERCHANDISE": "Shopping",
    "HOME_IMPROVEMENT": "Housing",
    "RENT_AND_UTILITIES": "Utilities",
    "MEDICAL": "Healthcare",
    "PERSONAL_CARE": "Healthcare",
    "ENTERTAINMENT": "Entertainment",
}


def _months_before(day: datetime.date, months: int) -> datetime.date:
    return (pd.Timestamp(day) - pd.DateOffset(months=months)).date()


def map_account_type(plaid_account: dict) -> str:
    subtype = str(plaid_account.get("subtype") or "").lower()
    account_type = str(plaid_account.get("type") or "").lower()
    if subtype in ("checking", "savings"):
        return subtype
    if account_type in ("credit", "loan"):
        return "credit"
    if account_type in ("investment", "brokerage"):
        return "investment"
    return "checking"


def to_transaction(plaid_txn: dict, account_id: int) -> TransactionCreate:
    """Convert one Plaid transaction into our record.

    Plaid reports outflows as positive amounts; we store them negative.
    """
    name = plaid_txn.get("name") or "Plaid Transaction"
    merchant = plaid_txn.get("merchant_name") or name.split(" ")[0]

    transaction = TransactionCreate(
        account_id=account_id,
        date=pd.to_datetime(plaid_txn.get("date")).to_pydatetime(),
        description=name,
        amount=-float(plaid_txn.get("amount") or 0),
        merchant=merchant,
        plaid_transaction_id=plaid_txn.get("transaction_id"),
        pending=plaid_txn.get("pending"),
        payment_channel=plaid_txn.get("payment_channel"),
    )

    pf_category = plaid_txn.get("personal_finance_category") or {}
    mapped = PLAID_CATEGORY_MAP.get(str(pf_category.get("primary") or "").upper())
    legacy = (plaid_txn.get("category") or [None])[0]
    if mapped:
        transaction.category = mapped
    elif legacy in CATEGORY_NAMES:
        transaction.category = legacy
    else:
        transaction.category = categorize_transaction(transaction)
    return transaction


def sync_transactions(store, aggregator, item: PlaidItem, start_date, end_date) -> int:
    """
    Import the item's transactions between two dates; returns how many were new.

    Transactions already stored (same Plaid transaction id) are skipped, as
    are transactions for Plaid accounts that have no local account.
    """
    account_map: Dict[str, int] = {
        a.plaid_account_id: a.id
        for a in store.get_accounts()
        if a.plaid_item_id == item.id and a.plaid_account_id
    }
    if not account_map:
        raise SyncError(f"No accounts found for Plaid item {item.item_id}")

    existing_ids = store.get_plaid_transaction_ids()
    new_transactions: List[TransactionCreate] = []

    for plaid_txn in aggregator.fetch_transactions(item.access_token, start_date, end_date):
        account_id = account_map.get(plaid_txn.get("account_id"))
        if account_id is None:
            logger.warning("No matching account found for Plaid account ID: %s", plaid_txn.get("account_id"))
            continue

        plaid_id = plaid_txn.get("transaction_id")
        if plaid_id and plaid_id in existing_ids:
            continue
        if plaid_id:
            existing_ids.add(plaid_id)

        new_transactions.append(to_transaction(plaid_txn, account_id))

    if new_transactions:
        store.create_transactions(new_transactions)
    logger.info("Synced %d new transactions for Plaid item %s", len(new_transactions), item.item_id)
    return len(new_transactions)


def link_institution(
    store,
    aggregator,
    public_token: str,
    institution: str = "Connected Bank",
    today: Optional[datetime.date] = None,
) -> dict:
    """Exchange a Link public token, store the item and its accounts, then import a year of history."""
    today = today or datetime.date.today()
    access_token, item_id = aggregator.exchange_public_token(public_token)

    item = store.get_plaid_item_by_item_id(item_id)
    if item is None:
        item = store.create_plaid_item(
            PlaidItemCreate(item_id=item_id, access_token=access_token, institution=institution)
        )
    else:
        item = store.update_plaid_item(
            item.id, {"access_token": access_token, "last_updated": datetime.datetime.utcnow()}
        )

    known = {a.plaid_account_id for a in store.get_accounts() if a.plaid_item_id == item.id}
    created_accounts = 0
    for plaid_account in aggregator.fetch_accounts(access_token):
        if plaid_account.get("account_id") in known:
            continue
        balances = plaid_account.get("balances") or {}
        store.create_account(
            AccountCreate(
                name=plaid_account.get("name") or "Linked Account",
                type=map_account_type(plaid_account),
                institution=institution,
                balance=float(balances.get("current") or 0),
                account_number=plaid_account.get("mask") or "xxxx",
                plaid_item_id=item.id,
                plaid_account_id=plaid_account.get("account_id"),
                is_plaid_connected=True,
            )
        )
        created_accounts += 1

    imported = sync_transactions(
        store, aggregator, item, _months_before(today, LINK_HISTORY_MONTHS), today
    )
    return {"item": item, "accounts": created_accounts, "transactions": imported}


def _connected_item(store, account_id: int):
    account = store.get_account(account_id)
    if account is None:
        raise NotFoundError("Account", account_id)
    if not account.is_plaid_connected or not account.plaid_item_id:
        raise SyncError("Account is not connected to Plaid")
    item = store.get_plaid_item(account.plaid_item_id)
    if item is None:
        raise NotFoundError("Plaid connection", account.plaid_item_id)
    return account, item


def sync_account(store, aggregator, account_id: int, today: Optional[datetime.date] = None) -> int:
    """Refresh the last three months for a connected account."""
    today = today or datetime.date.today()
    _, item = _connected_item(store, account_id)

    imported = sync_transactions(
        store, aggregator, item, _months_before(today, RESYNC_HISTORY_MONTHS), today
    )
    store.update_account(account_id, {"last_updated": datetime.datetime.utcnow()})
    return imported


def disconnect_account(store, account_id: int) -> None:
    """Detach an account from Plaid; the item goes once no account uses it."""
    account, item = _connected_item(store, account_id)
    related = [a for a in store.get_accounts() if a.plaid_item_id == account.plaid_item_id]

    store.update_account(
        account_id,
        {"is_plaid_connected": False, "plaid_item_id": None, "plaid_account_id": None},
    )
    if len(related) == 1:
        store.delete_plaid_item(item.id)
        logger.info("Removed Plaid item %s with its last account", item.item_id)
