"""Tests for aggregator linking, re-sync and disconnect."""

from datetime import date

import pytest

import bank_sync
from exceptions import NotFoundError, SyncError
from schemas import AccountCreate, PlaidItemCreate

TODAY = date(2024, 6, 15)


@pytest.fixture
def linked(store, fake_aggregator):
    result = bank_sync.link_institution(
        store, fake_aggregator, "public-sandbox", institution="First Platypus Bank", today=TODAY
    )
    return result


def account_by_plaid_id(store, plaid_account_id):
    return next(a for a in store.get_accounts() if a.plaid_account_id == plaid_account_id)


class TestMapping:
    @pytest.mark.parametrize(
        "plaid_account, expected",
        [
            ({"type": "depository", "subtype": "checking"}, "checking"),
            ({"type": "depository", "subtype": "savings"}, "savings"),
            ({"type": "credit", "subtype": "credit card"}, "credit"),
            ({"type": "loan", "subtype": "mortgage"}, "credit"),
            ({"type": "investment", "subtype": "401k"}, "investment"),
            ({"type": "depository", "subtype": "cd"}, "checking"),
            ({}, "checking"),
        ],
    )
    def test_account_types(self, plaid_account, expected):
        assert bank_sync.map_account_type(plaid_account) == expected

    def test_outflow_becomes_negative(self, plaid_payload):
        _, transactions = plaid_payload

        tx = bank_sync.to_transaction(transactions[0], account_id=3)

        assert tx.amount == -4.33
        assert tx.merchant == "Starbucks"
        assert tx.category == "Food"
        assert tx.plaid_transaction_id == "txn-1"
        assert tx.date.date() == date(2024, 5, 2)

    def test_inflow_without_merchant_name(self, plaid_payload):
        _, transactions = plaid_payload

        tx = bank_sync.to_transaction(transactions[1], account_id=3)

        assert tx.amount == 2500.0
        assert tx.merchant == "ACME"
        assert tx.category == "Income"

    def test_legacy_category_in_taxonomy(self):
        tx = bank_sync.to_transaction(
            {"transaction_id": "t", "date": "2024-01-01", "name": "Delta 123", "amount": 300,
             "category": ["Travel", "Airlines and Aviation Services"]},
            account_id=1,
        )

        assert tx.category == "Travel"

    def test_unmapped_category_falls_back_to_rules(self):
        tx = bank_sync.to_transaction(
            {"transaction_id": "t", "date": "2024-01-01", "name": "Netflix", "amount": 15.99,
             "personal_finance_category": {"primary": "GENERAL_SERVICES"}},
            account_id=1,
        )

        assert tx.category == "Entertainment"


class TestLinkInstitution:
    def test_creates_item_accounts_and_transactions(self, store, fake_aggregator, linked):
        assert linked["accounts"] == 2
        assert linked["transactions"] == 2
        assert linked["item"].item_id == "item-1"
        assert linked["item"].access_token == "access-public-sandbox"

        checking = account_by_plaid_id(store, "acc-checking")
        savings = account_by_plaid_id(store, "acc-savings")
        assert (checking.type, checking.balance, checking.account_number) == ("checking", 110.0, "0000")
        assert (savings.type, savings.balance) == ("savings", 210.0)
        assert checking.is_plaid_connected and checking.plaid_item_id == linked["item"].id
        assert checking.institution == "First Platypus Bank"

    def test_pulls_a_year_of_history(self, fake_aggregator, linked):
        assert fake_aggregator.fetch_calls == [("access-public-sandbox", date(2023, 6, 15), TODAY)]

    def test_unknown_aggregator_accounts_are_skipped(self, store, linked):
        stored = store.get_transactions()

        assert [t.plaid_transaction_id for t in stored] == ["txn-2", "txn-1"]
        assert {t.account_id for t in stored} == {account_by_plaid_id(store, "acc-checking").id}

    def test_relinking_does_not_duplicate(self, store, fake_aggregator, linked):
        again = bank_sync.link_institution(store, fake_aggregator, "public-sandbox", today=TODAY)

        assert again["item"].id == linked["item"].id
        assert again["accounts"] == 0
        assert again["transactions"] == 0
        assert len(store.get_accounts()) == 2
        assert len(store.get_plaid_items()) == 1


class TestSyncAccount:
    def test_resync_imports_only_new_transactions(self, store, fake_aggregator, linked):
        fake_aggregator.transactions.append(
            {"transaction_id": "txn-4", "account_id": "acc-savings", "date": "2024-06-01",
             "name": "Interest payment", "amount": -1.25}
        )
        savings = account_by_plaid_id(store, "acc-savings")

        assert bank_sync.sync_account(store, fake_aggregator, savings.id, today=TODAY) == 1
        assert fake_aggregator.fetch_calls[-1][1] == date(2024, 3, 15)
        assert [t.description for t in store.get_transactions_by_account(savings.id)] == ["Interest payment"]
        assert store.get_account(savings.id).last_updated >= savings.last_updated

    def test_missing_account(self, store, fake_aggregator):
        with pytest.raises(NotFoundError):
            bank_sync.sync_account(store, fake_aggregator, 99)

    def test_manual_account_is_not_connected(self, store, fake_aggregator):
        manual = store.create_account(
            AccountCreate(name="Cash", type="checking", institution="Wallet", balance=20, account_number="0")
        )

        with pytest.raises(SyncError):
            bank_sync.sync_account(store, fake_aggregator, manual.id)

    def test_item_without_accounts(self, store, fake_aggregator):
        item = store.create_plaid_item(
            PlaidItemCreate(item_id="orphan", access_token="access-orphan", institution="Bank")
        )

        with pytest.raises(SyncError):
            bank_sync.sync_transactions(store, fake_aggregator, item, date(2024, 1, 1), TODAY)


class TestDisconnect:
    def test_item_removed_with_last_account(self, store, linked):
        checking = account_by_plaid_id(store, "acc-checking")
        savings = account_by_plaid_id(store, "acc-savings")

        bank_sync.disconnect_account(store, checking.id)

        detached = store.get_account(checking.id)
        assert detached.is_plaid_connected is False
        assert detached.plaid_item_id is None
        assert store.get_plaid_item(linked["item"].id) is not None

        bank_sync.disconnect_account(store, savings.id)

        assert store.get_plaid_items() == []
        # history stays after disconnecting
        assert len(store.get_transactions_by_account(checking.id)) == 2

    def test_disconnecting_twice(self, store, linked):
        checking = account_by_plaid_id(store, "acc-checking")
        bank_sync.disconnect_account(store, checking.id)

        with pytest.raises(SyncError):
            bank_sync.disconnect_account(store, checking.id)
