"""Tests for keyword categorization."""

from types import SimpleNamespace

import pytest

from categorize import (
    CATEGORY_NAMES,
    CATEGORY_RULES,
    DEFAULT_CATEGORIES,
    categorize_batch,
    categorize_transaction,
    suggest_category,
)


def txn(description, amount=-10.0, merchant=""):
    return SimpleNamespace(description=description, merchant=merchant, amount=amount)


class TestCategorizeTransaction:
    @pytest.mark.parametrize(
        "description, expected",
        [
            ("Monthly rent", "Housing"),
            ("Whole Foods Market", "Food"),
            ("Uber ride home", "Housing"),
            ("Lyft ride", "Transportation"),
            ("Walmart Supercenter", "Shopping"),
            ("Electric bill", "Utilities"),
            ("CVS Pharmacy", "Healthcare"),
            ("Netflix", "Entertainment"),
            ("State University tuition", "Education"),
            ("Hilton hotel stay", "Travel"),
            ("xyzzy", "Other"),
        ],
    )
    def test_keyword_rules(self, description, expected):
        assert categorize_transaction(txn(description)) == expected

    def test_positive_amount_is_always_income(self):
        assert categorize_transaction(txn("anything", amount=50, merchant="anything")) == "Income"
        assert categorize_transaction(txn("Netflix", amount=0.01)) == "Income"

    def test_zero_amount_is_not_income(self):
        assert categorize_transaction(txn("xyzzy", amount=0)) == "Other"

    def test_merchant_text_is_searched(self):
        assert categorize_transaction(txn("POS 88812", merchant="Spotify")) == "Entertainment"

    def test_gas_resolves_to_transportation(self):
        # "gas" is listed under both Transportation and Utilities
        assert categorize_transaction(txn("City gas")) == "Transportation"

    def test_case_insensitive(self):
        assert categorize_transaction(txn("NETFLIX.COM")) == "Entertainment"

    def test_missing_text_fields(self):
        assert categorize_transaction(SimpleNamespace(description=None, merchant=None, amount=-5)) == "Other"


class TestRuleTable:
    def test_rule_order_is_fixed(self):
        assert [rule.category for rule in CATEGORY_RULES] == [
            "Housing", "Food", "Transportation", "Shopping", "Utilities",
            "Healthcare", "Entertainment", "Education", "Travel", "Income",
        ]

    def test_rule_table_is_immutable(self):
        assert isinstance(CATEGORY_RULES, tuple)
        assert all(isinstance(rule.keywords, tuple) for rule in CATEGORY_RULES)

    def test_default_taxonomy_names_are_unique(self):
        assert len(set(CATEGORY_NAMES)) == len(DEFAULT_CATEGORIES) == 11
        assert "Other" in CATEGORY_NAMES


class TestBatchAndSuggest:
    def test_batch_fills_missing_and_other_only(self, make_tx):
        records = [
            make_tx("2024-01-01", -15.99, "Netflix", category="Other"),
            make_tx("2024-01-02", -40.0, "Shell gas", category=None),
            make_tx("2024-01-03", -9.0, "Netflix", category="Shopping"),
        ]

        result = categorize_batch(records)

        assert [t.category for t in result] == ["Entertainment", "Transportation", "Shopping"]

    def test_batch_does_not_mutate_inputs(self, make_tx):
        record = make_tx("2024-01-01", -15.99, "Netflix", category="Other")

        categorize_batch([record])

        assert record.category == "Other"

    def test_batch_is_idempotent(self, make_tx):
        records = [make_tx("2024-01-01", -15.99, "Netflix", category=None)]

        once = categorize_batch(records)
        twice = categorize_batch(once)

        assert [t.category for t in once] == [t.category for t in twice]

    def test_suggest_skips_income_shortcut(self):
        assert suggest_category("Monthly salary deposit") == "Income"
        assert suggest_category("Spotify family plan") == "Entertainment"
        assert suggest_category("") == "Other"
