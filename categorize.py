"""Rule-based transaction categorization.

Categories come from a fixed, ordered rule table. Each rule pairs a
category with the keywords that select it; a transaction gets the category
of the first rule with a keyword occurring anywhere in its lower-cased
``"<description> <merchant>"`` text. Order matters where keywords overlap:
"gas" appears under both Transportation and Utilities and resolves to
Transportation because that rule comes first.

Positive amounts are income and short-circuit to "Income" before any
keyword is consulted. Free-text suggestions (no amount known) skip that
short-circuit.
"""

from __future__ import annotations

from typing import Iterable, List, NamedTuple, Optional, Tuple

INCOME = "Income"
OTHER = "Other"


class CategoryRule(NamedTuple):
    category: str
    keywords: Tuple[str, ...]


CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule("Housing", (
        "rent", "mortgage", "apartment", "home", "property", "loan", "house",
    )),
    CategoryRule("Food", (
        "market", "grocery", "supermarket", "food", "restaurant", "dining", "cafe",
        "coffee", "breakfast", "lunch", "dinner", "meal", "doordash", "uber eats",
        "grubhub", "pizza", "takeout",
    )),
    CategoryRule("Transportation", (
        "gas", "fuel", "uber", "lyft", "taxi", "car", "auto", "vehicle", "maintenance",
        "repair", "oil", "tire", "parking", "transport", "transit", "bus", "train",
        "subway", "metro",
    )),
    CategoryRule("Shopping", (
        "amazon", "walmart", "target", "costco", "shop", "store", "retail", "mall",
        "outlet", "purchase", "buy", "clothes", "clothing", "apparel", "shoes",
        "accessory", "electronics", "appliance", "hardware",
    )),
    CategoryRule("Utilities", (
        "electric", "electricity", "gas", "water", "sewer", "trash", "internet",
        "cable", "phone", "mobile", "cellular", "utility", "bill", "service",
    )),
    CategoryRule("Healthcare", (
        "doctor", "hospital", "medical", "health", "healthcare", "dental", "vision",
        "pharmacy", "prescription", "medicine", "clinic", "emergency", "insurance",
        "fitness", "gym", "wellness",
    )),
    CategoryRule("Entertainment", (
        "movie", "theatre", "theater", "cinema", "concert", "show", "entertainment",
        "music", "spotify", "netflix", "hulu", "disney", "streaming", "subscription",
        "game", "hobby", "fun", "leisure",
    )),
    CategoryRule("Education", (
        "school", "college", "university", "tuition", "education", "course", "class",
        "degree", "student", "book", "textbook", "study", "learning", "training",
        "workshop",
    )),
    CategoryRule("Travel", (
        "hotel", "motel", "lodging", "airbnb", "vacation", "holiday", "trip", "travel",
        "flight", "airline", "airplane", "booking", "reservation", "ticket", "tour",
        "cruise", "resort",
    )),
    # Only reachable through suggest_category; categorize_transaction returns
    # "Income" for positive amounts before the table is scanned.
    CategoryRule(INCOME, (
        "salary", "payroll", "deposit", "income", "revenue", "wage", "payment",
        "compensation", "bonus", "commission", "dividend", "interest", "refund",
        "return", "reimbursement",
    )),
)

# Seed taxonomy with display colors. Names are unique.
DEFAULT_CATEGORIES: Tuple[Tuple[str, str], ...] = (
    ("Housing", "#2196F3"),
    ("Food", "#4CAF50"),
    ("Transportation", "#FFC107"),
    ("Shopping", "#F44336"),
    ("Utilities", "#9C27B0"),
    ("Healthcare", "#009688"),
    ("Entertainment", "#FF9800"),
    ("Travel", "#795548"),
    ("Education", "#607D8B"),
    (INCOME, "#8BC34A"),
    (OTHER, "#78909C"),
)

CATEGORY_NAMES: Tuple[str, ...] = tuple(name for name, _ in DEFAULT_CATEGORIES)


def match_category(text: str, rules: Iterable[CategoryRule] = CATEGORY_RULES) -> Optional[str]:
    """Return the first rule category with a keyword in ``text``, or None."""
    lowered = text.lower()
    for rule in rules:
        if any(keyword in lowered for keyword in rule.keywords):
            return rule.category
    return None


def categorize_transaction(transaction) -> str:
    """
    Categorize a transaction from its description, merchant and amount.

    Args:
        transaction: Any object with ``description``, ``merchant`` and
            ``amount`` attributes (pydantic record or ORM row).

    Returns:
        A category name from the taxonomy; "Other" when nothing matches.
    """
    if float(transaction.amount or 0) > 0:
        return INCOME

    search_text = f"{transaction.description or ''} {transaction.merchant or ''}"
    return match_category(search_text) or OTHER


def categorize_batch(transactions: Iterable) -> List:
    """Fill in categories that are missing or "Other"; other records pass through.

    Records are copied, never mutated, so running the batch twice gives the
    same result as running it once.
    """
    result = []
    for transaction in transactions:
        if not transaction.category or transaction.category == OTHER:
            transaction = transaction.model_copy(
                update={"category": categorize_transaction(transaction)}
            )
        result.append(transaction)
    return result


def suggest_category(description: str) -> str:
    """Suggest a category for free text typed by a user (amount unknown)."""
    return match_category(description or "") or OTHER
