import logging
import math
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from categorize import INCOME, OTHER
from schemas import InsightCreate, InsightType, RecurringCharge

logger = logging.getLogger(__name__)

SUBSCRIPTION_KEYWORDS = (
    "netflix", "hulu", "disney+", "hbo", "spotify", "apple music",
    "youtube", "amazon prime", "paramount", "peacock",
)
MIN_OVERLAPPING_SERVICES = 3
CONSOLIDATION_SAVINGS_RATE = 0.4

SAVINGS_BALANCE_FLOOR = 1000
CURRENT_SAVINGS_RATE = 0.01
HIGH_YIELD_RATE = 0.035
MIN_EXTRA_INTEREST = 20

MIN_PREVIOUS_SPEND = 50
MIN_INCREASE_PERCENT = 20
MIN_INCREASE_AMOUNT = 50
BUDGET_SAVINGS_RATE = 0.7
MAX_SPENDING_ALERTS = 3

MIN_RECURRING_AMOUNT = 5

# (label, min average gap in days, max average gap in days), checked in order
FREQUENCY_WINDOWS = (
    ("monthly", 25, 35),
    ("weekly", 6, 8),
    ("bi-weekly", 13, 16),
    ("quarterly", 85, 95),
)

ACTION_LINKS = {
    InsightType.SUBSCRIPTION_OVERLAP: "/insights/subscriptions",
    InsightType.HIGH_YIELD_SAVINGS: "/insights/savings",
    InsightType.SPENDING_ALERT: "/budgets/new",
}

TRANSACTION_COLUMNS = ["Date", "Description", "Merchant", "Amount", "Category"]


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a receipt does: halves go up (2.5 -> 3, -2.5 -> -2)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def transactions_to_df(transactions: Iterable) -> pd.DataFrame:
    """Build the analysis frame from transaction records (pydantic or ORM)."""
    rows = [
        {
            "Date": t.date,
            "Description": t.description or "",
            "Merchant": t.merchant or "",
            "Amount": float(t.amount),
            "Category": t.category or OTHER,
        }
        for t in transactions
    ]
    if not rows:
        return pd.DataFrame(columns=TRANSACTION_COLUMNS)

    df = pd.DataFrame(rows, columns=TRANSACTION_COLUMNS)
    df["Date"] = pd.to_datetime(df["Date"])
    return df


# --- Recurring charges ---

def classify_frequency(avg_days_between: float) -> Optional[str]:
    for label, low, high in FREQUENCY_WINDOWS:
        if low <= avg_days_between <= high:
            return label
    return None


def find_recurring_transactions(
    transactions: Sequence,
    timeframe_months: Optional[int] = None,
) -> List[RecurringCharge]:
    """
    Detect bills and subscriptions from the spacing of repeat charges.

    Expenses of at least $5 are grouped by merchant (case-insensitive). A
    merchant charged two or more times whose average gap between charges
    falls into a weekly, bi-weekly, monthly or quarterly window is reported
    with its average charge. The whole history is analyzed unless
    ``timeframe_months`` is given, in which case only that many months
    (counted back from the newest transaction) are considered.

    Returns:
        Recurring charges, largest average amount first.
    """
    df = transactions_to_df(transactions)
    if df.empty:
        return []

    if timeframe_months:
        cutoff = df["Date"].max() - pd.DateOffset(months=timeframe_months)
        df = df[df["Date"] >= cutoff]

    expenses = df[(df["Amount"] < 0) & (df["Amount"].abs() >= MIN_RECURRING_AMOUNT)].copy()
    if expenses.empty:
        return []

    expenses["MerchantKey"] = expenses["Merchant"].str.lower()
    expenses["AbsAmount"] = expenses["Amount"].abs()

    recurring = []
    for merchant, group in expenses.groupby("MerchantKey", sort=False):
        if len(group) < 2:
            continue

        dates = group["Date"].sort_values()
        gaps = [round_half_up(gap.total_seconds() / 86400) for gap in dates.diff().iloc[1:]]
        frequency = classify_frequency(sum(gaps) / len(gaps))
        if frequency is None:
            continue

        recurring.append(
            RecurringCharge(
                merchant=merchant[:1].upper() + merchant[1:],
                category=group["Category"].iloc[0],
                average_amount=round_half_up(group["AbsAmount"].mean(), 2),
                frequency=frequency,
            )
        )

    return sorted(recurring, key=lambda r: r.average_amount, reverse=True)


# --- Insights ---

def generate_insights(transactions: Sequence, accounts: Sequence) -> List[InsightCreate]:
    """
    Produce savings recommendations from transaction and account history.

    Subscription overlap comes first, then the high-yield savings
    opportunity, then up to three category spending alerts. Nothing is
    generated unless both transactions and accounts are present.
    """
    if not transactions or not accounts:
        return []

    df = transactions_to_df(transactions)

    insights: List[InsightCreate] = []
    insights.extend(find_subscription_overlaps(df))
    insights.extend(find_high_yield_savings_opportunities(accounts))
    insights.extend(find_spending_increases(df))

    logger.info("Generated %d insights from %d transactions", len(insights), len(df))
    return insights


def find_subscription_overlaps(df: pd.DataFrame) -> List[InsightCreate]:
    """Flag three or more streaming services being paid for at once."""
    services: List[str] = []
    total_amount = 0.0

    for row in df.itertuples(index=False):
        text = f"{row.Description.lower()} {row.Merchant.lower()}"
        service = next((k for k in SUBSCRIPTION_KEYWORDS if k in text), None)
        if service is None:
            continue
        if service not in services:
            services.append(service)
        total_amount += abs(row.Amount)

    if len(services) < MIN_OVERLAPPING_SERVICES:
        return []

    monthly_savings = int(round_half_up(total_amount * CONSOLIDATION_SAVINGS_RATE))
    named = ", ".join(services[:MIN_OVERLAPPING_SERVICES])
    return [
        InsightCreate(
            title="Subscription Overlap Detected",
            description=(
                f"You have multiple streaming subscriptions ({named}). "
                f"Consider consolidating to save ${monthly_savings}/month."
            ),
            savings_amount=float(monthly_savings),
            type=InsightType.SUBSCRIPTION_OVERLAP,
            action_link=ACTION_LINKS[InsightType.SUBSCRIPTION_OVERLAP],
        )
    ]


def find_high_yield_savings_opportunities(accounts: Sequence) -> List[InsightCreate]:
    """Estimate the extra yearly interest from moving savings to a high-yield account."""
    balances = [
        float(a.balance)
        for a in accounts
        if (a.type or "").lower() == "savings" and float(a.balance) > SAVINGS_BALANCE_FLOOR
    ]
    if not balances:
        return []

    total_savings = sum(balances)
    current_interest = total_savings * CURRENT_SAVINGS_RATE
    potential_interest = total_savings * HIGH_YIELD_RATE
    additional_interest = int(round_half_up(potential_interest - current_interest))

    if additional_interest <= MIN_EXTRA_INTEREST:
        return []

    return [
        InsightCreate(
            title="High-Yield Savings Opportunity",
            description=(
                "Moving your savings to an online bank could earn you an extra "
                f"${additional_interest}/year in interest."
            ),
            savings_amount=float(additional_interest),
            type=InsightType.HIGH_YIELD_SAVINGS,
            action_link=ACTION_LINKS[InsightType.HIGH_YIELD_SAVINGS],
        )
    ]


def find_spending_increases(df: pd.DataFrame) -> List[InsightCreate]:
    """Compare the latest month's category spend with the month before it."""
    expenses = df[df["Amount"] < 0].copy()
    if expenses.empty:
        return []

    expenses["Period"] = expenses["Date"].dt.to_period("M")
    spend = expenses.groupby(["Period", "Category"])["Amount"].sum().abs()

    periods = sorted(expenses["Period"].unique())
    if len(periods) < 2:
        return []

    current = spend.xs(periods[-1], level="Period")
    previous = spend.xs(periods[-2], level="Period")

    alerts = []
    for category, amount in current.items():
        if category in (INCOME, OTHER):
            continue
        previous_amount = float(previous.get(category, 0.0))
        if previous_amount <= MIN_PREVIOUS_SPEND:
            continue

        increase_percent = int(round_half_up((amount - previous_amount) / previous_amount * 100))
        absolute_increase = int(round_half_up(amount - previous_amount))
        if increase_percent < MIN_INCREASE_PERCENT or absolute_increase < MIN_INCREASE_AMOUNT:
            continue

        potential_savings = int(round_half_up(absolute_increase * BUDGET_SAVINGS_RATE))
        alerts.append(
            InsightCreate(
                title=f"{category} Spending Increased",
                description=(
                    f"Your {category.lower()} spending is up {increase_percent}% from last month. "
                    f"Setting a budget could save you ${potential_savings}/month."
                ),
                savings_amount=float(potential_savings),
                type=InsightType.SPENDING_ALERT,
                action_link=ACTION_LINKS[InsightType.SPENDING_ALERT],
            )
        )

    alerts.sort(key=lambda insight: insight.savings_amount, reverse=True)
    return alerts[:MAX_SPENDING_ALERTS]
