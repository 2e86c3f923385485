# dashboard.py: headline numbers for the dashboard page

from datetime import date
from typing import Optional, Sequence

import pandas as pd

from insights import transactions_to_df

TREND_MONTHS = 6


def _prep(df):
    """
    Prepares the dataframe for dashboarding.
    """
    df = df.copy()
    df['Date'] = pd.to_datetime(df['Date'])
    df['Month'] = df['Date'].dt.to_period('M')

    # Ensure Amount is numeric
    df['Amount'] = pd.to_numeric(df['Amount'], errors='coerce').fillna(0)

    # Helper columns
    df['IsExpense'] = df['Amount'] < 0
    df['AbsExpense'] = df['Amount'].where(df['Amount'] < 0, 0).abs()
    df['Income'] = df['Amount'].where(df['Amount'] > 0, 0)
    return df


def compute_dashboard_statistics(
    accounts: Sequence,
    transactions: Sequence,
    categories: Sequence,
    today: Optional[date] = None,
) -> dict:
    """
    Balance, this month's income and spending, spending by category and a
    six-month income/spending trend (oldest month first).
    """
    today = today or date.today()
    current_month = pd.Period(today, freq='M')

    df = _prep(transactions_to_df(transactions))
    month_df = df[df['Month'] == current_month]

    by_cat = month_df[month_df['IsExpense']].groupby('Category')['AbsExpense'].sum()
    spending_by_category = [
        {"category": c.name, "amount": float(by_cat.get(c.name, 0.0)), "color": c.color}
        for c in categories
        if by_cat.get(c.name, 0.0) > 0
    ]

    monthly = df.groupby('Month').agg(income=('Income', 'sum'), spending=('AbsExpense', 'sum'))
    trends = []
    for offset in range(TREND_MONTHS - 1, -1, -1):
        period = current_month - offset
        row = monthly.loc[period] if period in monthly.index else None
        trends.append({
            "month": period.strftime('%B'),
            "income": float(row['income']) if row is not None else 0.0,
            "spending": float(row['spending']) if row is not None else 0.0,
        })

    return {
        "total_balance": float(sum(float(a.balance) for a in accounts)),
        "monthly_income": float(month_df['Income'].sum()),
        "monthly_spending": float(month_df['AbsExpense'].sum()),
        "spending_by_category": spending_by_category,
        "trends": trends,
    }
