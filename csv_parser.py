"""
csv_parser.py
-------------
Turn exported bank CSV text into transaction records, and back.

Two header layouts are understood:

* standard: ``date,description,amount[,category][,merchant]``
* bank:     ``date,description,debit,credit[,balance]``

Header names are matched case-insensitively. Bad rows never stop the
import; each one is reported as ``"Error on line N: <reason>"`` and the
remaining rows are still parsed.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

import pandas as pd

from categorize import OTHER, categorize_transaction
from schemas import CsvParseResult, TransactionCreate

logger = logging.getLogger(__name__)

STANDARD_FORMAT = "standard"
BANK_FORMAT = "bank"

UNSUPPORTED_FORMAT_ERROR = (
    "Unsupported CSV format. Expected columns: date, description, amount (or debit/credit)"
)
EXPORT_HEADER = "Date,Description,Amount,Category,Merchant"

LINE_SPLIT = re.compile(r"\r?\n")
DATE_PART_SPLIT = re.compile(r"[/\-.]")
# pandas reads "now" and "today" as dates; a real date always has digits
HAS_DIGIT = re.compile(r"\d")


class RowError(ValueError):
    """A single CSV row could not be turned into a transaction."""


def parse_transaction_csv(csv_text: str, account_id: int) -> CsvParseResult:
    """
    Parse CSV text into transactions for ``account_id``.

    Returns a result holding every transaction that parsed and one message
    per rejected row. An unrecognized header produces a single format error
    and no transactions.
    """
    result = CsvParseResult()

    lines = LINE_SPLIT.split(csv_text or "")
    headers = [h.strip() for h in lines[0].lower().split(",")]

    csv_format = detect_csv_format(headers)
    if csv_format is None:
        result.errors.append(UNSUPPORTED_FORMAT_ERROR)
        return result

    for index in range(1, len(lines)):
        line = lines[index].strip()
        if not line:
            continue
        try:
            result.transactions.append(_parse_line(line, headers, csv_format, account_id))
        except RowError as exc:
            logger.debug("Rejected CSV line %d: %s", index + 1, exc)
            result.errors.append(f"Error on line {index + 1}: {exc}")

    logger.info(
        "Parsed %d transactions (%s format) with %d errors",
        len(result.transactions), csv_format, len(result.errors),
    )
    return result


def detect_csv_format(headers: List[str]) -> Optional[str]:
    if "date" in headers and "description" in headers:
        if "amount" in headers:
            return STANDARD_FORMAT
        if "debit" in headers or "credit" in headers:
            return BANK_FORMAT
    return None


def split_csv_values(line: str) -> List[str]:
    """Split one CSV line on commas outside double quotes; fields are trimmed."""
    values = []
    current = []
    inside_quotes = False

    for char in line:
        if char == '"':
            inside_quotes = not inside_quotes
        elif char == "," and not inside_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    values.append("".join(current).strip())
    return values


def _parse_line(line: str, headers: List[str], csv_format: str, account_id: int) -> TransactionCreate:
    values = split_csv_values(line)
    if len(values) < len(headers):
        raise RowError(f"Line has {len(values)} values but expected {len(headers)}")

    row: Dict[str, str] = dict(zip(headers, values))

    raw_date = row.get("date", "")
    if not raw_date:
        raise RowError("Missing date")
    parsed_date = parse_date(raw_date)
    if parsed_date is None:
        raise RowError(f"Invalid date: {raw_date}")

    description = row.get("description") or "Unknown"

    if csv_format == STANDARD_FORMAT:
        amount = parse_amount(row.get("amount"))
        if amount is None:
            raise RowError(f"Invalid amount: {row.get('amount', '')}")
    else:
        amount = _bank_amount(row.get("debit"), row.get("credit"))

    transaction = TransactionCreate(
        account_id=account_id,
        date=parsed_date,
        description=description,
        amount=amount,
        category=row.get("category") or None,
        merchant=row.get("merchant") or extract_merchant(description),
    )
    if not transaction.category:
        transaction.category = categorize_transaction(transaction)
    return transaction


def _bank_amount(raw_debit: Optional[str], raw_credit: Optional[str]) -> float:
    # Debit is money leaving the account, so it becomes a negative amount
    debit = parse_amount(raw_debit) or 0.0
    credit = parse_amount(raw_credit) or 0.0
    if debit > 0:
        return -debit
    if credit > 0:
        return credit
    raise RowError("Missing or invalid debit/credit values")


def parse_amount(raw: Optional[str]) -> Optional[float]:
    """Parse ``"-1,234.50"``, ``"$12"`` or ``"(40.00)"``; None when not numeric."""
    if raw is None:
        return None
    token = raw.strip().replace("$", "").replace(",", "")
    negative = token.startswith("(") and token.endswith(")")
    if negative:
        token = token[1:-1]
    try:
        value = float(token)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return -value if negative else value


def parse_date(raw: str) -> Optional[datetime]:
    """
    Parse a date in whatever layout the bank used.

    A direct parse is tried first. Failing that the value is split into three
    parts and read as month/day/year, then as day/month/year.
    """
    if not HAS_DIGIT.search(raw):
        return None

    parsed = _to_datetime(raw)
    if parsed is not None:
        return parsed

    parts = DATE_PART_SPLIT.split(raw)
    if len(parts) != 3:
        return None
    for candidate in (f"{parts[2]}-{parts[0]}-{parts[1]}", f"{parts[2]}-{parts[1]}-{parts[0]}"):
        parsed = _to_datetime(candidate, fmt="%Y-%m-%d")
        if parsed is not None:
            return parsed
    return None


def _to_datetime(value: str, fmt: Optional[str] = None) -> Optional[datetime]:
    try:
        stamp = pd.to_datetime(value, format=fmt, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(stamp):
        return None
    if stamp.tzinfo is not None:
        stamp = stamp.tz_convert(None)
    return stamp.to_pydatetime()


def extract_merchant(description: str) -> str:
    words = description.split(" ")
    # Short descriptions are usually just the merchant name
    if len(words) <= 3:
        return description
    return " ".join(words[:2])


def transactions_to_csv(transactions: Iterable) -> str:
    """Serialize transactions as CSV that ``parse_transaction_csv`` reads back."""
    rows = [EXPORT_HEADER]
    for tx in transactions:
        tx_date = tx.date.date() if isinstance(tx.date, datetime) else tx.date
        if not isinstance(tx_date, date):
            tx_date = pd.to_datetime(tx_date).date()
        description = _quote(tx.description or "")
        merchant = _quote(tx.merchant or "")
        category = tx.category or OTHER
        rows.append(f"{tx_date.isoformat()},{description},{float(tx.amount):.2f},{category},{merchant}")
    return "\n".join(rows) + "\n"


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'
