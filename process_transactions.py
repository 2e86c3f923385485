"""
process_transactions.py
-----------------------
Import bank CSV exports into the finance database, or export stored
transactions back to CSV.

Usage:

    python process_transactions.py import statements/ --account-id 1
    python process_transactions.py export --output transactions.csv [--account-id 1]

Directories are scanned for ``*.csv`` files. Rows that fail to parse are
reported and skipped; the rest of each file is still imported.
"""

from __future__ import annotations

import argparse
import glob
import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence

from config import get_settings
from csv_parser import parse_transaction_csv, transactions_to_csv
from storage import FinanceStore

logger = logging.getLogger(__name__)


def collect_files(paths: Sequence[str]) -> List[Path]:
    """Expand directories into the CSV files they contain."""
    files: List[Path] = []
    for raw in paths:
        if os.path.isdir(raw):
            files.extend(Path(p) for p in sorted(glob.glob(os.path.join(raw, "*.csv"))))
        else:
            files.append(Path(raw))
    return files


def import_files(store: FinanceStore, files: Sequence[Path], account_id: int) -> int:
    """Parse and store each file; returns the number of transactions saved."""
    if store.get_account(account_id) is None:
        raise SystemExit(f"Account {account_id} does not exist")

    total = 0
    for path in files:
        try:
            text = path.read_text(encoding="utf-8-sig")
        except OSError as exc:
            logger.error("Failed to read %s: %s", path, exc)
            continue

        result = parse_transaction_csv(text, account_id)
        for error in result.errors:
            logger.warning("%s: %s", path.name, error)
        if result.transactions:
            store.create_transactions(result.transactions)
        logger.info("Imported %d transactions from %s", len(result.transactions), path.name)
        total += len(result.transactions)
    return total


def export_file(store: FinanceStore, output: Path, account_id: Optional[int] = None) -> int:
    transactions = (
        store.get_transactions_by_account(account_id)
        if account_id is not None
        else store.get_transactions()
    )
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(transactions_to_csv(transactions), encoding="utf-8")
    logger.info("Exported %d transactions to %s", len(transactions), output)
    return len(transactions)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Import or export transaction CSV files")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Overrides DATABASE_URL from the environment.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import CSV files or directories of CSV files")
    imp.add_argument("paths", nargs="+")
    imp.add_argument("--account-id", type=int, required=True)

    exp = sub.add_parser("export", help="Export stored transactions to a CSV file")
    exp.add_argument("--output", type=Path, default=Path("transactions.csv"))
    exp.add_argument("--account-id", type=int, default=None)
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    store = FinanceStore.from_url(args.database_url or settings.database_url)
    if args.command == "import":
        count = import_files(store, collect_files(args.paths), args.account_id)
        print(f"Imported {count} transactions")
    else:
        count = export_file(store, args.output, args.account_id)
        print(f"Exported {count} transactions to {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
