"""
FinanceStore: the CRUD handle over the SQLAlchemy database.

The store is built explicitly (usually once, by whatever starts the app) and
passed to the code that needs it. Every method opens its own short session
and returns detached pydantic records, so callers never hold ORM state.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError

import database
import schemas
from categorize import DEFAULT_CATEGORIES, OTHER
from exceptions import DuplicateCategoryError

logger = logging.getLogger(__name__)


class FinanceStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, db_url: str, seed: bool = True) -> "FinanceStore":
        """Connect to ``db_url``, create missing tables and seed categories."""
        engine = database.make_engine(db_url)
        store = cls(database.make_session_factory(engine))
        store.init_db(engine, seed=seed)
        return store

    def init_db(self, engine, seed: bool = True) -> None:
        database.create_tables(engine)
        if seed:
            self.seed_categories()

    def seed_categories(self) -> int:
        """Insert any default category that is not stored yet."""
        created = 0
        with self._session_factory() as db:
            existing = {name for (name,) in db.query(database.Category.name).all()}
            for name, color in DEFAULT_CATEGORIES:
                if name not in existing:
                    db.add(database.Category(name=name, color=color))
                    created += 1
            db.commit()
        if created:
            logger.info("Seeded %d default categories", created)
        return created

    # --- Accounts ---

    def get_accounts(self) -> List[schemas.Account]:
        with self._session_factory() as db:
            rows = db.query(database.Account).order_by(database.Account.id).all()
            return [schemas.Account.model_validate(r) for r in rows]

    def get_account(self, account_id: int) -> Optional[schemas.Account]:
        with self._session_factory() as db:
            row = db.get(database.Account, account_id)
            return schemas.Account.model_validate(row) if row else None

    def create_account(self, account: schemas.AccountCreate) -> schemas.Account:
        with self._session_factory() as db:
            row = database.Account(**account.model_dump())
            db.add(row)
            db.commit()
            return schemas.Account.model_validate(row)

    def update_account(self, account_id: int, updates: dict) -> Optional[schemas.Account]:
        """Apply a partial update; returns None when the account does not exist."""
        with self._session_factory() as db:
            row = db.get(database.Account, account_id)
            if row is None:
                return None
            for field, value in updates.items():
                setattr(row, field, value)
            db.commit()
            return schemas.Account.model_validate(row)

    def delete_account(self, account_id: int) -> bool:
        with self._session_factory() as db:
            row = db.get(database.Account, account_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    # --- Transactions ---

    def get_transactions(self, limit: Optional[int] = None) -> List[schemas.Transaction]:
        """All transactions, newest first."""
        with self._session_factory() as db:
            query = db.query(database.Transaction).order_by(
                database.Transaction.date.desc(), database.Transaction.id.desc()
            )
            if limit:
                query = query.limit(limit)
            return [schemas.Transaction.model_validate(r) for r in query.all()]

    def get_transactions_by_account(self, account_id: int) -> List[schemas.Transaction]:
        with self._session_factory() as db:
            rows = (
                db.query(database.Transaction)
                .filter(database.Transaction.account_id == account_id)
                .order_by(database.Transaction.date.desc(), database.Transaction.id.desc())
                .all()
            )
            return [schemas.Transaction.model_validate(r) for r in rows]

    def get_transaction(self, transaction_id: int) -> Optional[schemas.Transaction]:
        with self._session_factory() as db:
            row = db.get(database.Transaction, transaction_id)
            return schemas.Transaction.model_validate(row) if row else None

    def get_plaid_transaction_ids(self) -> set:
        with self._session_factory() as db:
            rows = (
                db.query(database.Transaction.plaid_transaction_id)
                .filter(database.Transaction.plaid_transaction_id.isnot(None))
                .all()
            )
            return {plaid_id for (plaid_id,) in rows}

    def create_transaction(self, transaction: schemas.TransactionCreate) -> schemas.Transaction:
        return self.create_transactions([transaction])[0]

    def create_transactions(self, transactions: Iterable[schemas.TransactionCreate]) -> List[schemas.Transaction]:
        """Insert a batch in one commit; the whole batch fails together."""
        with self._session_factory() as db:
            rows = [self._transaction_row(t) for t in transactions]
            db.add_all(rows)
            db.commit()
            return [schemas.Transaction.model_validate(r) for r in rows]

    @staticmethod
    def _transaction_row(transaction: schemas.TransactionCreate) -> database.Transaction:
        data = transaction.model_dump()
        data["category"] = data.get("category") or OTHER
        return database.Transaction(**data)

    def update_transaction_category(self, transaction_id: int, category: str) -> Optional[schemas.Transaction]:
        """Category correction is the only edit a stored transaction allows."""
        with self._session_factory() as db:
            row = db.get(database.Transaction, transaction_id)
            if row is None:
                return None
            row.category = category
            db.commit()
            return schemas.Transaction.model_validate(row)

    def delete_transaction(self, transaction_id: int) -> bool:
        with self._session_factory() as db:
            row = db.get(database.Transaction, transaction_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    # --- Categories ---

    def get_categories(self) -> List[schemas.Category]:
        with self._session_factory() as db:
            rows = db.query(database.Category).order_by(database.Category.id).all()
            return [schemas.Category.model_validate(r) for r in rows]

    def get_category(self, category_id: int) -> Optional[schemas.Category]:
        with self._session_factory() as db:
            row = db.get(database.Category, category_id)
            return schemas.Category.model_validate(row) if row else None

    def create_category(self, category: schemas.CategoryCreate) -> schemas.Category:
        with self._session_factory() as db:
            row = database.Category(**category.model_dump())
            db.add(row)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise DuplicateCategoryError(category.name) from exc
            return schemas.Category.model_validate(row)

    # --- Insights ---

    def get_insights(self) -> List[schemas.Insight]:
        with self._session_factory() as db:
            rows = db.query(database.Insight).order_by(database.Insight.id).all()
            return [schemas.Insight.model_validate(r) for r in rows]

    def create_insight(self, insight: schemas.InsightCreate) -> schemas.Insight:
        return self.create_insights([insight])[0]

    def create_insights(self, insights: Iterable[schemas.InsightCreate]) -> List[schemas.Insight]:
        created_at = datetime.utcnow()
        with self._session_factory() as db:
            rows = [database.Insight(**i.model_dump(), created_at=created_at) for i in insights]
            db.add_all(rows)
            db.commit()
            return [schemas.Insight.model_validate(r) for r in rows]

    # --- Aggregator items ---

    def get_plaid_items(self) -> List[schemas.PlaidItem]:
        with self._session_factory() as db:
            rows = db.query(database.PlaidItem).order_by(database.PlaidItem.id).all()
            return [schemas.PlaidItem.model_validate(r) for r in rows]

    def get_plaid_item(self, item_pk: int) -> Optional[schemas.PlaidItem]:
        with self._session_factory() as db:
            row = db.get(database.PlaidItem, item_pk)
            return schemas.PlaidItem.model_validate(row) if row else None

    def get_plaid_item_by_item_id(self, item_id: str) -> Optional[schemas.PlaidItem]:
        with self._session_factory() as db:
            row = db.query(database.PlaidItem).filter(database.PlaidItem.item_id == item_id).first()
            return schemas.PlaidItem.model_validate(row) if row else None

    def create_plaid_item(self, item: schemas.PlaidItemCreate) -> schemas.PlaidItem:
        with self._session_factory() as db:
            row = database.PlaidItem(**item.model_dump())
            db.add(row)
            db.commit()
            return schemas.PlaidItem.model_validate(row)

    def update_plaid_item(self, item_pk: int, updates: dict) -> Optional[schemas.PlaidItem]:
        with self._session_factory() as db:
            row = db.get(database.PlaidItem, item_pk)
            if row is None:
                return None
            for field, value in updates.items():
                setattr(row, field, value)
            db.commit()
            return schemas.PlaidItem.model_validate(row)

    def delete_plaid_item(self, item_pk: int) -> bool:
        with self._session_factory() as db:
            row = db.get(database.PlaidItem, item_pk)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True
