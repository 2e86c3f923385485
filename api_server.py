"""FastAPI service exposing the finance store, CSV import/export and insights.

Run (dev): python api_server.py   (or: uvicorn api_server:build_app --factory)
"""

import logging
import time
from typing import List, Optional

from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from plaid.exceptions import ApiException
from pydantic import BaseModel, ConfigDict, Field

import bank_sync
from categorize import categorize_transaction, suggest_category
from config import Settings, get_settings
from csv_parser import parse_transaction_csv, transactions_to_csv
from dashboard import compute_dashboard_statistics
from exceptions import (
    AggregatorNotConfiguredError,
    DuplicateCategoryError,
    NotFoundError,
    SyncError,
)
from insights import find_recurring_transactions, generate_insights
from plaid_integration import PlaidAggregator
from schemas import (
    Account,
    AccountCreate,
    AccountUpdate,
    Category,
    CategoryCorrection,
    CategoryCreate,
    Insight,
    InsightCreate,
    RecurringCharge,
    Transaction,
    TransactionCreate,
)
from storage import FinanceStore

logger = logging.getLogger(__name__)


class ExchangeTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    public_token: str = Field(alias="publicToken", min_length=1)
    institution: str = "Connected Bank"


class ImportResponse(BaseModel):
    message: str
    count: int
    errors: List[str]


class SuggestionResponse(BaseModel):
    description: str
    category: str


def _with_category(transaction: TransactionCreate) -> TransactionCreate:
    if transaction.category:
        return transaction
    return transaction.model_copy(update={"category": categorize_transaction(transaction)})


def create_app(store: FinanceStore, aggregator: Optional[PlaidAggregator] = None) -> FastAPI:
    app = FastAPI(title="Personal Finance Dashboard API", version="0.1.0")
    app.state.store = store
    app.state.aggregator = aggregator

    def require_aggregator() -> PlaidAggregator:
        if app.state.aggregator is None:
            raise AggregatorNotConfiguredError("Plaid credentials not set in .env")
        return app.state.aggregator

    # --- Error mapping ---

    @app.exception_handler(NotFoundError)
    async def not_found(request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"message": str(exc)})

    @app.exception_handler(SyncError)
    async def sync_failed(request, exc: SyncError):
        return JSONResponse(status_code=400, content={"message": str(exc)})

    @app.exception_handler(DuplicateCategoryError)
    async def duplicate_category(request, exc: DuplicateCategoryError):
        return JSONResponse(status_code=409, content={"message": str(exc)})

    @app.exception_handler(AggregatorNotConfiguredError)
    async def aggregator_missing(request, exc: AggregatorNotConfiguredError):
        return JSONResponse(status_code=503, content={"message": str(exc)})

    @app.exception_handler(ApiException)
    async def aggregator_failed(request, exc: ApiException):
        logger.error("Plaid request failed on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"message": "Bank aggregator request failed"})

    @app.exception_handler(Exception)
    async def unexpected_error(request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    # --- Accounts ---

    @app.get("/api/accounts", response_model=List[Account])
    def list_accounts():
        return store.get_accounts()

    @app.get("/api/accounts/{account_id}", response_model=Account)
    def get_account(account_id: int):
        account = store.get_account(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    @app.post("/api/accounts", response_model=Account, status_code=201)
    def create_account(account: AccountCreate):
        return store.create_account(account)

    @app.put("/api/accounts/{account_id}", response_model=Account)
    def update_account(account_id: int, update: AccountUpdate):
        account = store.update_account(account_id, update.model_dump(exclude_unset=True))
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    @app.delete("/api/accounts/{account_id}", status_code=204)
    def delete_account(account_id: int):
        if not store.delete_account(account_id):
            raise NotFoundError("Account", account_id)
        return Response(status_code=204)

    @app.get("/api/accounts/{account_id}/transactions", response_model=List[Transaction])
    def list_account_transactions(account_id: int):
        return store.get_transactions_by_account(account_id)

    # --- Transactions ---

    @app.get("/api/transactions", response_model=List[Transaction])
    def list_transactions(limit: Optional[int] = Query(None, ge=1)):
        return store.get_transactions(limit)

    @app.get("/api/transactions/recurring", response_model=List[RecurringCharge])
    def recurring_transactions(timeframe_months: Optional[int] = Query(None, ge=1)):
        return find_recurring_transactions(store.get_transactions(), timeframe_months)

    @app.get("/api/transactions/export", response_class=PlainTextResponse)
    def export_transactions(account_id: Optional[int] = None):
        transactions = (
            store.get_transactions_by_account(account_id)
            if account_id is not None
            else store.get_transactions()
        )
        return PlainTextResponse(
            transactions_to_csv(transactions),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="transactions.csv"'},
        )

    @app.post("/api/transactions", response_model=Transaction, status_code=201)
    def create_transaction(transaction: TransactionCreate):
        return store.create_transaction(_with_category(transaction))

    @app.post("/api/transactions/bulk", response_model=List[Transaction], status_code=201)
    def create_transactions(transactions: List[TransactionCreate]):
        return store.create_transactions([_with_category(t) for t in transactions])

    @app.post("/api/transactions/import", response_model=ImportResponse, status_code=201)
    async def import_transactions(file: UploadFile = File(...), account_id: int = Form(...)):
        if store.get_account(account_id) is None:
            raise NotFoundError("Account", account_id)

        raw = await file.read()
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="CSV file must be UTF-8 text") from None
        result = parse_transaction_csv(text, account_id)
        if not result.transactions and result.errors:
            raise HTTPException(status_code=400, detail={"message": "No transactions imported", "errors": result.errors})

        created = store.create_transactions(result.transactions)
        return ImportResponse(
            message="Transactions imported successfully",
            count=len(created),
            errors=result.errors,
        )

    @app.patch("/api/transactions/{transaction_id}/category", response_model=Transaction)
    def correct_category(transaction_id: int, correction: CategoryCorrection):
        transaction = store.update_transaction_category(transaction_id, correction.category)
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)
        return transaction

    @app.delete("/api/transactions/{transaction_id}", status_code=204)
    def delete_transaction(transaction_id: int):
        if not store.delete_transaction(transaction_id):
            raise NotFoundError("Transaction", transaction_id)
        return Response(status_code=204)

    # --- Categories ---

    @app.get("/api/categories", response_model=List[Category])
    def list_categories():
        return store.get_categories()

    @app.get("/api/categories/suggest", response_model=SuggestionResponse)
    def suggest(description: str = Query(..., min_length=1)):
        return SuggestionResponse(description=description, category=suggest_category(description))

    @app.post("/api/categories", response_model=Category, status_code=201)
    def create_category(category: CategoryCreate):
        return store.create_category(category)

    # --- Insights ---

    @app.get("/api/insights", response_model=List[Insight])
    def list_insights():
        return store.get_insights()

    @app.post("/api/insights", response_model=Insight, status_code=201)
    def create_insight(insight: InsightCreate):
        return store.create_insight(insight)

    @app.post("/api/insights/generate", response_model=List[Insight], status_code=201)
    def refresh_insights():
        # Each run appends; earlier insights stay in place
        generated = generate_insights(store.get_transactions(), store.get_accounts())
        return store.create_insights(generated) if generated else []

    # --- Plaid ---

    @app.get("/api/plaid/create-link-token")
    def create_link_token():
        user_id = f"user-{int(time.time() * 1000)}"
        return {"linkToken": require_aggregator().create_link_token(user_id)}

    @app.post("/api/plaid/exchange-token")
    def exchange_token(body: ExchangeTokenRequest):
        result = bank_sync.link_institution(
            store, require_aggregator(), body.public_token, institution=body.institution
        )
        return {
            "success": True,
            "message": "Bank connected successfully",
            "accounts": result["accounts"],
            "transactions": result["transactions"],
        }

    @app.post("/api/plaid/sync-account/{account_id}")
    def sync_account(account_id: int):
        count = bank_sync.sync_account(store, require_aggregator(), account_id)
        return {"success": True, "message": "Account synced successfully", "count": count}

    @app.post("/api/plaid/disconnect-account/{account_id}")
    def disconnect_account(account_id: int):
        bank_sync.disconnect_account(store, account_id)
        return {"success": True, "message": "Account disconnected successfully"}

    # --- Statistics ---

    @app.get("/api/statistics/dashboard")
    def dashboard_statistics():
        return compute_dashboard_statistics(
            store.get_accounts(), store.get_transactions(), store.get_categories()
        )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


def build_app(settings: Optional[Settings] = None) -> FastAPI:
    """Composition root: one store and (when credentials exist) one Plaid client."""
    settings = settings or get_settings()
    store = FinanceStore.from_url(settings.database_url)
    aggregator = PlaidAggregator.from_settings(settings) if settings.plaid_configured else None
    if aggregator is None:
        logger.warning("Plaid credentials missing; bank sync routes will answer 503")
    return create_app(store, aggregator)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run("api_server:build_app", factory=True, host="0.0.0.0", port=8001, reload=True)
