import datetime
import logging
from typing import List, Optional, Tuple

import plaid
from plaid.api import plaid_api
from plaid.model.accounts_get_request import AccountsGetRequest
from plaid.model.country_code import CountryCode
from plaid.model.item_public_token_exchange_request import ItemPublicTokenExchangeRequest
from plaid.model.link_token_create_request import LinkTokenCreateRequest
from plaid.model.link_token_create_request_user import LinkTokenCreateRequestUser
from plaid.model.products import Products
from plaid.model.transactions_get_request import TransactionsGetRequest
from plaid.model.transactions_get_request_options import TransactionsGetRequestOptions

from config import Settings
from exceptions import AggregatorNotConfiguredError

logger = logging.getLogger(__name__)

PLAID_HOSTS = {
    "sandbox": plaid.Environment.Sandbox,
    "development": getattr(plaid.Environment, "Development", plaid.Environment.Sandbox),
    "production": plaid.Environment.Production,
}

# Plaid caps /transactions/get pages at 500 rows
TRANSACTIONS_PAGE_SIZE = 500


class PlaidAggregator:
    """
    Bank-data aggregator backed by Plaid.

    Wraps the four calls the app needs: link token creation, public token
    exchange, account lookup and a date-ranged transaction pull. Plaid API
    errors are not caught here; they reach the caller as raised.
    """

    def __init__(self, client: plaid_api.PlaidApi, client_name: str = "Finance Dashboard"):
        self.client = client
        self.client_name = client_name

    @classmethod
    def from_settings(cls, settings: Settings) -> "PlaidAggregator":
        if not settings.plaid_configured:
            raise AggregatorNotConfiguredError("Plaid credentials not set in .env")

        configuration = plaid.Configuration(
            host=PLAID_HOSTS[settings.plaid_env],
            api_key={
                'clientId': settings.plaid_client_id,
                'secret': settings.plaid_secret,
            }
        )
        api_client = plaid.ApiClient(configuration)
        return cls(plaid_api.PlaidApi(api_client), client_name=settings.plaid_client_name)

    def create_link_token(self, user_id: str) -> str:
        """
        Generates a Link Token to initialize Plaid Link on the client side.
        """
        request = LinkTokenCreateRequest(
            products=[Products('transactions')],
            client_name=self.client_name,
            country_codes=[CountryCode('US')],
            language='en',
            user=LinkTokenCreateRequestUser(
                client_user_id=user_id
            )
        )
        response = self.client.link_token_create(request)
        return response['link_token']

    def exchange_public_token(self, public_token: str) -> Tuple[str, str]:
        """
        Exchanges the public token (from Plaid Link) for an access token and item id.
        """
        request = ItemPublicTokenExchangeRequest(
            public_token=public_token
        )
        response = self.client.item_public_token_exchange(request)
        return response['access_token'], response['item_id']

    def fetch_accounts(self, access_token: str) -> List[dict]:
        request = AccountsGetRequest(access_token=access_token)
        response = self.client.accounts_get(request).to_dict()
        return response.get("accounts", [])

    def fetch_transactions(
        self,
        access_token: str,
        start_date: datetime.date,
        end_date: Optional[datetime.date] = None,
    ) -> List[dict]:
        """
        Fetches every transaction between the two dates, following Plaid's
        offset pagination until ``total_transactions`` rows are collected.
        """
        end_date = end_date or datetime.date.today()
        transactions: List[dict] = []

        while True:
            request = TransactionsGetRequest(
                access_token=access_token,
                start_date=start_date,
                end_date=end_date,
                options=TransactionsGetRequestOptions(
                    count=TRANSACTIONS_PAGE_SIZE,
                    offset=len(transactions),
                    include_personal_finance_category=True,
                ),
            )
            response = self.client.transactions_get(request).to_dict()
            page = response.get("transactions", [])
            transactions.extend(page)

            total = response.get("total_transactions", len(transactions))
            if not page or len(transactions) >= total:
                break

        logger.info("Fetched %d transactions from Plaid (%s to %s)", len(transactions), start_date, end_date)
        return transactions
