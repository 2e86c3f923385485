"""Environment-driven settings.

Values are read from the process environment after ``load_dotenv()`` so a
local ``.env`` file can supply the database URL and Plaid credentials.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

PLAID_ENVIRONMENTS = ("sandbox", "development", "production")


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///finance_tracker.db"
    plaid_client_id: Optional[str] = None
    plaid_secret: Optional[str] = None
    plaid_env: str = "sandbox"
    plaid_client_name: str = "Finance Dashboard"
    log_level: str = "INFO"

    @property
    def plaid_configured(self) -> bool:
        return bool(self.plaid_client_id and self.plaid_secret)


def get_settings() -> Settings:
    """Build settings from the environment (and ``.env`` if present)."""
    load_dotenv()

    plaid_env = os.getenv("PLAID_ENV", "sandbox").lower()
    if plaid_env not in PLAID_ENVIRONMENTS:
        raise ValueError(
            f"PLAID_ENV must be one of {', '.join(PLAID_ENVIRONMENTS)}; got {plaid_env!r}"
        )

    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///finance_tracker.db"),
        plaid_client_id=os.getenv("PLAID_CLIENT_ID") or None,
        plaid_secret=os.getenv("PLAID_SECRET") or None,
        plaid_env=plaid_env,
        plaid_client_name=os.getenv("PLAID_CLIENT_NAME", "Finance Dashboard"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
