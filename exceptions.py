"""Domain errors raised by the storage, sync and HTTP layers."""


class FinanceTrackerError(Exception):
    """Base class for every error this project raises on purpose."""


class NotFoundError(FinanceTrackerError):
    def __init__(self, kind: str, identifier):
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class DuplicateCategoryError(FinanceTrackerError):
    def __init__(self, name: str):
        super().__init__(f"Category '{name}' already exists")
        self.name = name


class SyncError(FinanceTrackerError):
    """An aggregator sync could not run against the stored accounts."""


class AggregatorNotConfiguredError(FinanceTrackerError):
    """Plaid credentials are missing, so no aggregator client exists."""
