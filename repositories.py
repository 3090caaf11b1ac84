from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError
import structlog

from config import Settings, get_settings
from exceptions import RosterError
from models import Account

logger = structlog.get_logger()

_account_list_adapter = TypeAdapter(List[Account])


class AccountRoster(ABC):
    @abstractmethod
    def get_accounts(self) -> List[Account]:
        """Get a fresh copy of the roster, safe for a single worker to mutate."""
        pass

    @abstractmethod
    def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass


class InMemoryAccountRoster(AccountRoster):
    def __init__(self, accounts: List[Account]):
        self.accounts: List[Account] = list(accounts)

    def get_accounts(self) -> List[Account]:
        return [account.model_copy() for account in self.accounts]

    def get_accounts_count(self) -> int:
        return len(self.accounts)


def build_account_roster(size: int, initial_balance: int, prefix: str = "user_") -> InMemoryAccountRoster:
    """Provision ``size`` accounts named ``<prefix><n>`` with the same balance."""
    if size < 0:
        raise RosterError(f"Roster size must not be negative, got {size}")
    return InMemoryAccountRoster(
        [Account(account_id=f"{prefix}{n}", balance=initial_balance) for n in range(size)]
    )


def load_account_roster(path: str) -> InMemoryAccountRoster:
    """Load a roster from a JSON file holding a list of {account_id, balance}."""
    try:
        raw = Path(path).read_text(encoding="utf-8")
        accounts = _account_list_adapter.validate_json(raw)
    except OSError as e:
        raise RosterError(f"Cannot read roster file {path}: {e}") from e
    except ValidationError as e:
        raise RosterError(f"Invalid roster file {path}: {e}") from e

    logger.info("Account roster loaded", path=path, accounts_count=len(accounts))
    return InMemoryAccountRoster(accounts)


def create_account_roster(settings: Settings) -> AccountRoster:
    if settings.roster_file:
        return load_account_roster(settings.roster_file)
    return build_account_roster(
        settings.account_count, settings.initial_balance, settings.account_prefix
    )


_roster: Optional[AccountRoster] = None


def get_account_roster() -> AccountRoster:
    global _roster
    if _roster is None:
        _roster = create_account_roster(get_settings())
    return _roster


# For tests
def reset_roster(roster: Optional[AccountRoster] = None):
    """Drop the cached roster, optionally replacing it (for testing only)."""
    global _roster
    _roster = roster
