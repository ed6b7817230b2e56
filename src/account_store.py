from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional

from models import ClientAccount


class AccountStore(ABC):
    """
    Storage interface for client accounts.
    The processor only talks to this interface, so an external datastore
    can replace the in-memory map without touching the state machine.
    """

    @abstractmethod
    def get(self, client_id: int) -> Optional[ClientAccount]:
        """Return the account for a client, or None if it does not exist yet."""

    @abstractmethod
    def get_or_create(self, client_id: int) -> ClientAccount:
        """Get existing account or create an empty, unlocked one."""

    @abstractmethod
    def __iter__(self) -> Iterator[ClientAccount]:
        """Iterate all accounts in ascending client id order."""

    @abstractmethod
    def __len__(self) -> int:
        ...


class InMemoryAccountStore(AccountStore):
    """Dict-backed account map, bounded by the 16-bit client id space."""

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}

    def get(self, client_id: int) -> Optional[ClientAccount]:
        return self._accounts.get(client_id)

    def get_or_create(self, client_id: int) -> ClientAccount:
        if client_id not in self._accounts:
            self._accounts[client_id] = ClientAccount(client_id=client_id)
        return self._accounts[client_id]

    def __iter__(self) -> Iterator[ClientAccount]:
        for client_id in sorted(self._accounts):
            yield self._accounts[client_id]

    def __len__(self) -> int:
        return len(self._accounts)
