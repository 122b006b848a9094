"""Base record store interface and key composition."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List


class RecordKind(str, Enum):
    """Named per-user record sequences."""

    TRANSACTIONS = "transactions"
    LOANS = "loans"
    DOCUMENTS = "documents"
    CHAT = "chat"


def record_key(user_id: str, kind: RecordKind) -> str:
    """Compose the store key for one user's sequence of ``kind``."""
    if not user_id:
        raise ValueError("user_id must not be empty")
    return f"user:{user_id}:{RecordKind(kind).value}"


class RecordStore(ABC):
    """Abstract key-value store holding one ordered list of records per key.

    There is no locking between a ``read`` and the following ``write``;
    concurrent read-modify-write cycles on the same key lose updates.
    """

    @abstractmethod
    async def read(self, key: str) -> List[dict]:
        """Return the records under ``key``, or an empty list."""
        pass

    @abstractmethod
    async def write(self, key: str, records: List[dict]) -> None:
        """Replace the records under ``key``."""
        pass

    async def close(self) -> None:
        """Release any held resources."""
        pass
