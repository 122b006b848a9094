"""In-memory record store implementation."""

import asyncio
import copy
from typing import Dict, List

import structlog

from .base import RecordStore

logger = structlog.get_logger()


class InMemoryRecordStore(RecordStore):
    """Process-local store. Values are deep-copied in and out."""

    def __init__(self) -> None:
        self._data: Dict[str, List[dict]] = {}
        self._lock = asyncio.Lock()
        logger.info("record_store_initialized", backend="memory")

    async def read(self, key: str) -> List[dict]:
        """Return a copy of the records under ``key``."""
        async with self._lock:
            return copy.deepcopy(self._data.get(key, []))

    async def write(self, key: str, records: List[dict]) -> None:
        """Replace the records under ``key`` with a copy of ``records``."""
        async with self._lock:
            self._data[key] = copy.deepcopy(list(records))
            logger.debug("records_written", key=key, count=len(records))

    def keys(self) -> List[str]:
        return list(self._data)
