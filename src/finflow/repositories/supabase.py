"""Record store backed by a Supabase ``kv_store`` table through PostgREST."""

from typing import List, Optional

import httpx
import structlog

from ..domain.errors import StoreError
from .base import RecordStore

logger = structlog.get_logger()


class SupabaseRecordStore(RecordStore):
    """Reads and upserts ``{key, value}`` rows, one JSON list per key."""

    def __init__(
        self,
        url: str,
        service_role_key: str,
        table: str = "kv_store",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.table = table
        self._client = client or httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/rest/v1",
            headers={
                "apikey": service_role_key,
                "Authorization": f"Bearer {service_role_key}",
            },
        )
        logger.info("record_store_initialized", backend="supabase", table=table)

    async def read(self, key: str) -> List[dict]:
        try:
            response = await self._client.get(
                f"/{self.table}",
                params={"key": f"eq.{key}", "select": "value"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("record_read_failed", key=key, error=str(e))
            raise StoreError() from e

        rows = response.json()
        if not rows:
            return []
        return rows[0].get("value") or []

    async def write(self, key: str, records: List[dict]) -> None:
        try:
            response = await self._client.post(
                f"/{self.table}",
                json={"key": key, "value": list(records)},
                headers={"Prefer": "resolution=merge-duplicates"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("record_write_failed", key=key, error=str(e))
            raise StoreError() from e

    async def close(self) -> None:
        await self._client.aclose()
