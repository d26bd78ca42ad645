"""Async client for the tabular registry (Airtable REST API).

Records live in named tables of one base.  Reads support formula
filtering, field selection, sorting and offset pagination; writes are
single-record create/update/delete plus batched create (the API accepts
at most 10 records per request).
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence
from urllib.parse import quote

import httpx

from ..models import Platform
from ..tokens import TokenProvider
from .http import PlatformHttpClient

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 10


def escape_formula_string(value: str) -> str:
    """Escape a value for use inside a double-quoted formula string."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


class RegistryClient(PlatformHttpClient):
    """Minimal async client for one registry base."""

    platform = Platform.REGISTRY

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        base_id: str,
        api_url: str = "https://api.airtable.com/v0",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not base_id:
            raise ValueError("base_id is required")
        super().__init__(
            token_provider=token_provider,
            base_url=f"{api_url.rstrip('/')}/{base_id}",
            http_client=http_client,
            timeout_seconds=timeout_seconds,
        )
        self.base_id = base_id

    def _error_message(self, payload: Any) -> str | None:
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict):
                return error.get("message") or error.get("type")
            if isinstance(error, str):
                return error
        return None

    @staticmethod
    def _table_path(table: str, record_id: str | None = None) -> str:
        path = f"/{quote(table, safe='')}"
        if record_id:
            path += f"/{record_id}"
        return path

    async def list_records(
        self,
        table: str,
        *,
        filter_formula: str | None = None,
        fields: Sequence[str] | None = None,
        sort: Sequence[tuple[str, str]] | None = None,
        max_records: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return all matching records, following ``offset`` pagination."""
        base_params: list[tuple[str, str]] = []
        for name in fields or ():
            base_params.append(("fields[]", name))
        if filter_formula:
            base_params.append(("filterByFormula", filter_formula))
        for i, (field_name, direction) in enumerate(sort or ()):
            base_params.append((f"sort[{i}][field]", field_name))
            base_params.append((f"sort[{i}][direction]", direction or "asc"))
        if max_records is not None:
            base_params.append(("maxRecords", str(int(max_records))))

        records: list[dict[str, Any]] = []
        offset: str | None = None
        while True:
            params = list(base_params)
            if offset:
                params.append(("offset", offset))
            payload = await self._request("GET", self._table_path(table), params=params)
            records.extend((payload or {}).get("records") or [])
            offset = (payload or {}).get("offset")
            if not offset:
                break
            if max_records is not None and len(records) >= max_records:
                break
        return records

    async def get_record(self, table: str, record_id: str) -> dict[str, Any]:
        return await self._request("GET", self._table_path(table, record_id))

    async def create_record(
        self, table: str, fields: Mapping[str, Any],
    ) -> dict[str, Any]:
        record = await self._request(
            "POST", self._table_path(table), json={"fields": dict(fields)},
        )
        logger.info(
            "Registry record created: table=%s id=%s",
            table,
            record.get("id"),
            extra={"table": table},
        )
        return record

    async def create_records(
        self, table: str, records: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        """Create many records, ``MAX_BATCH_SIZE`` per request."""
        created: list[dict[str, Any]] = []
        for start in range(0, len(records), MAX_BATCH_SIZE):
            batch = records[start:start + MAX_BATCH_SIZE]
            payload = await self._request(
                "POST",
                self._table_path(table),
                json={"records": [{"fields": dict(fields)} for fields in batch]},
            )
            created.extend((payload or {}).get("records") or [])
        return created

    async def update_record(
        self, table: str, record_id: str, fields: Mapping[str, Any],
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            self._table_path(table, record_id),
            json={"fields": dict(fields)},
        )

    async def delete_record(self, table: str, record_id: str) -> None:
        await self._request("DELETE", self._table_path(table, record_id))

    def record_url(
        self,
        table_id: str,
        record_id: str,
        *,
        view_id: str | None = None,
        web_url: str = "https://airtable.com",
    ) -> str:
        """Browser URL of a record: ``{web}/{base}/{table}[/{view}]/{record}``."""
        parts = [web_url.rstrip("/"), self.base_id, table_id]
        if view_id:
            parts.append(view_id)
        parts.append(record_id)
        return "/".join(parts)
