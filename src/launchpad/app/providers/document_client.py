"""Async client for the document platform (Drive, Docs and Slides APIs).

Folder search and creation are scoped to an optional shared drive and
parent folder.  Documents and decks are created by copying a template and
edited through ``batchUpdate`` request lists.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx

from ..models import Platform
from ..tokens import TokenProvider
from ..urls import document_url, folder_url, presentation_url
from .http import PlatformHttpClient

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DOCS_API_URL = "https://docs.googleapis.com/v1"
SLIDES_API_URL = "https://slides.googleapis.com/v1"


def _quote_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DocumentClient(PlatformHttpClient):
    """Async client for folders, template copies and batch edits."""

    platform = Platform.DOCUMENTS

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        drive_api_url: str = DRIVE_API_URL,
        docs_api_url: str = DOCS_API_URL,
        slides_api_url: str = SLIDES_API_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        super().__init__(
            token_provider=token_provider,
            base_url=drive_api_url,
            http_client=http_client,
            timeout_seconds=timeout_seconds,
        )
        self._docs_url = docs_api_url.rstrip("/")
        self._slides_url = slides_api_url.rstrip("/")

    def _error_message(self, payload: Any) -> str | None:
        if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
            return payload["error"].get("message")
        return None

    # ── Drive ────────────────────────────────────────────────────

    async def search_folders(
        self,
        name: str,
        *,
        shared_drive_id: str | None = None,
        parent_folder_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return non-trashed folders named ``name`` within the scope."""
        query = (
            f"name='{_quote_query_value(name)}' and mimeType='{FOLDER_MIME_TYPE}' "
            "and trashed=false"
        )
        if parent_folder_id:
            query += f" and '{parent_folder_id}' in parents"

        params = {
            "q": query,
            "supportsAllDrives": "true",
            "includeItemsFromAllDrives": "true",
            "fields": "files(id,name,webViewLink)",
        }
        if shared_drive_id:
            params["corpora"] = "drive"
            params["driveId"] = shared_drive_id

        payload = await self._request("GET", "/files", params=params)
        return (payload or {}).get("files") or []

    async def create_folder(
        self,
        name: str,
        *,
        shared_drive_id: str | None = None,
        parent_folder_id: str | None = None,
    ) -> dict[str, Any]:
        metadata: dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_folder_id:
            metadata["parents"] = [parent_folder_id]
        elif shared_drive_id:
            metadata["parents"] = [shared_drive_id]

        folder = await self._request(
            "POST",
            "/files",
            params={"supportsAllDrives": "true", "fields": "id,name,webViewLink"},
            json=metadata,
        )
        logger.info("Folder created: name=%s id=%s", name, folder.get("id"))
        return folder

    async def copy_file(
        self, template_id: str, *, folder_id: str, name: str,
    ) -> dict[str, Any]:
        """Copy a template file into ``folder_id`` under a new name."""
        copied = await self._request(
            "POST",
            f"/files/{template_id}/copy",
            params={"supportsAllDrives": "true", "fields": "id,name,webViewLink"},
            json={"name": name, "parents": [folder_id]},
        )
        logger.info(
            "Template copied: template=%s new_id=%s", template_id, copied.get("id"),
        )
        return copied

    # ── Docs / Slides ────────────────────────────────────────────

    async def get_document(self, document_id: str) -> dict[str, Any]:
        return await self._request("GET", f"{self._docs_url}/documents/{document_id}")

    async def batch_update_document(
        self, document_id: str, requests: Sequence[dict[str, Any]],
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"{self._docs_url}/documents/{document_id}:batchUpdate",
            json={"requests": list(requests)},
        )

    async def batch_update_presentation(
        self, presentation_id: str, requests: Sequence[dict[str, Any]],
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"{self._slides_url}/presentations/{presentation_id}:batchUpdate",
            json={"requests": list(requests)},
        )

    # ── URLs ─────────────────────────────────────────────────────

    document_url = staticmethod(document_url)
    presentation_url = staticmethod(presentation_url)
    folder_url = staticmethod(folder_url)
