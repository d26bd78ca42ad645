"""Draft persistence, keyed by share token.

Implementations: InMemoryDraftRepository (testing) and
RegistryDraftRepository (a drafts table in the registry base, with the
submission snapshot stored as JSON text).
"""

from __future__ import annotations

import itertools
import json
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Protocol

from ..models import ProjectSubmission
from ..providers.registry_client import RegistryClient, escape_formula_string
from ..settings import LaunchpadSettings
from .model import Draft, DraftStatus


class DraftRepository(Protocol):
    async def create(self, draft: Draft) -> Draft: ...

    async def get_by_token(self, share_token: str) -> Draft | None: ...

    async def update(self, draft: Draft) -> Draft: ...

    async def delete(self, draft: Draft) -> None: ...

    async def list_created_by(self, created_by: str) -> list[Draft]: ...

    async def list_pending_for(self, approver_email: str) -> list[Draft]: ...


# ── In-memory implementation ─────────────────────────────────────────


class InMemoryDraftRepository:
    def __init__(self) -> None:
        self._drafts: dict[str, Draft] = {}
        self._ids = itertools.count(1)

    async def create(self, draft: Draft) -> Draft:
        draft = replace(draft, id=f"draft-{next(self._ids)}")
        self._drafts[draft.share_token] = draft
        return draft

    async def get_by_token(self, share_token: str) -> Draft | None:
        return self._drafts.get(share_token)

    async def update(self, draft: Draft) -> Draft:
        self._drafts[draft.share_token] = draft
        return draft

    async def delete(self, draft: Draft) -> None:
        self._drafts.pop(draft.share_token, None)

    async def list_created_by(self, created_by: str) -> list[Draft]:
        drafts = [d for d in self._drafts.values() if d.created_by == created_by]
        return sorted(drafts, key=lambda d: d.created_at, reverse=True)

    async def list_pending_for(self, approver_email: str) -> list[Draft]:
        wanted = approver_email.strip().lower()
        drafts = [
            d
            for d in self._drafts.values()
            if d.status is DraftStatus.PENDING_APPROVAL
            and (d.approver_email or "").lower() == wanted
        ]
        return sorted(drafts, key=lambda d: d.created_at, reverse=True)


# ── Registry-backed implementation ───────────────────────────────────


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RegistryDraftRepository:
    """Drafts stored as records of the registry's drafts table."""

    def __init__(self, client: RegistryClient, settings: LaunchpadSettings) -> None:
        self._client = client
        self._table = settings.table("drafts")
        self._f = settings.draft_fields

    def _to_fields(self, draft: Draft) -> dict[str, Any]:
        f = self._f
        fields: dict[str, Any] = {
            f["project_name"]: draft.project_name,
            f["draft_data"]: json.dumps(draft.submission.to_dict()),
            f["status"]: draft.status.value,
            f["share_token"]: draft.share_token,
        }
        if draft.created_by:
            fields[f["created_by"]] = draft.created_by
        if draft.approver_email:
            fields[f["approver_email"]] = draft.approver_email
        if draft.approver_notes:
            fields[f["approver_notes"]] = draft.approver_notes
        if draft.decided_at:
            fields[f["decision_at"]] = draft.decided_at.date().isoformat()
        return fields

    def _from_record(self, record: dict[str, Any]) -> Draft:
        f = self._f
        fields = record.get("fields") or {}
        created_at = _parse_timestamp(record.get("createdTime")) or datetime.now(timezone.utc)
        return Draft(
            id=record["id"],
            share_token=fields.get(f["share_token"]) or "",
            submission=ProjectSubmission.from_dict(
                json.loads(fields.get(f["draft_data"]) or "{}"),
            ),
            status=DraftStatus(fields.get(f["status"]) or DraftStatus.DRAFT.value),
            created_by=fields.get(f["created_by"]) or None,
            approver_email=fields.get(f["approver_email"]) or None,
            approver_notes=fields.get(f["approver_notes"]) or None,
            created_at=created_at,
            updated_at=created_at,
            decided_at=_parse_timestamp(fields.get(f["decision_at"])),
        )

    async def create(self, draft: Draft) -> Draft:
        record = await self._client.create_record(self._table, self._to_fields(draft))
        return replace(draft, id=record["id"])

    async def get_by_token(self, share_token: str) -> Draft | None:
        formula = f'{{{self._f["share_token"]}}} = "{escape_formula_string(share_token)}"'
        records = await self._client.list_records(
            self._table, filter_formula=formula, max_records=1,
        )
        return self._from_record(records[0]) if records else None

    async def update(self, draft: Draft) -> Draft:
        await self._client.update_record(self._table, draft.id, self._to_fields(draft))
        return draft

    async def delete(self, draft: Draft) -> None:
        await self._client.delete_record(self._table, draft.id)

    async def list_created_by(self, created_by: str) -> list[Draft]:
        formula = f'{{{self._f["created_by"]}}} = "{escape_formula_string(created_by)}"'
        records = await self._client.list_records(self._table, filter_formula=formula)
        drafts = [self._from_record(r) for r in records]
        return sorted(drafts, key=lambda d: d.created_at, reverse=True)

    async def list_pending_for(self, approver_email: str) -> list[Draft]:
        f = self._f
        formula = (
            f'AND({{{f["approver_email"]}}} = "{escape_formula_string(approver_email)}", '
            f'{{{f["status"]}}} = "{DraftStatus.PENDING_APPROVAL.value}")'
        )
        records = await self._client.list_records(self._table, filter_formula=formula)
        drafts = [self._from_record(r) for r in records]
        return sorted(drafts, key=lambda d: d.created_at, reverse=True)
