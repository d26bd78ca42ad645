"""Draft/approval domain model.

A draft carries a submission snapshot through review:

  Draft ──submit──> Pending Approval ──approve──> Approved
    ^                    │
    │             request_changes
    │                    v
    └──(edit)── Changes Requested ──submit──> Pending Approval

Rules:
  - The share token is minted once, in ``create_draft``, and never changes.
  - Snapshots may be replaced in any state except Approved; editing a
    Changes Requested draft keeps that state until it is resubmitted.
  - ``request_changes`` rejects blank notes before touching the draft.

All transition functions are pure: they return a new Draft.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType

from ..errors import LaunchpadError, ValidationError
from ..models import ProjectSubmission

TOKEN_BYTES = 32  # 256-bit tokens.


class DraftStatus(str, Enum):
    DRAFT = "Draft"
    PENDING_APPROVAL = "Pending Approval"
    APPROVED = "Approved"
    CHANGES_REQUESTED = "Changes Requested"


ALLOWED_TRANSITIONS = MappingProxyType(
    {
        DraftStatus.DRAFT: frozenset({DraftStatus.PENDING_APPROVAL}),
        DraftStatus.PENDING_APPROVAL: frozenset(
            {DraftStatus.APPROVED, DraftStatus.CHANGES_REQUESTED}
        ),
        DraftStatus.CHANGES_REQUESTED: frozenset({DraftStatus.PENDING_APPROVAL}),
        DraftStatus.APPROVED: frozenset(),
    }
)


def generate_share_token() -> str:
    """Cryptographically random URL-safe token for the review link."""
    return secrets.token_urlsafe(TOKEN_BYTES)


# ── Domain exceptions ────────────────────────────────────────────────


class InvalidDraftTransition(LaunchpadError):
    code = "invalid_transition"

    def __init__(self, from_status: DraftStatus, action: str) -> None:
        self.from_status = from_status
        self.action = action
        super().__init__(f"cannot {action} a draft in status {from_status.value!r}")


class DraftNotFound(LaunchpadError):
    code = "draft_not_found"

    def __init__(self, share_token: str) -> None:
        self.share_token = share_token
        super().__init__("draft not found or link has expired")


class DraftPermissionDenied(LaunchpadError):
    code = "forbidden"


# ── Domain model ─────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Draft:
    share_token: str
    submission: ProjectSubmission
    status: DraftStatus = DraftStatus.DRAFT
    id: str | None = None
    """Storage id, assigned by the repository."""
    created_by: str | None = None
    approver_email: str | None = None
    approver_notes: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    decided_at: datetime | None = None

    @property
    def project_name(self) -> str:
        return self.submission.name or "Untitled Draft"

    @property
    def is_editable(self) -> bool:
        return self.status is not DraftStatus.APPROVED


def _transition(
    draft: Draft, to_status: DraftStatus, action: str, now: datetime, **changes,
) -> Draft:
    if to_status not in ALLOWED_TRANSITIONS[draft.status]:
        raise InvalidDraftTransition(draft.status, action)
    return replace(draft, status=to_status, updated_at=now, **changes)


# ── Transitions ──────────────────────────────────────────────────────


def create_draft(
    submission: ProjectSubmission,
    *,
    created_by: str | None = None,
    now: datetime | None = None,
) -> Draft:
    now = now or _utcnow()
    return Draft(
        share_token=generate_share_token(),
        submission=submission,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )


def update_snapshot(
    draft: Draft, submission: ProjectSubmission, *, now: datetime | None = None,
) -> Draft:
    if not draft.is_editable:
        raise InvalidDraftTransition(draft.status, "edit")
    return replace(draft, submission=submission, updated_at=now or _utcnow())


def submit_for_approval(
    draft: Draft, *, approver_email: str, now: datetime | None = None,
) -> Draft:
    email = (approver_email or "").strip()
    if not email:
        raise ValidationError("approver email is required", field="approver_email")
    return _transition(
        draft,
        DraftStatus.PENDING_APPROVAL,
        "submit",
        now or _utcnow(),
        approver_email=email,
    )


def approve(draft: Draft, *, notes: str = "", now: datetime | None = None) -> Draft:
    now = now or _utcnow()
    changes = {"decided_at": now}
    if notes and notes.strip():
        changes["approver_notes"] = notes.strip()
    return _transition(draft, DraftStatus.APPROVED, "approve", now, **changes)


def request_changes(draft: Draft, notes: str, *, now: datetime | None = None) -> Draft:
    if not notes or not notes.strip():
        raise ValidationError("notes are required when requesting changes", field="notes")
    now = now or _utcnow()
    return _transition(
        draft,
        DraftStatus.CHANGES_REQUESTED,
        "request changes on",
        now,
        approver_notes=notes.strip(),
        decided_at=now,
    )
