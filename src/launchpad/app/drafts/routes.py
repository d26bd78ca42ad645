"""Draft review API endpoints.

  POST   /api/v1/drafts                          → create draft
  GET    /api/v1/drafts?created_by=|pending_for= → list drafts
  GET    /api/v1/drafts/{token}                  → fetch draft by share token
  PUT    /api/v1/drafts/{token}                  → replace snapshot
  POST   /api/v1/drafts/{token}/submit           → submit for approval
  POST   /api/v1/drafts/{token}/approve          → approve (& create resources)
  POST   /api/v1/drafts/{token}/request-changes  → request changes
  DELETE /api/v1/drafts/{token}?requested_by=    → delete (owner only)

Errors are ``{"error", "detail"}`` payloads: 404 unknown token, 403 not
the owner, 409 illegal transition, 422 invalid input.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..errors import LaunchpadError, ValidationError
from ..models import ProjectSubmission
from ..provisioning.executor import ProvisioningReport
from .model import Draft, DraftNotFound, DraftPermissionDenied, InvalidDraftTransition
from .service import DraftService

_STATUS_BY_ERROR: tuple[tuple[type[LaunchpadError], int], ...] = (
    (DraftNotFound, 404),
    (DraftPermissionDenied, 403),
    (InvalidDraftTransition, 409),
    (ValidationError, 422),
)


# ── Request schemas ──────────────────────────────────────────────────


class CreateDraftRequest(BaseModel):
    submission: dict[str, Any] = Field(default_factory=dict)
    created_by: str | None = None


class UpdateDraftRequest(BaseModel):
    submission: dict[str, Any]


class SubmitDraftRequest(BaseModel):
    approver_email: str = Field(..., min_length=1)


class ApproveDraftRequest(BaseModel):
    notes: str = ""
    create_resources: bool = True


class RequestChangesRequest(BaseModel):
    notes: str = ""


# ── Serialization ────────────────────────────────────────────────────


def _parse_submission(data: dict[str, Any]) -> ProjectSubmission:
    try:
        return ProjectSubmission.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"invalid submission: {exc}", field="submission") from exc


def _error_response(exc: LaunchpadError) -> JSONResponse:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return JSONResponse(
                status_code=status_code,
                content={"error": exc.code, "detail": str(exc)},
            )
    return JSONResponse(status_code=502, content={"error": exc.code, "detail": str(exc)})


def draft_payload(draft: Draft) -> dict[str, Any]:
    return {
        "id": draft.id,
        "share_token": draft.share_token,
        "project_name": draft.project_name,
        "status": draft.status.value,
        "created_by": draft.created_by,
        "approver_email": draft.approver_email,
        "approver_notes": draft.approver_notes,
        "created_at": draft.created_at.isoformat(),
        "updated_at": draft.updated_at.isoformat(),
        "decided_at": draft.decided_at.isoformat() if draft.decided_at else None,
        "submission": draft.submission.to_dict(),
    }


def report_payload(report: ProvisioningReport) -> dict[str, Any]:
    return {
        "resources": report.resources.to_dict(),
        "complete": report.resources.is_complete,
        "steps": [
            {"step": s.step, "status": s.status.value, "detail": s.detail}
            for s in report.steps
        ],
        "errors": [
            {"step": e.step, "code": e.code, "detail": e.detail} for e in report.errors
        ],
    }


# ── Route factory ────────────────────────────────────────────────────


def create_draft_review_router(service: DraftService) -> APIRouter:
    """Create the draft review router around an injected DraftService."""
    router = APIRouter(tags=["drafts"])

    @router.post("/api/v1/drafts", status_code=201)
    async def create_draft(body: CreateDraftRequest):
        try:
            submission = _parse_submission(body.submission)
        except ValidationError as exc:
            return _error_response(exc)
        draft = await service.create(submission, created_by=body.created_by)
        return draft_payload(draft)

    @router.get("/api/v1/drafts")
    async def list_drafts(created_by: str | None = None, pending_for: str | None = None):
        if bool(created_by) == bool(pending_for):
            return JSONResponse(
                status_code=422,
                content={
                    "error": "validation_error",
                    "detail": "Provide exactly one of created_by or pending_for.",
                },
            )
        if created_by:
            drafts = await service.list_mine(created_by)
        else:
            drafts = await service.list_pending(pending_for)
        return {"drafts": [draft_payload(d) for d in drafts]}

    @router.get("/api/v1/drafts/{token}")
    async def get_draft(token: str):
        try:
            draft = await service.get(token)
        except LaunchpadError as exc:
            return _error_response(exc)
        return draft_payload(draft)

    @router.put("/api/v1/drafts/{token}")
    async def update_draft(token: str, body: UpdateDraftRequest):
        try:
            draft = await service.save(token, _parse_submission(body.submission))
        except LaunchpadError as exc:
            return _error_response(exc)
        return draft_payload(draft)

    @router.post("/api/v1/drafts/{token}/submit")
    async def submit_draft(token: str, body: SubmitDraftRequest):
        try:
            draft = await service.submit(token, approver_email=body.approver_email)
        except LaunchpadError as exc:
            return _error_response(exc)
        return draft_payload(draft)

    @router.post("/api/v1/drafts/{token}/approve")
    async def approve_draft(token: str, body: ApproveDraftRequest):
        """Approve a pending draft; optionally create its resources now."""
        try:
            result = await service.approve(
                token, notes=body.notes, create_resources=body.create_resources,
            )
        except LaunchpadError as exc:
            return _error_response(exc)
        payload = {"draft": draft_payload(result.draft), "provisioning": None}
        if result.report is not None:
            payload["provisioning"] = report_payload(result.report)
        return payload

    @router.post("/api/v1/drafts/{token}/request-changes")
    async def request_changes(token: str, body: RequestChangesRequest):
        try:
            draft = await service.request_changes(token, body.notes)
        except LaunchpadError as exc:
            return _error_response(exc)
        return draft_payload(draft)

    @router.delete("/api/v1/drafts/{token}")
    async def delete_draft(token: str, requested_by: str = ""):
        try:
            await service.delete(token, requested_by=requested_by)
        except LaunchpadError as exc:
            return _error_response(exc)
        return {"deleted": True, "share_token": token}

    return router
