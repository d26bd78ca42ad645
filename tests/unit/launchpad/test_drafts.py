"""Draft approval workflow: pure transitions and the DraftService."""

from __future__ import annotations

import pytest

from launchpad.app.drafts import model
from launchpad.app.drafts.model import (
    DraftNotFound,
    DraftPermissionDenied,
    DraftStatus,
    InvalidDraftTransition,
)
from launchpad.app.drafts.repo import InMemoryDraftRepository
from launchpad.app.drafts.service import DraftService
from launchpad.app.errors import ValidationError
from launchpad.app.models import CreatedResourceSet, ProjectSubmission
from launchpad.app.provisioning.executor import ProvisioningReport

SUBMISSION = ProjectSubmission(name="Climate Pipeline", acronym="CP")


def _pending():
    draft = model.create_draft(SUBMISSION, created_by="owner@example.org")
    return model.submit_for_approval(draft, approver_email="lead@example.org")


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    async def draft_approved(self, draft):
        self.events.append(("approved", draft.id))

    async def changes_requested(self, draft):
        self.events.append(("changes_requested", draft.id))


class FakeProvisioner:
    def __init__(self) -> None:
        self.calls: list[tuple[str, ProjectSubmission]] = []

    async def provision(self, submission_id, submission, *, resolutions=None, duplicates=None):
        self.calls.append((submission_id, submission))
        return ProvisioningReport(submission_id=submission_id, resources=CreatedResourceSet())


def _make_service(*, provisioner=None):
    repo = InMemoryDraftRepository()
    notifier = RecordingNotifier()
    service = DraftService(repo, provisioner=provisioner, notifier=notifier)
    return service, repo, notifier


# ── Transitions ──────────────────────────────────────────────────────


class TestDraftTransitions:
    def test_new_draft(self):
        draft = model.create_draft(SUBMISSION, created_by="owner@example.org")
        assert draft.status is DraftStatus.DRAFT
        assert len(draft.share_token) >= 40
        assert draft.project_name == "Climate Pipeline"

    def test_tokens_are_unique(self):
        tokens = {model.generate_share_token() for _ in range(50)}
        assert len(tokens) == 50

    def test_untitled_draft_name(self):
        assert model.create_draft(ProjectSubmission()).project_name == "Untitled Draft"

    def test_submit_sets_approver(self):
        draft = _pending()
        assert draft.status is DraftStatus.PENDING_APPROVAL
        assert draft.approver_email == "lead@example.org"

    def test_submit_requires_email(self):
        draft = model.create_draft(SUBMISSION)
        with pytest.raises(ValidationError):
            model.submit_for_approval(draft, approver_email="  ")

    def test_approve_records_decision(self):
        approved = model.approve(_pending(), notes=" Looks good ")
        assert approved.status is DraftStatus.APPROVED
        assert approved.approver_notes == "Looks good"
        assert approved.decided_at is not None

    def test_approve_draft_not_pending_rejected(self):
        with pytest.raises(InvalidDraftTransition) as exc_info:
            model.approve(model.create_draft(SUBMISSION))
        assert exc_info.value.from_status is DraftStatus.DRAFT

    def test_request_changes_requires_notes(self):
        pending = _pending()
        with pytest.raises(ValidationError):
            model.request_changes(pending, "   ")

    def test_blank_notes_checked_before_status(self):
        # Even an illegal transition reports the missing notes first.
        with pytest.raises(ValidationError):
            model.request_changes(model.create_draft(SUBMISSION), "")

    def test_changes_requested_can_be_edited_and_resubmitted(self):
        returned = model.request_changes(_pending(), "Add milestones")
        assert returned.status is DraftStatus.CHANGES_REQUESTED

        edited = model.update_snapshot(returned, SUBMISSION.with_changes(objectives="More"))
        assert edited.status is DraftStatus.CHANGES_REQUESTED
        assert edited.share_token == returned.share_token

        resubmitted = model.submit_for_approval(edited, approver_email="lead@example.org")
        assert resubmitted.status is DraftStatus.PENDING_APPROVAL

    def test_approved_draft_is_frozen(self):
        approved = model.approve(_pending())
        with pytest.raises(InvalidDraftTransition):
            model.update_snapshot(approved, SUBMISSION)
        with pytest.raises(InvalidDraftTransition):
            model.request_changes(approved, "too late")
        with pytest.raises(InvalidDraftTransition):
            model.submit_for_approval(approved, approver_email="lead@example.org")

    def test_error_codes(self):
        assert InvalidDraftTransition(DraftStatus.APPROVED, "edit").code == "invalid_transition"
        assert DraftNotFound("tok").code == "draft_not_found"
        assert DraftPermissionDenied("no").code == "forbidden"


# ── Service ──────────────────────────────────────────────────────────


class TestDraftService:
    @pytest.mark.asyncio
    async def test_create_and_get(self):
        service, _, _ = _make_service()
        draft = await service.create(SUBMISSION, created_by="owner@example.org")

        assert draft.id == "draft-1"
        assert (await service.get(draft.share_token)).id == "draft-1"

    @pytest.mark.asyncio
    async def test_unknown_token(self):
        service, _, _ = _make_service()
        with pytest.raises(DraftNotFound):
            await service.get("missing")

    @pytest.mark.asyncio
    async def test_save_replaces_snapshot(self):
        service, _, _ = _make_service()
        draft = await service.create(SUBMISSION)
        saved = await service.save(draft.share_token, SUBMISSION.with_changes(acronym="CPX"))
        assert saved.submission.acronym == "CPX"

    @pytest.mark.asyncio
    async def test_approve_and_create_provisions_by_draft_id(self):
        provisioner = FakeProvisioner()
        service, _, notifier = _make_service(provisioner=provisioner)
        draft = await service.create(SUBMISSION)
        await service.submit(draft.share_token, approver_email="lead@example.org")

        result = await service.approve(draft.share_token, notes="ok")

        assert result.draft.status is DraftStatus.APPROVED
        assert result.report is not None
        assert provisioner.calls == [("draft-1", SUBMISSION)]
        assert notifier.events == []

    @pytest.mark.asyncio
    async def test_approve_and_return_notifies_owner(self):
        provisioner = FakeProvisioner()
        service, _, notifier = _make_service(provisioner=provisioner)
        draft = await service.create(SUBMISSION, created_by="owner@example.org")
        await service.submit(draft.share_token, approver_email="lead@example.org")

        result = await service.approve(draft.share_token, create_resources=False)

        assert result.report is None
        assert provisioner.calls == []
        assert notifier.events == [("approved", "draft-1")]

    @pytest.mark.asyncio
    async def test_approve_and_create_without_provisioner_changes_nothing(self):
        service, _, _ = _make_service()
        draft = await service.create(SUBMISSION)
        await service.submit(draft.share_token, approver_email="lead@example.org")

        with pytest.raises(ValidationError):
            await service.approve(draft.share_token)

        stored = await service.get(draft.share_token)
        assert stored.status is DraftStatus.PENDING_APPROVAL

    @pytest.mark.asyncio
    async def test_request_changes_notifies_and_persists(self):
        service, _, notifier = _make_service()
        draft = await service.create(SUBMISSION)
        await service.submit(draft.share_token, approver_email="lead@example.org")

        await service.request_changes(draft.share_token, "Add owner")

        stored = await service.get(draft.share_token)
        assert stored.status is DraftStatus.CHANGES_REQUESTED
        assert stored.approver_notes == "Add owner"
        assert notifier.events == [("changes_requested", "draft-1")]

    @pytest.mark.asyncio
    async def test_blank_notes_leave_draft_untouched(self):
        service, _, notifier = _make_service()
        draft = await service.create(SUBMISSION)
        await service.submit(draft.share_token, approver_email="lead@example.org")

        with pytest.raises(ValidationError):
            await service.request_changes(draft.share_token, " ")

        assert (await service.get(draft.share_token)).status is DraftStatus.PENDING_APPROVAL
        assert notifier.events == []

    @pytest.mark.asyncio
    async def test_only_owner_deletes(self):
        service, _, _ = _make_service()
        draft = await service.create(SUBMISSION, created_by="owner@example.org")

        with pytest.raises(DraftPermissionDenied):
            await service.delete(draft.share_token, requested_by="someone@example.org")
        await service.delete(draft.share_token, requested_by="owner@example.org")

        with pytest.raises(DraftNotFound):
            await service.get(draft.share_token)

    @pytest.mark.asyncio
    async def test_listings(self):
        service, _, _ = _make_service()
        mine = await service.create(SUBMISSION, created_by="owner@example.org")
        await service.create(SUBMISSION, created_by="other@example.org")
        await service.submit(mine.share_token, approver_email="Lead@Example.org")

        assert [d.id for d in await service.list_mine("owner@example.org")] == [mine.id]
        pending = await service.list_pending("lead@example.org")
        assert [d.id for d in pending] == [mine.id]
