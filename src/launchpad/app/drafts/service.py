"""Draft workflow service: persistence, permissions and approval actions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from ..errors import ValidationError
from ..models import DuplicateCheckResult, ProjectSubmission, Resolutions
from ..provisioning.executor import ProvisioningReport, ResourceProvisioner
from . import model
from .model import Draft, DraftNotFound, DraftPermissionDenied
from .repo import DraftRepository

logger = logging.getLogger(__name__)


class DraftNotifier(Protocol):
    """Tells the draft's owner about a review decision."""

    async def draft_approved(self, draft: Draft) -> None: ...

    async def changes_requested(self, draft: Draft) -> None: ...


class LoggingDraftNotifier:
    async def draft_approved(self, draft: Draft) -> None:
        logger.info(
            "Draft %s approved; owner %s notified",
            draft.id,
            draft.created_by,
            extra={"draft_id": draft.id},
        )

    async def changes_requested(self, draft: Draft) -> None:
        logger.info(
            "Changes requested on draft %s; owner %s notified",
            draft.id,
            draft.created_by,
            extra={"draft_id": draft.id},
        )


@dataclass(frozen=True, slots=True)
class ApprovalResult:
    draft: Draft
    report: ProvisioningReport | None = None
    """Present for "approve & create"."""


class DraftService:
    def __init__(
        self,
        repo: DraftRepository,
        *,
        provisioner: ResourceProvisioner | None = None,
        notifier: DraftNotifier | None = None,
    ) -> None:
        self._repo = repo
        self._provisioner = provisioner
        self._notifier = notifier or LoggingDraftNotifier()

    @property
    def repo(self) -> DraftRepository:
        return self._repo

    async def create(
        self, submission: ProjectSubmission, *, created_by: str | None = None,
    ) -> Draft:
        draft = await self._repo.create(model.create_draft(submission, created_by=created_by))
        logger.info("Draft %s created for %r", draft.id, draft.project_name)
        return draft

    async def get(self, share_token: str) -> Draft:
        draft = await self._repo.get_by_token(share_token)
        if draft is None:
            raise DraftNotFound(share_token)
        return draft

    async def save(self, share_token: str, submission: ProjectSubmission) -> Draft:
        draft = await self.get(share_token)
        return await self._repo.update(model.update_snapshot(draft, submission))

    async def submit(self, share_token: str, *, approver_email: str) -> Draft:
        draft = await self.get(share_token)
        draft = await self._repo.update(
            model.submit_for_approval(draft, approver_email=approver_email),
        )
        logger.info("Draft %s submitted to %s", draft.id, draft.approver_email)
        return draft

    async def approve(
        self,
        share_token: str,
        *,
        notes: str = "",
        create_resources: bool = True,
        resolutions: Resolutions | None = None,
        duplicates: DuplicateCheckResult | None = None,
    ) -> ApprovalResult:
        """Approve a pending draft.

        With ``create_resources`` ("approve & create") the provisioner runs
        right after the status flip, keyed by the draft id.  Without it
        ("approve & return") the owner is notified and creates later.
        """
        if create_resources and self._provisioner is None:
            raise ValidationError(
                "resource creation is not available", field="create_resources",
            )
        draft = await self.get(share_token)
        draft = await self._repo.update(model.approve(draft, notes=notes))
        logger.info("Draft %s approved (create_resources=%s)", draft.id, create_resources)

        if not create_resources:
            await self._notifier.draft_approved(draft)
            return ApprovalResult(draft=draft)

        report = await self._provisioner.provision(
            draft.id,
            draft.submission,
            resolutions=resolutions,
            duplicates=duplicates,
        )
        return ApprovalResult(draft=draft, report=report)

    async def request_changes(self, share_token: str, notes: str) -> Draft:
        draft = await self.get(share_token)
        draft = await self._repo.update(model.request_changes(draft, notes))
        await self._notifier.changes_requested(draft)
        return draft

    async def delete(self, share_token: str, *, requested_by: str) -> None:
        draft = await self.get(share_token)
        if not requested_by or draft.created_by != requested_by:
            raise DraftPermissionDenied("only the draft owner can delete it")
        await self._repo.delete(draft)
        logger.info("Draft %s deleted by owner", draft.id)

    async def list_mine(self, created_by: str) -> list[Draft]:
        return await self._repo.list_created_by(created_by)

    async def list_pending(self, approver_email: str) -> list[Draft]:
        return await self._repo.list_pending_for(approver_email)
