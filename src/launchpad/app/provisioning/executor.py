"""Resource provisioner: drives a submission through the creation steps.

Steps run in a fixed order:

  task_project -> task_milestones -> folder -> scoping_doc -> kickoff_deck
  -> registry_record -> cross_link

For each step the provisioner:
  1. Skips it when its platform's resolution is ``skip``.
  2. Reports ALREADY_DONE when the CreatedResourceSet shows its artifact
     exists and the work against it is finished.
  3. Adopts an existing artifact (user-supplied URL or ``use_existing``
     duplicate) without calling the platform.
  4. Fails it with NotConnected when the platform has no token, or with
     PreconditionUnmet when the step it depends on has not produced an id.
  5. Runs it, catching any error into a StepError.

The session is saved after every step that changes the resource set, so
re-invoking ``provision`` resumes from the first incomplete step and
never recreates an artifact whose id was recorded.  A step that failed
after creating its artifact picks up the unfinished work (population,
tasks, child records) against the recorded id.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from datetime import date
from types import MappingProxyType
from typing import Any, Awaitable, Callable

from ...observability import provisioning_context
from ..errors import LaunchpadError, NotConnected, PreconditionUnmet, ValidationError
from ..identity.resolver import IdentityResolver
from ..models import (
    CreatedResourceSet,
    DuplicateCheckResult,
    Platform,
    ProjectSubmission,
    Resolution,
    Resolutions,
    RoleKey,
    TeamMember,
)
from ..providers.task_client import build_requested_roles
from ..settings import LaunchpadSettings
from ..templating.placeholders import build_replacements, document_tables
from ..templating.populator import TemplateKind, TemplatePopulator
from ..tokens import TokenProvider, is_connected
from ..urls import (
    document_url,
    folder_url,
    parse_document_url,
    parse_task_project_url,
    presentation_url,
    task_project_url,
)
from .records import RegistryProjects
from .session_store import ProvisioningSession, SessionStore

logger = logging.getLogger(__name__)

STEP_ORDER = (
    "task_project",
    "task_milestones",
    "folder",
    "scoping_doc",
    "kickoff_deck",
    "registry_record",
    "cross_link",
)

STEP_PLATFORM = MappingProxyType(
    {
        "task_project": Platform.TASK_TRACKER,
        "task_milestones": Platform.TASK_TRACKER,
        "folder": Platform.DOCUMENTS,
        "scoping_doc": Platform.DOCUMENTS,
        "kickoff_deck": Platform.DOCUMENTS,
        "registry_record": Platform.REGISTRY,
        "cross_link": Platform.REGISTRY,
    }
)

# Step -> (prerequisite step, resource field it must have populated).
STEP_REQUIRES = MappingProxyType(
    {
        "task_milestones": ("task_project", "task_project_id"),
        "scoping_doc": ("folder", "folder_id"),
        "kickoff_deck": ("folder", "folder_id"),
        "cross_link": ("registry_record", "registry_record_id"),
    }
)

# Step -> resource fields that are all populated once the step is complete.
STEP_DONE_FIELDS = MappingProxyType(
    {
        "task_project": ("task_project_id",),
        "task_milestones": ("task_milestones_created",),
        "folder": ("folder_id",),
        "scoping_doc": ("scoping_doc_id", "scoping_doc_populated"),
        "kickoff_deck": ("kickoff_deck_id", "kickoff_deck_populated"),
        "registry_record": (
            "registry_record_id",
            "registry_milestones_created",
            "registry_assignments_created",
        ),
    }
)


class StepStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    ALREADY_DONE = "already_done"
    ADOPTED = "adopted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class StepError:
    step: str
    code: str
    detail: str


@dataclass(frozen=True, slots=True)
class StepOutcome:
    step: str
    status: StepStatus
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class ProvisioningReport:
    """Outcome of one ``provision`` invocation."""

    submission_id: str
    resources: CreatedResourceSet
    steps: tuple[StepOutcome, ...] = ()
    errors: tuple[StepError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    def status_of(self, step: str) -> StepStatus | None:
        for outcome in self.steps:
            if outcome.step == step:
                return outcome.status
        return None

    def error_for(self, step: str) -> StepError | None:
        for error in self.errors:
            if error.step == step:
                return error
        return None


class _StepSkipped(Exception):
    """Raised by a step to record SKIPPED with a reason."""


@dataclass(slots=True)
class _Run:
    """Mutable state of one provision() call."""

    session: ProvisioningSession
    submission: ProjectSubmission
    resolutions: Resolutions
    duplicates: DuplicateCheckResult | None
    connected: dict[Platform, bool]
    members: list[TeamMember] | None = None
    identity: IdentityResolver | None = None
    steps: list[StepOutcome] = field(default_factory=list)
    errors: list[StepError] = field(default_factory=list)

    @property
    def resources(self) -> CreatedResourceSet:
        return self.session.resources

    def duplicate_id(self, platform: Platform) -> tuple[str | None, str | None]:
        """Id and URL of a found, non-user-provided duplicate."""
        if self.duplicates is None:
            return None, None
        match = self.duplicates.for_platform(platform)
        if not match.found or match.user_provided or not match.matched_id:
            return None, None
        return match.matched_id, match.url


class ResourceProvisioner:
    """Creates or adopts the project's artifacts on all three platforms."""

    def __init__(
        self,
        *,
        settings: LaunchpadSettings,
        token_provider: TokenProvider,
        registry: RegistryProjects,
        task_client: Any,
        document_client: Any,
        session_store: SessionStore,
        populator: TemplatePopulator | None = None,
    ) -> None:
        self._settings = settings
        self._tokens = token_provider
        self._registry = registry
        self._tasks = task_client
        self._documents = document_client
        self._store = session_store
        self._populator = populator or TemplatePopulator(document_client)

    async def provision(
        self,
        submission_id: str,
        submission: ProjectSubmission,
        *,
        resolutions: Resolutions | None = None,
        duplicates: DuplicateCheckResult | None = None,
    ) -> ProvisioningReport:
        with provisioning_context(submission_id):
            return await self._provision(
                submission_id, submission, resolutions=resolutions, duplicates=duplicates,
            )

    async def _provision(
        self,
        submission_id: str,
        submission: ProjectSubmission,
        *,
        resolutions: Resolutions | None,
        duplicates: DuplicateCheckResult | None,
    ) -> ProvisioningReport:
        session = await self._store.load(submission_id) or ProvisioningSession(
            submission_id=submission_id,
        )
        session = await self._store.save(replace(session, snapshot=submission.to_dict()))
        run = _Run(
            session=session,
            submission=submission,
            resolutions=resolutions or Resolutions(),
            duplicates=duplicates,
            connected={p: await is_connected(self._tokens, p) for p in Platform},
        )

        actions: dict[str, Callable[[_Run], Awaitable[dict[str, Any]]]] = {
            "task_project": self._create_task_project,
            "task_milestones": self._create_task_milestones,
            "folder": self._create_folder,
            "scoping_doc": self._create_scoping_doc,
            "kickoff_deck": self._create_kickoff_deck,
            "registry_record": self._create_registry_record,
            "cross_link": self._cross_link,
        }
        for step in STEP_ORDER:
            await self._run_step(run, step, actions[step])

        logger.info(
            "Provisioning %s finished: %d errors, complete=%s",
            submission_id,
            len(run.errors),
            run.resources.is_complete,
            extra={"submission_id": submission_id},
        )
        return ProvisioningReport(
            submission_id=submission_id,
            resources=run.resources,
            steps=tuple(run.steps),
            errors=tuple(run.errors),
        )

    # ── Step runner ──────────────────────────────────────────────────

    async def _record(self, run: _Run, **updates: Any) -> None:
        await self._save_resources(run, run.resources.merge(**updates))

    async def _save_resources(self, run: _Run, resources: CreatedResourceSet) -> None:
        if resources is not run.resources:
            run.session = await self._store.save(replace(run.session, resources=resources))

    def _fail(self, run: _Run, step: str, exc: Exception, code: str | None = None) -> None:
        error = StepError(
            step=step,
            code=code or getattr(exc, "code", "unexpected_error"),
            detail=str(exc),
        )
        run.errors.append(error)
        run.steps.append(StepOutcome(step, StepStatus.FAILED, error.detail))

    async def _run_step(
        self,
        run: _Run,
        step: str,
        action: Callable[[_Run], Awaitable[dict[str, Any]]],
    ) -> None:
        platform = STEP_PLATFORM[step]
        if run.resolutions.for_platform(platform) is Resolution.SKIP:
            run.steps.append(StepOutcome(step, StepStatus.SKIPPED, "resolution is skip"))
            return

        done_fields = STEP_DONE_FIELDS.get(step)
        if done_fields and all(getattr(run.resources, name) for name in done_fields):
            run.steps.append(StepOutcome(step, StepStatus.ALREADY_DONE))
            return

        try:
            adopted = self._adoption(run, step)
        except ValidationError as exc:
            self._fail(run, step, exc)
            return
        if adopted:
            await self._record(run, **adopted)
            run.steps.append(StepOutcome(step, StepStatus.ADOPTED))
            logger.info("Step %s adopted existing artifact", step, extra={"step": step})
            return

        if not run.connected[platform]:
            self._fail(run, step, NotConnected(platform.value))
            return

        requires = STEP_REQUIRES.get(step)
        if requires and not getattr(run.resources, requires[1]):
            self._fail(run, step, PreconditionUnmet(step, requires[0]))
            return

        try:
            updates = await action(run)
        except _StepSkipped as exc:
            run.steps.append(StepOutcome(step, StepStatus.SKIPPED, str(exc)))
            return
        except LaunchpadError as exc:
            logger.warning(
                "Step %s failed: %s", step, exc,
                extra={"step": step, "error_code": exc.code},
            )
            self._fail(run, step, exc)
            return
        except Exception as exc:
            logger.exception("Step %s crashed", step)
            self._fail(run, step, exc, code="unexpected_error")
            return

        await self._record(run, **updates)
        run.steps.append(StepOutcome(step, StepStatus.SUCCEEDED))

    def _adoption(self, run: _Run, step: str) -> dict[str, Any] | None:
        """Ids/URLs of an existing artifact that stands in for this step.

        Adopted artifacts are treated as finished: no population, tasks or
        child records are added to them.
        """
        submission = run.submission
        if step == "task_project":
            user_url = submission.existing_urls.task_project_url
            if user_url:
                return {
                    "task_project_id": parse_task_project_url(user_url),
                    "task_project_url": user_url,
                }
            if run.resolutions.task_tracker is Resolution.USE_EXISTING:
                project_id, url = run.duplicate_id(Platform.TASK_TRACKER)
                if project_id:
                    return {
                        "task_project_id": project_id,
                        "task_project_url": url or task_project_url(project_id),
                    }
        elif step == "folder":
            if run.resolutions.documents is Resolution.USE_EXISTING:
                folder_id, url = run.duplicate_id(Platform.DOCUMENTS)
                if folder_id:
                    return {"folder_id": folder_id, "folder_url": url or folder_url(folder_id)}
        elif step == "scoping_doc":
            user_url = submission.existing_urls.scoping_doc_url
            if user_url:
                return {
                    "scoping_doc_id": parse_document_url(user_url),
                    "scoping_doc_url": user_url,
                    "scoping_doc_populated": True,
                }
        elif step == "registry_record":
            if run.resolutions.registry is Resolution.USE_EXISTING:
                record_id, url = run.duplicate_id(Platform.REGISTRY)
                if record_id:
                    return {
                        "registry_record_id": record_id,
                        "registry_url": url or self._registry.record_url(record_id),
                        "registry_milestones_created": True,
                        "registry_assignments_created": True,
                    }
        return None

    # ── Shared lookups ───────────────────────────────────────────────

    async def _members(self, run: _Run) -> list[TeamMember]:
        if run.members is None:
            run.members = []
            if run.connected[Platform.REGISTRY]:
                try:
                    run.members = await self._registry.list_team_members()
                except LaunchpadError as exc:
                    logger.warning("Team member lookup failed: %s", exc)
        return run.members

    async def _member_names(self, run: _Run) -> dict[str, str]:
        return {m.id: m.name for m in await self._members(run)}

    async def _identity(self, run: _Run) -> IdentityResolver:
        if run.identity is None:
            run.identity = IdentityResolver(
                self._tasks, self._settings.task_workspace_id, await self._members(run),
            )
        return run.identity

    # ── Task tracker ─────────────────────────────────────────────────

    async def _create_task_project(self, run: _Run) -> dict[str, Any]:
        submission = run.submission
        template_id = self._settings.template_for_project_type(submission.project_type)
        if not template_id:
            raise ValidationError(
                "no task template configured", field="task_default_template_id",
            )

        template = await self._tasks.get_project_template(template_id) or {}
        start = submission.start_date or date.today().isoformat()
        requested_dates = [
            {"gid": d["gid"], "value": start} for d in template.get("requested_dates") or []
        ]

        identity = await self._identity(run)
        assignments: list[tuple[str, str]] = []
        for role in submission.assigned_roles():
            user_id = await identity.resolve_member(role.member_id)
            if user_id:
                assignments.append((role.role.label, user_id))
        requested_roles = build_requested_roles(template.get("requested_roles") or [], assignments)

        project_id = await self._tasks.instantiate_project(
            template_id,
            name=submission.name,
            team_id=self._settings.task_team_id,
            requested_dates=requested_dates,
            requested_roles=requested_roles,
        )
        return {"task_project_id": project_id, "task_project_url": task_project_url(project_id)}

    async def _create_task_milestones(self, run: _Run) -> dict[str, Any]:
        if (
            run.submission.existing_urls.task_project_url
            or run.resolutions.task_tracker is Resolution.USE_EXISTING
        ):
            raise _StepSkipped("existing task project keeps its own tasks")

        project_id = run.resources.task_project_id
        coordinator = run.submission.role(RoleKey.PROJECT_COORDINATOR)
        identity = await self._identity(run)
        # One entry per task already created; repeated names count separately.
        existing = list(run.resources.task_milestones_done)
        for outcome in run.submission.named_outcomes():
            if outcome.name in existing:
                existing.remove(outcome.name)
                continue
            member_id = outcome.assignee or (coordinator.member_id if coordinator else None)
            await self._tasks.create_task(
                project_id,
                name=outcome.name,
                notes=outcome.description,
                due_on=outcome.due_date,
                assignee=await identity.resolve_member(member_id),
            )
            await self._save_resources(run, run.resources.with_milestone_task(outcome.name))
        return {"task_milestones_created": True}

    # ── Documents ────────────────────────────────────────────────────

    async def _create_folder(self, run: _Run) -> dict[str, Any]:
        name = run.submission.folder_name
        scope = {
            "shared_drive_id": self._settings.documents_shared_drive_id or None,
            "parent_folder_id": self._settings.documents_parent_folder_id or None,
        }
        folder = None
        for candidate in await self._documents.search_folders(name, **scope):
            if (candidate.get("name") or "").lower() == name.lower():
                folder = candidate
                logger.info("Reusing existing folder %s for %r", candidate.get("id"), name)
                break
        if folder is None:
            folder = await self._documents.create_folder(name, **scope)
        return {
            "folder_id": folder["id"],
            "folder_url": folder.get("webViewLink") or folder_url(folder["id"]),
        }

    async def _copy_template(
        self, run: _Run, template_id: str, suffix: str, setting: str,
    ) -> str:
        if not template_id:
            raise ValidationError(f"{setting} is not configured", field=setting)
        copied = await self._documents.copy_file(
            template_id,
            folder_id=run.resources.folder_id,
            name=f"{run.submission.name} - {suffix}",
        )
        return copied["id"]

    async def _create_scoping_doc(self, run: _Run) -> dict[str, Any]:
        doc_id = run.resources.scoping_doc_id
        if not doc_id:
            doc_id = await self._copy_template(
                run, self._settings.scoping_doc_template_id, "Scoping Document",
                "scoping_doc_template_id",
            )
            # Recorded before population so a retry never makes a second copy.
            await self._record(run, scoping_doc_id=doc_id, scoping_doc_url=document_url(doc_id))
        else:
            logger.info("Resuming population of scoping document %s", doc_id)

        names = await self._member_names(run)
        tables = document_tables(run.submission, self._settings, member_names=names)
        await self._populator.populate_tables(doc_id, tables)
        await self._populator.replace_placeholders(
            doc_id,
            build_replacements(run.submission, self._settings, member_names=names),
            TemplateKind.DOCUMENT,
        )
        return {"scoping_doc_populated": True}

    async def _create_kickoff_deck(self, run: _Run) -> dict[str, Any]:
        deck_id = run.resources.kickoff_deck_id
        if not deck_id:
            deck_id = await self._copy_template(
                run, self._settings.kickoff_deck_template_id, "Kickoff Deck",
                "kickoff_deck_template_id",
            )
            await self._record(
                run, kickoff_deck_id=deck_id, kickoff_deck_url=presentation_url(deck_id),
            )
        await self._populator.replace_placeholders(
            deck_id,
            build_replacements(
                run.submission, self._settings, member_names=await self._member_names(run),
            ),
            TemplateKind.PRESENTATION,
        )
        return {"kickoff_deck_populated": True}

    # ── Registry ─────────────────────────────────────────────────────

    async def _create_registry_record(self, run: _Run) -> dict[str, Any]:
        submission = run.submission
        existing_id, _ = run.duplicate_id(Platform.REGISTRY)
        if run.resolutions.registry is Resolution.UPDATE and existing_id:
            await self._registry.update_project(existing_id, submission)
            logger.info("Updated existing registry project %s", existing_id)
            return {
                "registry_record_id": existing_id,
                "registry_url": self._registry.record_url(existing_id),
                "registry_milestones_created": True,
                "registry_assignments_created": True,
            }

        record_id = run.resources.registry_record_id
        if not record_id:
            record = await self._registry.create_project(submission)
            record_id = record["id"]
            await self._record(
                run,
                registry_record_id=record_id,
                registry_url=self._registry.record_url(record_id),
            )
        if not run.resources.registry_milestones_created:
            await self._registry.create_milestones(record_id, submission)
            await self._record(run, registry_milestones_created=True)
        if not run.resources.registry_assignments_created:
            await self._registry.create_assignments(record_id, submission)
        return {"registry_assignments_created": True}

    async def _cross_link(self, run: _Run) -> dict[str, Any]:
        linked = await self._registry.link_urls(run.resources.registry_record_id, run.resources)
        logger.info(
            "Linked %d artifact URLs onto registry record %s",
            len(linked),
            run.resources.registry_record_id,
        )
        return {}
