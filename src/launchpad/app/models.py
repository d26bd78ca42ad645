"""Domain model for project submissions and provisioning state.

ProjectSubmission is an immutable snapshot: every save produces a new
instance (``with_changes``).  CreatedResourceSet accumulates the ids and
URLs of artifacts created on each platform across retries; a populated
field is never overwritten or emptied by ``merge``, only by an explicit
``clear``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Mapping


# ── Enumerations ─────────────────────────────────────────────────────


class Platform(str, Enum):
    REGISTRY = "registry"
    TASK_TRACKER = "task_tracker"
    DOCUMENTS = "documents"


class Resolution(str, Enum):
    """What to do on a platform, usually decided after a duplicate check."""

    CREATE = "create"
    USE_EXISTING = "use_existing"
    SKIP = "skip"
    UPDATE = "update"


class RoleKey(str, Enum):
    """Closed, ordered set of project roles."""

    PROJECT_OWNER = "project_owner"
    PROJECT_COORDINATOR = "project_coordinator"
    TECHNICAL_SUPPORT = "technical_support"
    COMMS_SUPPORT = "comms_support"
    OVERSIGHT = "oversight"
    OTHER = "other"

    @property
    def label(self) -> str:
        return _ROLE_LABELS[self]

    @classmethod
    def ordered(cls) -> tuple[RoleKey, ...]:
        return tuple(cls)


_ROLE_LABELS = {
    RoleKey.PROJECT_OWNER: "Project Owner",
    RoleKey.PROJECT_COORDINATOR: "Project Coordinator",
    RoleKey.TECHNICAL_SUPPORT: "Technical Support",
    RoleKey.COMMS_SUPPORT: "Communications Support",
    RoleKey.OVERSIGHT: "Oversight",
    RoleKey.OTHER: "Other",
}


# ── Submission ───────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class RoleAssignment:
    role: RoleKey
    member_id: str
    fte: str = ""

    @property
    def is_assigned(self) -> bool:
        return bool(self.member_id and self.member_id.strip())


@dataclass(frozen=True, slots=True)
class Outcome:
    name: str
    description: str = ""
    due_date: str | None = None
    assignee: str | None = None
    """Registry member id; defaults to the project coordinator when unset."""


@dataclass(frozen=True, slots=True)
class ExistingUrls:
    """Links to resources the user already created by hand."""

    task_project_url: str | None = None
    scoping_doc_url: str | None = None


@dataclass(frozen=True, slots=True)
class TeamMember:
    id: str
    name: str
    email: str | None = None


@dataclass(frozen=True, slots=True)
class ProjectSubmission:
    """Snapshot of the project form at one save."""

    name: str = ""
    acronym: str = ""
    start_date: str | None = None
    end_date: str | None = None
    description: str = ""
    objectives: str = ""
    roles: tuple[RoleAssignment, ...] = ()
    outcomes: tuple[Outcome, ...] = ()
    existing_urls: ExistingUrls = field(default_factory=ExistingUrls)
    funder_id: str | None = None
    parent_initiative_id: str | None = None
    project_type: str | None = None

    def __post_init__(self) -> None:
        # Keep roles in the closed RoleKey order regardless of input order.
        order = {key: i for i, key in enumerate(RoleKey.ordered())}
        ordered = tuple(sorted(self.roles, key=lambda r: order[r.role]))
        object.__setattr__(self, "roles", ordered)
        object.__setattr__(self, "outcomes", tuple(self.outcomes))

    @property
    def folder_name(self) -> str:
        return self.name.strip()

    def role(self, key: RoleKey) -> RoleAssignment | None:
        for assignment in self.roles:
            if assignment.role == key and assignment.is_assigned:
                return assignment
        return None

    def assigned_roles(self) -> tuple[RoleAssignment, ...]:
        return tuple(r for r in self.roles if r.is_assigned)

    def named_outcomes(self) -> tuple[Outcome, ...]:
        return tuple(o for o in self.outcomes if o.name and o.name.strip())

    def with_changes(self, **changes: Any) -> ProjectSubmission:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["roles"] = [
            {"role": r.role.value, "member_id": r.member_id, "fte": r.fte}
            for r in self.roles
        ]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProjectSubmission:
        roles_raw = data.get("roles") or []
        # Accept the form's ``{role_key: {memberId, fte}}`` shape as well.
        if isinstance(roles_raw, Mapping):
            roles_raw = [
                {
                    "role": key,
                    "member_id": (value or {}).get("member_id")
                    or (value or {}).get("memberId", ""),
                    "fte": str((value or {}).get("fte", "") or ""),
                }
                for key, value in roles_raw.items()
            ]
        roles = tuple(
            RoleAssignment(
                role=RoleKey(r["role"]),
                member_id=r.get("member_id") or "",
                fte=str(r.get("fte") or ""),
            )
            for r in roles_raw
        )
        outcomes = tuple(
            Outcome(
                name=o.get("name") or "",
                description=o.get("description") or "",
                due_date=o.get("due_date") or o.get("dueDate") or None,
                assignee=o.get("assignee") or None,
            )
            for o in data.get("outcomes") or []
        )
        urls = data.get("existing_urls") or {}
        return cls(
            name=data.get("name") or "",
            acronym=data.get("acronym") or "",
            start_date=data.get("start_date") or None,
            end_date=data.get("end_date") or None,
            description=data.get("description") or "",
            objectives=data.get("objectives") or "",
            roles=roles,
            outcomes=outcomes,
            existing_urls=ExistingUrls(
                task_project_url=urls.get("task_project_url") or None,
                scoping_doc_url=urls.get("scoping_doc_url") or None,
            ),
            funder_id=data.get("funder_id") or None,
            parent_initiative_id=data.get("parent_initiative_id") or None,
            project_type=data.get("project_type") or None,
        )


# ── Resolutions ──────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Resolutions:
    registry: Resolution = Resolution.CREATE
    task_tracker: Resolution = Resolution.CREATE
    documents: Resolution = Resolution.CREATE

    def for_platform(self, platform: Platform) -> Resolution:
        return getattr(self, platform.value)


# ── Created resources ────────────────────────────────────────────────


ARTIFACT_ID_FIELDS = (
    "registry_record_id",
    "task_project_id",
    "folder_id",
    "scoping_doc_id",
    "kickoff_deck_id",
)

# Artifact id -> progress fields describing work done against that artifact.
# Clearing the id resets them too, so the step starts over on a new artifact.
PROGRESS_FIELDS = {
    "task_project_id": ("task_milestones_done", "task_milestones_created"),
    "scoping_doc_id": ("scoping_doc_populated",),
    "kickoff_deck_id": ("kickoff_deck_populated",),
    "registry_record_id": ("registry_milestones_created", "registry_assignments_created"),
}


@dataclass(frozen=True, slots=True)
class CreatedResourceSet:
    """Per-platform artifact ids and URLs produced so far.

    Besides ids and URLs it tracks the follow-up work done against an
    artifact (tasks, template population, child records), so a retry
    finishes that work on the recorded artifact instead of creating a new
    one.
    """

    registry_record_id: str | None = None
    registry_url: str | None = None
    registry_milestones_created: bool = False
    registry_assignments_created: bool = False
    task_project_id: str | None = None
    task_project_url: str | None = None
    task_milestones_done: tuple[str, ...] = ()
    """Names of the outcomes that already have a task."""
    task_milestones_created: bool = False
    folder_id: str | None = None
    folder_url: str | None = None
    scoping_doc_id: str | None = None
    scoping_doc_url: str | None = None
    scoping_doc_populated: bool = False
    kickoff_deck_id: str | None = None
    kickoff_deck_url: str | None = None
    kickoff_deck_populated: bool = False

    def merge(self, **updates: Any) -> CreatedResourceSet:
        """Fill empty fields from ``updates``; populated fields are kept."""
        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}
        for name, value in updates.items():
            if name not in known:
                raise AttributeError(f"unknown resource field {name!r}")
            if not value or getattr(self, name):
                continue
            changes[name] = value
        return replace(self, **changes) if changes else self

    def with_milestone_task(self, outcome_name: str) -> CreatedResourceSet:
        """Record that the task for one outcome exists."""
        return replace(self, task_milestones_done=(*self.task_milestones_done, outcome_name))

    def clear(self, *names: str) -> CreatedResourceSet:
        """Explicitly reset fields so their steps run again."""
        defaults = {f.name: f.default for f in fields(self)}
        changes: dict[str, Any] = {}
        for name in names:
            if name not in defaults:
                raise AttributeError(f"unknown resource field {name!r}")
            for reset in (name, *PROGRESS_FIELDS.get(name, ())):
                changes[reset] = defaults[reset]
        return replace(self, **changes)

    @property
    def is_complete(self) -> bool:
        return all(getattr(self, name) for name in ARTIFACT_ID_FIELDS)

    def urls(self) -> dict[str, str]:
        return {
            name: value
            for name, value in self.to_dict().items()
            if name.endswith("_url") and value
        }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> CreatedResourceSet:
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if "task_milestones_done" in values:
            values["task_milestones_done"] = tuple(values["task_milestones_done"] or ())
        return cls(**values)


# ── Duplicate check ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class DuplicateMatch:
    """Result of one platform's existence check."""

    platform: Platform
    found: bool = False
    matched_id: str | None = None
    url: str | None = None
    matched_name: str | None = None
    user_provided: bool = False
    skipped: bool = False
    error: str | None = None


@dataclass(frozen=True, slots=True)
class DuplicateCheckResult:
    registry: DuplicateMatch
    task_tracker: DuplicateMatch
    documents: DuplicateMatch
    checked_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def has_duplicates(self) -> bool:
        return self.registry.found or self.task_tracker.found or self.documents.found

    def for_platform(self, platform: Platform) -> DuplicateMatch:
        return getattr(self, platform.value)

    def __iter__(self) -> Iterator[DuplicateMatch]:
        return iter((self.registry, self.task_tracker, self.documents))
