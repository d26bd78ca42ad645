"""Placeholder values and table data for document templates."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Mapping

from ..models import ProjectSubmission, RoleKey
from ..settings import LaunchpadSettings

MILESTONE_HEADERS = ("Milestone", "Description", "Due Date")
STAFF_HEADERS = ("Role", "Staff", "% FTE")

NO_MILESTONES = "(No milestones defined)"
NO_STAFF = "(No staff assigned)"

UNKNOWN = "TBD"


def _parse_date(value: str | date | None) -> date | None:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def format_long_date(value: str | date | None) -> str:
    """``2025-03-05`` -> ``March 5, 2025``; missing -> ``TBD``."""
    if not value:
        return UNKNOWN
    parsed = _parse_date(value)
    if parsed is None:
        return str(value)
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def format_short_date(value: str | date | None) -> str:
    """``2025-03-05`` -> ``Mar 5, 2025``; missing -> ``TBD``."""
    if not value:
        return UNKNOWN
    parsed = _parse_date(value)
    if parsed is None:
        return str(value)
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def build_replacements(
    submission: ProjectSubmission,
    settings: LaunchpadSettings,
    *,
    member_names: Mapping[str, str] | None = None,
    today: date | None = None,
) -> dict[str, str]:
    """Map each configured placeholder token to its text value."""
    names = member_names or {}

    def role_name(key: RoleKey) -> str:
        assignment = submission.role(key)
        return names.get(assignment.member_id, "") if assignment else ""

    values = {
        "project_name": submission.name,
        "project_acronym": submission.acronym,
        "project_description": submission.description,
        "objectives": submission.objectives,
        "start_date": format_long_date(submission.start_date),
        "end_date": format_long_date(submission.end_date),
        "created_date": format_long_date(today or date.today()),
        "project_owner": role_name(RoleKey.PROJECT_OWNER),
        "project_coordinator": role_name(RoleKey.PROJECT_COORDINATOR),
    }
    return {settings.placeholder(key): value or "" for key, value in values.items()}


def milestone_rows(submission: ProjectSubmission) -> list[list[str]]:
    return [
        [o.name, o.description or "", format_short_date(o.due_date)]
        for o in submission.named_outcomes()
    ]


def staff_rows(
    submission: ProjectSubmission,
    member_names: Mapping[str, str] | None = None,
) -> list[list[str]]:
    names = member_names or {}
    return [
        [
            r.role.label,
            names.get(r.member_id) or UNKNOWN,
            f"{r.fte}%" if r.fte else UNKNOWN,
        ]
        for r in submission.assigned_roles()
    ]


@dataclass(frozen=True, slots=True)
class TableSpec:
    """A table to insert at ``placeholder``, or ``empty_text`` if no rows."""

    placeholder: str
    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    empty_text: str

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def dimensions(self) -> tuple[int, int]:
        """Rows including the header row, and columns."""
        return len(self.rows) + 1, len(self.headers)


def document_tables(
    submission: ProjectSubmission,
    settings: LaunchpadSettings,
    *,
    member_names: Mapping[str, str] | None = None,
) -> tuple[TableSpec, TableSpec]:
    """The milestones and staff tables of the scoping document."""
    return (
        TableSpec(
            placeholder=settings.placeholder("milestones"),
            headers=MILESTONE_HEADERS,
            rows=tuple(tuple(r) for r in milestone_rows(submission)),
            empty_text=NO_MILESTONES,
        ),
        TableSpec(
            placeholder=settings.placeholder("staff_table"),
            headers=STAFF_HEADERS,
            rows=tuple(tuple(r) for r in staff_rows(submission, member_names)),
            empty_text=NO_STAFF,
        ),
    )
