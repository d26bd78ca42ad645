"""Project, milestone and assignment records in the registry base.

Maps submissions onto the configured table and field names and builds
record URLs.  Linked-record fields take arrays of record ids.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..models import CreatedResourceSet, ProjectSubmission, TeamMember
from ..providers.registry_client import RegistryClient, escape_formula_string
from ..settings import LaunchpadSettings

logger = logging.getLogger(__name__)

# Registry field for each CreatedResourceSet URL that is back-filled.
URL_FIELD_KEYS = (
    ("task_project_url", "task_project_url"),
    ("scoping_doc_url", "scoping_doc_url"),
    ("folder_url", "folder_url"),
    ("kickoff_deck_url", "kickoff_deck_url"),
)


def name_match_formula(field_name: str, value: str) -> str:
    """Two-way case-insensitive substring test between a field and a value."""
    escaped = escape_formula_string(value)
    return (
        f'OR(FIND(LOWER("{escaped}"), LOWER({{{field_name}}})) > 0, '
        f'FIND(LOWER({{{field_name}}}), LOWER("{escaped}")) > 0)'
    )


def linked_to_formula(field_name: str, record_id: str) -> str:
    return f'FIND("{escape_formula_string(record_id)}", ARRAYJOIN({{{field_name}}})) > 0'


def _parse_fte(value: str) -> float | None:
    text = (value or "").strip().rstrip("%")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        logger.warning("Ignoring non-numeric FTE value %r", value)
        return None


class RegistryProjects:
    """Registry operations for the provisioning workflow."""

    def __init__(self, client: RegistryClient, settings: LaunchpadSettings) -> None:
        self._client = client
        self._settings = settings

    @property
    def client(self) -> RegistryClient:
        return self._client

    @property
    def settings(self) -> LaunchpadSettings:
        return self._settings

    def record_url(self, record_id: str, table_key: str = "projects") -> str:
        settings = self._settings
        table_id = settings.table_ids.get(table_key)
        if not table_id:
            logger.warning("No table id configured for %r; record URL may not resolve", table_key)
            table_id = settings.table(table_key)
        return self._client.record_url(
            table_id,
            record_id,
            view_id=settings.view_ids.get(table_key),
            web_url=settings.registry_web_url,
        )

    # ── Lookups ──────────────────────────────────────────────────────

    async def find_projects_by_name(
        self, name: str, *, max_records: int = 5,
    ) -> list[dict[str, Any]]:
        name_field = self._settings.project_fields["name"]
        return await self._client.list_records(
            self._settings.table("projects"),
            filter_formula=name_match_formula(name_field, name),
            max_records=max_records,
        )

    async def list_team_members(self) -> list[TeamMember]:
        fields = self._settings.team_member_fields
        records = await self._client.list_records(
            self._settings.table("team_members"),
            fields=[fields["name"], fields["email"]],
            sort=[(fields["name"], "asc")],
        )
        return [
            TeamMember(
                id=record["id"],
                name=record.get("fields", {}).get(fields["name"]) or "",
                email=record.get("fields", {}).get(fields["email"]) or None,
            )
            for record in records
        ]

    # ── Writes ───────────────────────────────────────────────────────

    def project_fields(self, submission: ProjectSubmission) -> dict[str, Any]:
        f = self._settings.project_fields
        fields: dict[str, Any] = {
            f["name"]: submission.name,
            f["acronym"]: submission.acronym or "",
            f["description"]: submission.description or "",
            f["objectives"]: submission.objectives or "",
            f["start_date"]: submission.start_date or None,
            f["end_date"]: submission.end_date or None,
        }
        if submission.funder_id:
            fields[f["funder"]] = [submission.funder_id]
        if submission.parent_initiative_id:
            fields[f["parent_initiative"]] = [submission.parent_initiative_id]
        if submission.project_type:
            fields[f["project_type"]] = submission.project_type
        return fields

    async def create_project(self, submission: ProjectSubmission) -> dict[str, Any]:
        fields = self.project_fields(submission)
        fields[self._settings.project_fields["status"]] = self._settings.default_project_status
        return await self._client.create_record(self._settings.table("projects"), fields)

    async def update_project(
        self, record_id: str, submission: ProjectSubmission,
    ) -> dict[str, Any]:
        """Patch an existing project in place; status is left untouched."""
        return await self._client.update_record(
            self._settings.table("projects"), record_id, self.project_fields(submission),
        )

    async def create_milestones(
        self, project_id: str, submission: ProjectSubmission,
    ) -> list[dict[str, Any]]:
        f = self._settings.milestone_fields
        records = [
            {
                f["name"]: outcome.name,
                f["description"]: outcome.description or "",
                f["due_date"]: outcome.due_date or None,
                f["project_link"]: [project_id],
            }
            for outcome in submission.named_outcomes()
        ]
        if not records:
            return []
        return await self._client.create_records(self._settings.table("milestones"), records)

    async def create_assignments(
        self, project_id: str, submission: ProjectSubmission,
    ) -> list[dict[str, Any]]:
        f = self._settings.assignment_fields
        role_values = self._settings.role_values
        records: list[dict[str, Any]] = []
        for assignment in submission.assigned_roles():
            fields: dict[str, Any] = {
                f["role"]: role_values.get(assignment.role.value, "Other"),
                f["team_member_link"]: [assignment.member_id],
                f["project_link"]: [project_id],
            }
            fte = _parse_fte(assignment.fte)
            if fte is not None:
                fields[f["fte"]] = fte
            records.append(fields)
        if not records:
            return []
        return await self._client.create_records(self._settings.table("assignments"), records)

    def url_fields(self, resources: CreatedResourceSet) -> dict[str, str]:
        f = self._settings.project_fields
        urls = resources.urls()
        return {
            f[field_key]: urls[url_name]
            for url_name, field_key in URL_FIELD_KEYS
            if urls.get(url_name)
        }

    async def link_urls(
        self, record_id: str, resources: CreatedResourceSet,
    ) -> Mapping[str, str]:
        """Write every available artifact URL onto the project record."""
        fields = self.url_fields(resources)
        if fields:
            await self._client.update_record(self._settings.table("projects"), record_id, fields)
        return fields
