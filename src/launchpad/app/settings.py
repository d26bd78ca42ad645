"""Launchpad configuration settings.

LaunchpadSettings is the single configuration object accepted by the
platform clients, the provisioner and create_app().  It is a plain
dataclass with no env coupling; only ``from_env()`` reads os.environ.

Field and table names default to the names used by the production registry
base; deployments with a different schema override the mappings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


def _frozen(mapping: dict[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping))


DEFAULT_TABLES = _frozen({
    "projects": "Projects",
    "milestones": "Milestones",
    "assignments": "Assignments",
    "team_members": "Data Team Members",
    "drafts": "Project Drafts",
})

DEFAULT_PROJECT_FIELDS = _frozen({
    "name": "Project",
    "acronym": "Project Acronym",
    "description": "Project Description",
    "objectives": "Objectives",
    "start_date": "Start Date",
    "end_date": "End Date",
    "status": "Status",
    "funder": "Funder",
    "parent_initiative": "Parent Initiative",
    "project_type": "Project Type",
    "task_project_url": "Asana Board",
    "scoping_doc_url": "Project Scope",
    "folder_url": "Project Folder",
    "kickoff_deck_url": "Kickoff Deck",
})

DEFAULT_MILESTONE_FIELDS = _frozen({
    "name": "Milestone",
    "description": "Description",
    "due_date": "Due Date",
    "project_link": "Project",
})

DEFAULT_ASSIGNMENT_FIELDS = _frozen({
    "role": "Role",
    "team_member_link": "Data Team Member",
    "project_link": "Project",
    "fte": "FTE",
})

DEFAULT_TEAM_MEMBER_FIELDS = _frozen({
    "name": "Full Name",
    "email": "Email",
})

DEFAULT_DRAFT_FIELDS = _frozen({
    "project_name": "Project Name",
    "draft_data": "Draft Data",
    "status": "Status",
    "share_token": "Share Token",
    "created_by": "Created By",
    "approver_email": "Approver Email",
    "approver_notes": "Approver Notes",
    "decision_at": "Decision At",
})

DEFAULT_ROLE_VALUES = _frozen({
    "project_owner": "Project Owner",
    "project_coordinator": "Project Coordinator",
    "technical_support": "Technical Support",
    "comms_support": "Communications Support",
    "oversight": "Oversight",
    "other": "Other",
})

DEFAULT_PLACEHOLDERS = _frozen({
    "project_name": "{{PROJECT_NAME}}",
    "project_acronym": "{{PROJECT_ACRONYM}}",
    "project_description": "{{PROJECT_DESCRIPTION}}",
    "objectives": "{{OBJECTIVES}}",
    "start_date": "{{START_DATE}}",
    "end_date": "{{END_DATE}}",
    "created_date": "{{CREATED_DATE}}",
    "project_owner": "{{PROJECT_OWNER}}",
    "project_coordinator": "{{PROJECT_COORDINATOR}}",
    "milestones": "{{MILESTONES}}",
    "staff_table": "{{STAFF_TABLE}}",
})


@dataclass(frozen=True, slots=True)
class LaunchpadSettings:
    """Configuration for the provisioning orchestrator.

    All fields have defaults so a local run only needs the identifiers of
    the platforms it actually talks to.  ``validate()`` reports what is
    missing for a non-local environment.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, staging, production."""

    # ── Registry (tabular records) ─────────────────────────────────
    registry_base_id: str = ""
    registry_api_url: str = "https://api.airtable.com/v0"
    registry_web_url: str = "https://airtable.com"
    tables: Mapping[str, str] = field(default_factory=lambda: DEFAULT_TABLES)
    table_ids: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    """Table key -> table ID (``tbl...``), used to build record URLs."""
    view_ids: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    project_fields: Mapping[str, str] = field(default_factory=lambda: DEFAULT_PROJECT_FIELDS)
    milestone_fields: Mapping[str, str] = field(default_factory=lambda: DEFAULT_MILESTONE_FIELDS)
    assignment_fields: Mapping[str, str] = field(default_factory=lambda: DEFAULT_ASSIGNMENT_FIELDS)
    team_member_fields: Mapping[str, str] = field(default_factory=lambda: DEFAULT_TEAM_MEMBER_FIELDS)
    draft_fields: Mapping[str, str] = field(default_factory=lambda: DEFAULT_DRAFT_FIELDS)
    role_values: Mapping[str, str] = field(default_factory=lambda: DEFAULT_ROLE_VALUES)
    default_project_status: str = "In Ideation"

    # ── Task tracker ───────────────────────────────────────────────
    task_api_url: str = "https://app.asana.com/api/1.0"
    task_workspace_id: str = ""
    task_team_id: str = ""
    task_default_template_id: str = ""
    task_templates: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    """Project type -> template ID; falls back to the default template."""

    # ── Document platform ──────────────────────────────────────────
    documents_shared_drive_id: str = ""
    documents_parent_folder_id: str = ""
    scoping_doc_template_id: str = ""
    kickoff_deck_template_id: str = ""

    # ── Templating ─────────────────────────────────────────────────
    placeholders: Mapping[str, str] = field(default_factory=lambda: DEFAULT_PLACEHOLDERS)

    # ── Duplicate detection ────────────────────────────────────────
    duplicate_check_enabled: bool = True

    # ── HTTP ───────────────────────────────────────────────────────
    http_timeout_seconds: float = 30.0

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    def table(self, key: str) -> str:
        return self.tables.get(key) or DEFAULT_TABLES[key]

    def placeholder(self, key: str) -> str:
        return self.placeholders.get(key) or DEFAULT_PLACEHOLDERS[key]

    def template_for_project_type(self, project_type: str | None) -> str:
        """Return the task template for a project type, or the default."""
        if project_type and self.task_templates.get(project_type):
            return self.task_templates[project_type]
        return self.task_default_template_id

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if self.http_timeout_seconds <= 0:
            errors.append("http_timeout_seconds must be > 0")
        if not self.is_local:
            required = {
                "registry_base_id": self.registry_base_id,
                "task_workspace_id": self.task_workspace_id,
                "task_team_id": self.task_team_id,
                "task_default_template_id": self.task_default_template_id,
                "documents_parent_folder_id": self.documents_parent_folder_id,
                "scoping_doc_template_id": self.scoping_doc_template_id,
                "kickoff_deck_template_id": self.kickoff_deck_template_id,
            }
            for name, value in required.items():
                if not value:
                    errors.append(f"{self.environment}: {name} is required")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> LaunchpadSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct LaunchpadSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        task_templates: dict[str, str] = {}
        templates_raw = env.get("TASK_TEMPLATES", "")
        if templates_raw:
            for pair in templates_raw.split(","):
                if "=" in pair:
                    project_type, template_id = pair.split("=", 1)
                    task_templates[project_type.strip()] = template_id.strip()

        table_ids: dict[str, str] = {}
        for key in DEFAULT_TABLES:
            value = env.get(f"REGISTRY_{key.upper()}_TABLE_ID", "")
            if value:
                table_ids[key] = value

        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            registry_base_id=env.get("REGISTRY_BASE_ID", ""),
            table_ids=_frozen(table_ids),
            task_workspace_id=env.get("TASK_WORKSPACE_ID", ""),
            task_team_id=env.get("TASK_TEAM_ID", ""),
            task_default_template_id=env.get("TASK_TEMPLATE_ID", ""),
            task_templates=_frozen(task_templates),
            documents_shared_drive_id=env.get("DOCUMENTS_SHARED_DRIVE_ID", ""),
            documents_parent_folder_id=env.get("DOCUMENTS_PARENT_FOLDER_ID", ""),
            scoping_doc_template_id=env.get("SCOPING_DOC_TEMPLATE_ID", ""),
            kickoff_deck_template_id=env.get("KICKOFF_DECK_TEMPLATE_ID", ""),
            duplicate_check_enabled=env.get("DUPLICATE_CHECK_ENABLED", "true").lower()
            not in ("0", "false", "no"),
            http_timeout_seconds=float(env.get("HTTP_TIMEOUT_SECONDS", "30")),
        )
