"""Async client for the task-tracking platform (Asana REST API).

Responses wrap their payload in ``{"data": ...}``; the client unwraps it.
Project creation goes through template instantiation, which takes
requested dates and requested roles keyed by the template's own ids.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any, Sequence

import httpx

from ..errors import RemoteRejected
from ..models import Platform
from ..tokens import TokenProvider
from .http import PlatformHttpClient

logger = logging.getLogger(__name__)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Role name fragments treated as equivalent when matching template roles.
_ROLE_ALIASES = (
    ("coordinator", "coordinator"),
    ("owner", "owner"),
    ("owner", "lead"),
    ("lead", "lead"),
)


def format_due_date(value: str | date | None) -> str | None:
    """Normalize a date to ``YYYY-MM-DD``; unparseable input yields None."""
    if not value:
        return None
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if _ISO_DATE_RE.match(text):
        return text
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return None


def build_requested_roles(
    template_roles: Sequence[dict[str, Any]],
    assignments: Sequence[tuple[str, str]],
) -> list[dict[str, str]]:
    """Match template roles to ``(role_name, user_id)`` assignments.

    A template role matches when either name contains the other, or when
    both mention the same alias fragment (``owner`` also matches ``lead``).
    The first matching assignment wins.
    """
    requested: list[dict[str, str]] = []
    for template_role in template_roles:
        template_name = (template_role.get("name") or "").lower()
        for role_name, user_id in assignments:
            assignment_name = role_name.lower()
            if (
                (assignment_name and assignment_name in template_name)
                or (template_name and template_name in assignment_name)
                or any(
                    a in assignment_name and t in template_name
                    for a, t in _ROLE_ALIASES
                )
            ):
                requested.append({"gid": template_role["gid"], "value": user_id})
                break
        else:
            logger.debug("Template role %r has no matching assignment", template_name)
    return requested


class TaskTrackerClient(PlatformHttpClient):
    """Async client for workspaces, templates, projects and tasks."""

    platform = Platform.TASK_TRACKER

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        api_url: str = "https://app.asana.com/api/1.0",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        super().__init__(
            token_provider=token_provider,
            base_url=api_url,
            http_client=http_client,
            timeout_seconds=timeout_seconds,
        )

    def _error_message(self, payload: Any) -> str | None:
        if isinstance(payload, dict):
            errors = payload.get("errors")
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                return errors[0].get("message")
        return None

    async def _data(self, method: str, path: str, **kwargs: Any) -> Any:
        payload = await self._request(method, path, **kwargs)
        return (payload or {}).get("data")

    async def get_current_user(self) -> dict[str, Any]:
        return await self._data(
            "GET", "/users/me", params={"opt_fields": "name,email,workspaces"},
        )

    async def list_workspace_users(self, workspace_id: str) -> list[dict[str, Any]]:
        """Return every user in the workspace, following ``next_page``."""
        users: list[dict[str, Any]] = []
        params: dict[str, str] = {"opt_fields": "name,email", "limit": "100"}
        path = f"/workspaces/{workspace_id}/users"
        while True:
            payload = await self._request("GET", path, params=params)
            users.extend((payload or {}).get("data") or [])
            next_page = (payload or {}).get("next_page") or {}
            offset = next_page.get("offset")
            if not offset:
                return users
            params = {**params, "offset": offset}

    async def get_project_template(self, template_id: str) -> dict[str, Any]:
        return await self._data(
            "GET",
            f"/project_templates/{template_id}",
            params={"opt_fields": "name,requested_dates,requested_roles"},
        )

    async def instantiate_project(
        self,
        template_id: str,
        *,
        name: str,
        team_id: str,
        requested_dates: Sequence[dict[str, str]] = (),
        requested_roles: Sequence[dict[str, str]] = (),
    ) -> str:
        """Instantiate a project from a template and return the project id."""
        body: dict[str, Any] = {"name": name, "team": team_id, "public": False}
        if requested_dates:
            body["requested_dates"] = list(requested_dates)
        if requested_roles:
            body["requested_roles"] = list(requested_roles)

        job = await self._data(
            "POST",
            f"/project_templates/{template_id}/instantiateProject",
            json={"data": body},
        )
        project_id = ((job or {}).get("new_project") or {}).get("gid")
        if not project_id:
            raise RemoteRejected(
                self.platform.value, 0, "template instantiation returned no project id",
            )
        logger.info(
            "Task project created: name=%s id=%s",
            name,
            project_id,
            extra={"task_project_id": project_id},
        )
        return project_id

    async def create_task(
        self,
        project_id: str,
        *,
        name: str,
        notes: str = "",
        due_on: str | None = None,
        assignee: str | None = None,
    ) -> str:
        data: dict[str, Any] = {
            "name": name,
            "notes": notes or "",
            "due_on": format_due_date(due_on),
            "projects": [project_id],
        }
        if assignee:
            data["assignee"] = assignee
        task = await self._data("POST", "/tasks", json={"data": data})
        return task["gid"]

    async def typeahead_projects(
        self, workspace_id: str, query: str, *, count: int = 10,
    ) -> list[dict[str, Any]]:
        return await self._data(
            "GET",
            f"/workspaces/{workspace_id}/typeahead",
            params={
                "resource_type": "project",
                "query": query,
                "count": str(count),
                "opt_fields": "name,permalink_url",
            },
        ) or []
