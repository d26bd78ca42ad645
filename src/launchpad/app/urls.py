"""Parsing and validation of platform resource URLs.

Users may paste links to resources they created by hand; these helpers
extract the platform ids and reject anything that is not a recognizable
link with a ValidationError.
"""

from __future__ import annotations

import re
from typing import NamedTuple

from .errors import ValidationError

_TASK_PROJECT_RE = re.compile(r"^https://app\.asana\.com/0/(\d+)(?:/|$)")
_DOCUMENT_RE = re.compile(
    r"^https://docs\.google\.com/(document|presentation)/d/([A-Za-z0-9_-]+)"
)
_FOLDER_RE = re.compile(r"^https://drive\.google\.com/drive/(?:u/\d+/)?folders/([A-Za-z0-9_-]+)")
_REGISTRY_RE = re.compile(r"airtable\.com/([^/]+)/[^/]+(?:/[^/]+)?/([^/?]+)")


class RegistryRecordRef(NamedTuple):
    base_id: str
    record_id: str


def parse_task_project_url(url: str) -> str:
    """Return the project id from a task-tracker project URL."""
    match = _TASK_PROJECT_RE.match((url or "").strip())
    if not match:
        raise ValidationError(
            "URL does not match task project format. "
            "Expected: https://app.asana.com/0/PROJECT_ID/...",
            field="task_project_url",
        )
    return match.group(1)


def parse_document_url(url: str) -> str:
    """Return the file id from a document or presentation URL."""
    match = _DOCUMENT_RE.match((url or "").strip())
    if not match:
        raise ValidationError(
            "URL is not a document or presentation link",
            field="scoping_doc_url",
        )
    return match.group(2)


def parse_folder_url(url: str) -> str:
    match = _FOLDER_RE.match((url or "").strip())
    if not match:
        raise ValidationError("URL is not a folder link", field="folder_url")
    return match.group(1)


def parse_registry_url(url: str) -> RegistryRecordRef:
    """Extract base and record id from ``/{base}/{table}[/{view}]/{record}``."""
    match = _REGISTRY_RE.search((url or "").strip())
    if not match:
        raise ValidationError("URL is not a registry record link", field="registry_url")
    return RegistryRecordRef(base_id=match.group(1), record_id=match.group(2))


# ── URL builders ─────────────────────────────────────────────────────


def task_project_url(project_id: str) -> str:
    return f"https://app.asana.com/0/{project_id}/list"


def task_url(project_id: str, task_id: str) -> str:
    return f"https://app.asana.com/0/{project_id}/{task_id}"


def document_url(document_id: str) -> str:
    return f"https://docs.google.com/document/d/{document_id}/edit"


def presentation_url(presentation_id: str) -> str:
    return f"https://docs.google.com/presentation/d/{presentation_id}/edit"


def folder_url(folder_id: str) -> str:
    return f"https://drive.google.com/drive/folders/{folder_id}"
