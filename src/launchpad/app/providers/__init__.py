"""HTTP clients for the three external platforms."""

from .document_client import DocumentClient
from .registry_client import RegistryClient, escape_formula_string
from .task_client import TaskTrackerClient, build_requested_roles, format_due_date

__all__ = [
    "DocumentClient",
    "RegistryClient",
    "TaskTrackerClient",
    "build_requested_roles",
    "escape_formula_string",
    "format_due_date",
]
