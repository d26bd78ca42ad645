"""Dependency-ordered, resumable creation of project artifacts."""

from .executor import (
    STEP_ORDER,
    ProvisioningReport,
    ResourceProvisioner,
    StepError,
    StepOutcome,
    StepStatus,
)
from .records import RegistryProjects
from .session_store import (
    InMemorySessionStore,
    JsonFileSessionStore,
    ProvisioningSession,
    SessionStore,
)

__all__ = [
    "STEP_ORDER",
    "InMemorySessionStore",
    "JsonFileSessionStore",
    "ProvisioningReport",
    "ProvisioningSession",
    "RegistryProjects",
    "ResourceProvisioner",
    "SessionStore",
    "StepError",
    "StepOutcome",
    "StepStatus",
]
