"""Draft/approval workflow gating resource creation."""

from .model import (
    Draft,
    DraftNotFound,
    DraftPermissionDenied,
    DraftStatus,
    InvalidDraftTransition,
    generate_share_token,
)
from .repo import DraftRepository, InMemoryDraftRepository, RegistryDraftRepository
from .service import ApprovalResult, DraftNotifier, DraftService, LoggingDraftNotifier

__all__ = [
    "ApprovalResult",
    "Draft",
    "DraftNotFound",
    "DraftNotifier",
    "DraftPermissionDenied",
    "DraftRepository",
    "DraftService",
    "DraftStatus",
    "InMemoryDraftRepository",
    "InvalidDraftTransition",
    "LoggingDraftNotifier",
    "RegistryDraftRepository",
    "generate_share_token",
]
