"""Placeholder substitution and table insertion for document templates."""

from .placeholders import (
    NO_MILESTONES,
    NO_STAFF,
    TableSpec,
    build_replacements,
    document_tables,
)
from .populator import TableResult, TemplateKind, TemplatePopulator
from .tables import InvalidTablePhase, TablePhase

__all__ = [
    "NO_MILESTONES",
    "NO_STAFF",
    "InvalidTablePhase",
    "TablePhase",
    "TableResult",
    "TableSpec",
    "TemplateKind",
    "TemplatePopulator",
    "build_replacements",
    "document_tables",
]
