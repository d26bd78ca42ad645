"""Template population for copied documents and decks."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from ..errors import RemoteRejected
from .placeholders import TableSpec
from .tables import (
    TableInsertion,
    TablePhase,
    plan_insert,
    plan_styles,
    plan_text,
)

logger = logging.getLogger(__name__)


class TemplateKind(str, enum.Enum):
    DOCUMENT = "document"
    PRESENTATION = "presentation"


@dataclass(frozen=True, slots=True)
class TableResult:
    placeholder: str
    phase: TablePhase
    rows: int = 0
    columns: int = 0
    skipped: bool = False
    """True when the placeholder was not present in the document."""
    used_fallback_text: bool = False


def replacement_requests(replacements: Mapping[str, str]) -> list[dict[str, Any]]:
    """One ``replaceAllText`` per token; each replaces every occurrence."""
    return [
        {
            "replaceAllText": {
                "containsText": {"text": token, "matchCase": True},
                "replaceText": value or "",
            },
        }
        for token, value in replacements.items()
    ]


class TemplatePopulator:
    """Fill placeholders and tables through a document client."""

    def __init__(self, document_client: Any) -> None:
        self._client = document_client

    async def replace_placeholders(
        self,
        file_id: str,
        replacements: Mapping[str, str],
        kind: TemplateKind = TemplateKind.DOCUMENT,
    ) -> None:
        requests = replacement_requests(replacements)
        if not requests:
            return
        if kind is TemplateKind.PRESENTATION:
            await self._client.batch_update_presentation(file_id, requests)
        else:
            await self._client.batch_update_document(file_id, requests)
        logger.debug(
            "Replaced %d placeholders in %s %s", len(requests), kind.value, file_id,
        )

    async def insert_table(self, document_id: str, spec: TableSpec) -> TableResult:
        """Run a table through all phases; see ``templating.tables``.

        Structural and text batches propagate RemoteRejected.  A failed
        styling batch is logged and the table is left unstyled.
        """
        insertion = TableInsertion(spec=spec)

        planned = plan_insert(insertion, await self._client.get_document(document_id))
        if planned is None:
            logger.warning(
                "Placeholder %s not found in document %s", spec.placeholder, document_id,
            )
            return TableResult(placeholder=spec.placeholder, phase=insertion.phase, skipped=True)
        insertion, requests = planned
        await self._client.batch_update_document(document_id, requests)

        insertion, requests = plan_text(insertion, await self._client.get_document(document_id))
        if requests:
            await self._client.batch_update_document(document_id, requests)

        insertion, requests = plan_styles(insertion, await self._client.get_document(document_id))
        if requests:
            try:
                await self._client.batch_update_document(document_id, requests)
            except RemoteRejected as exc:
                logger.warning(
                    "Table styling failed for %s in %s: %s",
                    spec.placeholder,
                    document_id,
                    exc,
                )

        rows, columns = spec.dimensions
        return TableResult(
            placeholder=spec.placeholder, phase=insertion.phase, rows=rows, columns=columns,
        )

    async def populate_tables(
        self, document_id: str, specs: Sequence[TableSpec],
    ) -> list[TableResult]:
        """Insert each table, or its fallback text when it has no rows."""
        results: list[TableResult] = []
        for spec in specs:
            if spec.is_empty:
                await self.replace_placeholders(document_id, {spec.placeholder: spec.empty_text})
                results.append(
                    TableResult(
                        placeholder=spec.placeholder,
                        phase=TablePhase.EMPTY,
                        used_fallback_text=True,
                    )
                )
                continue
            results.append(await self.insert_table(document_id, spec))
        return results
