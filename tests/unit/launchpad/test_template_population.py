"""Table phase planning and template population against a fake document API."""

from __future__ import annotations

import pytest

from launchpad.app.errors import RemoteRejected
from launchpad.app.templating.placeholders import NO_MILESTONES, TableSpec
from launchpad.app.templating.populator import (
    TemplateKind,
    TemplatePopulator,
    replacement_requests,
)
from launchpad.app.templating.tables import (
    InvalidTablePhase,
    TableInsertion,
    TablePhase,
    find_placeholder_index,
    find_table_near,
    plan_insert,
    plan_styles,
    plan_text,
)

PLACEHOLDER = "{{MILESTONES}}"


# ── Document builders ────────────────────────────────────────────────


def _para(start: int, text: str) -> dict:
    end = start + len(text)
    return {
        "startIndex": start,
        "endIndex": end,
        "paragraph": {
            "elements": [
                {"startIndex": start, "endIndex": end, "textRun": {"content": text}},
            ],
        },
    }


def _table(start: int, rows: int, columns: int, texts=None) -> dict:
    """A table element laid out with realistic, increasing indexes."""
    index = start + 1
    table_rows = []
    for r in range(rows):
        index += 1
        cells = []
        for c in range(columns):
            text = texts[r][c] if texts else ""
            index += 1
            end = index + len(text) + 1
            cells.append({
                "startIndex": index - 1,
                "endIndex": end,
                "content": [_para(index, text + "\n")],
            })
            index = end
        table_rows.append({"tableCells": cells})
    return {
        "startIndex": start,
        "endIndex": index + 1,
        "table": {"rows": rows, "columns": columns, "tableRows": table_rows},
    }


def _doc(*elements: dict) -> dict:
    return {"body": {"content": list(elements)}}


def _make_spec(rows=(("Kickoff", "First meeting", "Mar 10, 2025"), ("Report", "", "TBD"))):
    return TableSpec(
        placeholder=PLACEHOLDER,
        headers=("Milestone", "Description", "Due Date"),
        rows=tuple(rows),
        empty_text=NO_MILESTONES,
    )


def _grid(spec: TableSpec):
    return (spec.headers,) + spec.rows


def _placeholder_doc() -> dict:
    # "Milestones: " is 12 characters, so the token starts at index 13.
    return _doc(_para(1, f"Milestones: {PLACEHOLDER}\n"), _para(40, "Team\n"))


class FakeDocumentClient:
    """Serves a scripted sequence of document reads and records batches."""

    def __init__(self, documents=(), *, fail_batch: int | None = None) -> None:
        self._documents = list(documents)
        self._fail_batch = fail_batch
        self.reads = 0
        self.document_batches: list[list[dict]] = []
        self.presentation_batches: list[list[dict]] = []

    async def get_document(self, document_id: str) -> dict:
        document = self._documents[min(self.reads, len(self._documents) - 1)]
        self.reads += 1
        return document

    async def batch_update_document(self, document_id: str, requests) -> dict:
        self.document_batches.append(list(requests))
        if self._fail_batch == len(self.document_batches):
            raise RemoteRejected("documents", 400, "Invalid requests")
        return {}

    async def batch_update_presentation(self, presentation_id: str, requests) -> dict:
        self.presentation_batches.append(list(requests))
        return {}


# ── Document lookups ─────────────────────────────────────────────────


class TestDocumentLookups:
    def test_placeholder_index_is_absolute(self):
        assert find_placeholder_index(_placeholder_doc(), PLACEHOLDER) == 13

    def test_placeholder_inside_table_cell_found(self):
        table = _table(50, 1, 1, texts=[[PLACEHOLDER]])
        document = _doc(_para(1, "Intro\n"), table)
        cell_start = table["table"]["tableRows"][0]["tableCells"][0]["content"][0]["startIndex"]
        assert find_placeholder_index(document, PLACEHOLDER) == cell_start

    def test_missing_placeholder(self):
        assert find_placeholder_index(_doc(_para(1, "Nothing\n")), PLACEHOLDER) is None

    def test_table_near_prefers_matching_dimensions(self):
        small = _table(14, 2, 2)
        wanted = _table(200, 3, 3)
        found = find_table_near(_doc(small, wanted), 13, 3, 3)
        assert found["startIndex"] == 200

    def test_table_near_falls_back_to_closest(self):
        near = _table(14, 2, 2)
        far = _table(500, 2, 2)
        assert find_table_near(_doc(far, near), 13, 3, 3)["startIndex"] == 14

    def test_no_tables(self):
        assert find_table_near(_doc(_para(1, "x\n")), 1) is None


# ── Phase planning ───────────────────────────────────────────────────


class TestPlanInsert:
    def test_deletes_placeholder_and_inserts_table(self):
        spec = _make_spec()
        insertion, requests = plan_insert(TableInsertion(spec=spec), _placeholder_doc())

        assert insertion.phase is TablePhase.INSERTED
        assert insertion.anchor.index == 13
        assert (insertion.anchor.rows, insertion.anchor.columns) == (3, 3)
        delete, insert = requests
        assert delete["deleteContentRange"]["range"] == {
            "startIndex": 13,
            "endIndex": 13 + len(PLACEHOLDER),
        }
        assert insert["insertTable"] == {
            "rows": 3,
            "columns": 3,
            "location": {"index": 13},
        }

    def test_missing_placeholder_returns_none(self):
        assert plan_insert(TableInsertion(spec=_make_spec()), _doc(_para(1, "x\n"))) is None

    def test_cannot_insert_twice(self):
        insertion, _ = plan_insert(TableInsertion(spec=_make_spec()), _placeholder_doc())
        with pytest.raises(InvalidTablePhase):
            plan_insert(insertion, _placeholder_doc())


class TestPlanText:
    def _inserted(self):
        spec = _make_spec()
        insertion, _ = plan_insert(TableInsertion(spec=spec), _placeholder_doc())
        return spec, insertion

    def test_writes_text_in_descending_index_order(self):
        spec, insertion = self._inserted()
        document = _doc(_para(1, "Milestones: \n"), _table(14, 3, 3))

        insertion, requests = plan_text(insertion, document)

        assert insertion.phase is TablePhase.TEXT_WRITTEN
        indexes = [r["insertText"]["location"]["index"] for r in requests]
        assert indexes == sorted(indexes, reverse=True)
        assert len(set(indexes)) == len(indexes)
        # Empty cell values produce no request.
        non_empty = [v for row in _grid(spec) for v in row if v]
        assert sorted(r["insertText"]["text"] for r in requests) == sorted(non_empty)

    def test_header_text_goes_to_first_row(self):
        _, insertion = self._inserted()
        table = _table(14, 3, 3)
        insertion, requests = plan_text(insertion, _doc(table))

        first_cell = table["table"]["tableRows"][0]["tableCells"][0]
        first_index = first_cell["content"][0]["paragraph"]["elements"][0]["startIndex"]
        by_index = {r["insertText"]["location"]["index"]: r["insertText"]["text"] for r in requests}
        assert by_index[first_index] == "Milestone"
        assert insertion.layout.cell_indexes[0][0] == first_index

    def test_table_missing_after_insert(self):
        _, insertion = self._inserted()
        with pytest.raises(RemoteRejected):
            plan_text(insertion, _doc(_para(1, "no table\n")))

    def test_text_before_insert_rejected(self):
        with pytest.raises(InvalidTablePhase) as exc_info:
            plan_text(TableInsertion(spec=_make_spec()), _placeholder_doc())
        assert exc_info.value.from_phase is TablePhase.EMPTY
        assert exc_info.value.to_phase is TablePhase.TEXT_WRITTEN


class TestPlanStyles:
    def _written(self):
        spec = _make_spec()
        insertion, _ = plan_insert(TableInsertion(spec=spec), _placeholder_doc())
        insertion, _ = plan_text(insertion, _doc(_table(14, 3, 3)))
        return spec, insertion

    def test_styles_every_cell_and_non_empty_text(self):
        spec, insertion = self._written()
        filled = _table(14, 3, 3, texts=_grid(spec))

        insertion, requests = plan_styles(insertion, _doc(filled))

        assert insertion.phase is TablePhase.STYLED
        cell_styles = [r["updateTableCellStyle"] for r in requests if "updateTableCellStyle" in r]
        text_styles = [r["updateTextStyle"] for r in requests if "updateTextStyle" in r]
        assert len(cell_styles) == 9
        assert len(text_styles) == 8

    def test_header_cells_get_background_and_bold_text(self):
        spec, insertion = self._written()
        filled = _table(14, 3, 3, texts=_grid(spec))
        _, requests = plan_styles(insertion, _doc(filled))

        header_cell = requests[0]["updateTableCellStyle"]
        location = header_cell["tableRange"]["tableCellLocation"]
        assert location["tableStartLocation"] == {"index": 14}
        assert (location["rowIndex"], location["columnIndex"]) == (0, 0)
        assert header_cell["tableCellStyle"]["backgroundColor"]["color"]["rgbColor"] == {
            "red": 0.2, "green": 0.2, "blue": 0.3,
        }
        assert header_cell["tableCellStyle"]["paddingTop"] == {"magnitude": 5, "unit": "PT"}

        data_cell = requests[3]["updateTableCellStyle"]
        assert "backgroundColor" not in data_cell["tableCellStyle"]

        text_styles = [r["updateTextStyle"] for r in requests if "updateTextStyle" in r]
        header_text = text_styles[0]
        assert header_text["textStyle"]["bold"] is True
        assert header_text["textStyle"]["foregroundColor"]["color"]["rgbColor"] == {
            "red": 1, "green": 1, "blue": 1,
        }
        run = filled["table"]["tableRows"][0]["tableCells"][0]["content"][0]["paragraph"]["elements"][0]
        assert header_text["range"] == {
            "startIndex": run["startIndex"],
            "endIndex": run["endIndex"] - 1,
        }
        assert text_styles[-1]["textStyle"]["bold"] is False

    def test_lost_table_still_advances(self):
        _, insertion = self._written()
        insertion, requests = plan_styles(insertion, _doc(_para(1, "gone\n")))
        assert insertion.phase is TablePhase.STYLED
        assert requests == []

    def test_styles_require_text_phase(self):
        spec = _make_spec()
        insertion, _ = plan_insert(TableInsertion(spec=spec), _placeholder_doc())
        with pytest.raises(InvalidTablePhase):
            plan_styles(insertion, _doc(_table(14, 3, 3)))


# ── Populator ────────────────────────────────────────────────────────


def _scripted_documents(spec: TableSpec) -> list[dict]:
    return [
        _placeholder_doc(),
        _doc(_para(1, "Milestones: \n"), _table(14, 3, 3)),
        _doc(_para(1, "Milestones: \n"), _table(14, 3, 3, texts=_grid(spec))),
    ]


class TestReplacePlaceholders:
    def test_one_request_per_token(self):
        requests = replacement_requests({"{{A}}": "x", "{{B}}": ""})
        assert requests == [
            {"replaceAllText": {"containsText": {"text": "{{A}}", "matchCase": True}, "replaceText": "x"}},
            {"replaceAllText": {"containsText": {"text": "{{B}}", "matchCase": True}, "replaceText": ""}},
        ]

    @pytest.mark.asyncio
    async def test_document_replacements_single_batch(self):
        client = FakeDocumentClient()
        populator = TemplatePopulator(client)
        await populator.replace_placeholders(
            "doc1", {"{{PROJECT_NAME}}": "Climate Pipeline", "{{OBJECTIVES}}": "Ship"},
        )
        assert len(client.document_batches) == 1
        assert len(client.document_batches[0]) == 2
        assert client.presentation_batches == []

    @pytest.mark.asyncio
    async def test_presentation_replacements(self):
        client = FakeDocumentClient()
        await TemplatePopulator(client).replace_placeholders(
            "deck1", {"{{PROJECT_NAME}}": "Climate Pipeline"}, TemplateKind.PRESENTATION,
        )
        assert client.document_batches == []
        assert len(client.presentation_batches) == 1

    @pytest.mark.asyncio
    async def test_no_replacements_no_call(self):
        client = FakeDocumentClient()
        await TemplatePopulator(client).replace_placeholders("doc1", {})
        assert client.document_batches == []


class TestInsertTable:
    @pytest.mark.asyncio
    async def test_runs_all_phases_with_fresh_reads(self):
        spec = _make_spec()
        client = FakeDocumentClient(_scripted_documents(spec))

        result = await TemplatePopulator(client).insert_table("doc1", spec)

        assert result.phase is TablePhase.STYLED
        assert (result.rows, result.columns) == (3, 3)
        assert not result.skipped
        assert client.reads == 3
        assert len(client.document_batches) == 3
        assert "insertTable" in client.document_batches[0][1]
        assert all("insertText" in r for r in client.document_batches[1])

    @pytest.mark.asyncio
    async def test_missing_placeholder_skips_table(self):
        client = FakeDocumentClient([_doc(_para(1, "No tokens here\n"))])

        result = await TemplatePopulator(client).insert_table("doc1", _make_spec())

        assert result.skipped
        assert result.phase is TablePhase.EMPTY
        assert client.document_batches == []

    @pytest.mark.asyncio
    async def test_styling_failure_is_not_fatal(self):
        spec = _make_spec()
        client = FakeDocumentClient(_scripted_documents(spec), fail_batch=3)

        result = await TemplatePopulator(client).insert_table("doc1", spec)

        assert result.phase is TablePhase.STYLED
        assert len(client.document_batches) == 3

    @pytest.mark.asyncio
    async def test_text_failure_propagates(self):
        spec = _make_spec()
        client = FakeDocumentClient(_scripted_documents(spec), fail_batch=2)

        with pytest.raises(RemoteRejected):
            await TemplatePopulator(client).insert_table("doc1", spec)


class TestPopulateTables:
    @pytest.mark.asyncio
    async def test_empty_table_uses_fallback_text(self):
        client = FakeDocumentClient()
        empty = _make_spec(rows=())

        results = await TemplatePopulator(client).populate_tables("doc1", [empty])

        assert results[0].used_fallback_text
        assert client.reads == 0
        (request,) = client.document_batches[0]
        assert request["replaceAllText"]["containsText"]["text"] == PLACEHOLDER
        assert request["replaceAllText"]["replaceText"] == NO_MILESTONES

    @pytest.mark.asyncio
    async def test_non_empty_table_inserted(self):
        spec = _make_spec()
        client = FakeDocumentClient(_scripted_documents(spec))

        (result,) = await TemplatePopulator(client).populate_tables("doc1", [spec])

        assert result.phase is TablePhase.STYLED
        assert not result.used_fallback_text
