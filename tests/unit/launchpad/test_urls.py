"""Unit tests for platform URL parsing and building."""
import pytest

from launchpad.app import urls
from launchpad.app.errors import ValidationError


class TestParseTaskProjectUrl:

    @pytest.mark.parametrize("url", [
        "https://app.asana.com/0/1205/list",
        "https://app.asana.com/0/1205/board",
        "https://app.asana.com/0/1205",
        "  https://app.asana.com/0/1205/list  ",
    ])
    def test_extracts_project_id(self, url):
        assert urls.parse_task_project_url(url) == "1205"

    @pytest.mark.parametrize("url", [
        "",
        "https://app.asana.com/0/abc/list",
        "http://app.asana.com/0/1205/list",
        "https://example.com/0/1205",
    ])
    def test_rejects_other_links(self, url):
        with pytest.raises(ValidationError) as exc_info:
            urls.parse_task_project_url(url)
        assert exc_info.value.field == "task_project_url"


class TestParseDocumentUrls:

    def test_document_and_presentation(self):
        assert urls.parse_document_url("https://docs.google.com/document/d/doc_1-x/edit") == "doc_1-x"
        assert urls.parse_document_url("https://docs.google.com/presentation/d/deck1/edit") == "deck1"

    def test_spreadsheet_rejected(self):
        with pytest.raises(ValidationError):
            urls.parse_document_url("https://docs.google.com/spreadsheets/d/s1/edit")

    def test_folder(self):
        assert urls.parse_folder_url("https://drive.google.com/drive/folders/f1") == "f1"
        assert urls.parse_folder_url("https://drive.google.com/drive/u/0/folders/f2") == "f2"
        with pytest.raises(ValidationError):
            urls.parse_folder_url("https://drive.google.com/file/d/f1")


class TestParseRegistryUrl:

    def test_with_and_without_view(self):
        assert urls.parse_registry_url("https://airtable.com/appX/tblP/recA") == ("appX", "recA")
        ref = urls.parse_registry_url("https://airtable.com/appX/tblP/viwV/recB?blocks=hide")
        assert ref.base_id == "appX"
        assert ref.record_id == "recB"

    def test_rejects_non_registry_link(self):
        with pytest.raises(ValidationError):
            urls.parse_registry_url("https://example.com/appX/tblP/recA")


class TestBuilders:

    def test_builders_parse_back(self):
        assert urls.parse_task_project_url(urls.task_project_url("99")) == "99"
        assert urls.parse_document_url(urls.document_url("d1")) == "d1"
        assert urls.parse_document_url(urls.presentation_url("p1")) == "p1"
        assert urls.parse_folder_url(urls.folder_url("f1")) == "f1"

    def test_task_url(self):
        assert urls.task_url("99", "7") == "https://app.asana.com/0/99/7"
