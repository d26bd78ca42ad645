"""Registry-backed draft repository."""

from __future__ import annotations

import json
from dataclasses import replace
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from launchpad.app.drafts import model
from launchpad.app.drafts.model import DraftStatus
from launchpad.app.drafts.repo import RegistryDraftRepository
from launchpad.app.models import Platform, ProjectSubmission
from launchpad.app.providers.registry_client import RegistryClient
from launchpad.app.settings import LaunchpadSettings
from launchpad.app.tokens import StaticTokenProvider

SUBMISSION = ProjectSubmission(name="Climate Pipeline", acronym="CP")


def _make_repo(handler) -> RegistryDraftRepository:
    client = RegistryClient(
        token_provider=StaticTokenProvider({Platform.REGISTRY: "tok"}),
        base_id="appTest",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return RegistryDraftRepository(client, LaunchpadSettings(registry_base_id="appTest"))


def _record(record_id: str, **fields) -> dict:
    return {"id": record_id, "createdTime": "2025-03-05T10:00:00.000Z", "fields": fields}


class TestRegistryDraftRepository:
    @pytest.mark.asyncio
    async def test_create_stores_snapshot_as_json(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "recDraft"})

        draft = model.create_draft(SUBMISSION, created_by="owner@example.org")
        stored = await _make_repo(handler).create(draft)

        assert stored.id == "recDraft"
        assert stored.share_token == draft.share_token
        fields = json.loads(seen[0].content)["fields"]
        assert seen[0].url.raw_path == b"/v0/appTest/Project%20Drafts"
        assert fields["Status"] == "Draft"
        assert fields["Share Token"] == draft.share_token
        assert fields["Created By"] == "owner@example.org"
        assert "Approver Email" not in fields
        assert json.loads(fields["Draft Data"])["name"] == "Climate Pipeline"

    @pytest.mark.asyncio
    async def test_get_by_token(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"records": [_record(
                "recDraft",
                **{
                    "Share Token": "tok123",
                    "Status": "Pending Approval",
                    "Draft Data": json.dumps(SUBMISSION.to_dict()),
                    "Approver Email": "lead@example.org",
                },
            )]})

        draft = await _make_repo(handler).get_by_token("tok123")

        query = parse_qs(urlsplit(str(seen[0].url)).query)
        assert query["filterByFormula"] == ['{Share Token} = "tok123"']
        assert query["maxRecords"] == ["1"]
        assert draft.id == "recDraft"
        assert draft.status is DraftStatus.PENDING_APPROVAL
        assert draft.submission == SUBMISSION
        assert draft.approver_email == "lead@example.org"
        assert draft.created_at.year == 2025

    @pytest.mark.asyncio
    async def test_unknown_token(self):
        repo = _make_repo(lambda request: httpx.Response(200, json={"records": []}))
        assert await repo.get_by_token("missing") is None

    @pytest.mark.asyncio
    async def test_update_patches_decision(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "recDraft"})

        draft = model.submit_for_approval(
            model.create_draft(SUBMISSION), approver_email="lead@example.org",
        )
        approved = model.approve(draft, notes="Go")
        await _make_repo(handler).update(replace(approved, id="recDraft"))

        assert seen[0].method == "PATCH"
        assert seen[0].url.path.endswith("/recDraft")
        fields = json.loads(seen[0].content)["fields"]
        assert fields["Status"] == "Approved"
        assert fields["Approver Notes"] == "Go"
        assert fields["Decision At"] == approved.decided_at.date().isoformat()

    @pytest.mark.asyncio
    async def test_list_pending_filters_status_and_approver(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"records": [
                _record("recOld", **{"Status": "Pending Approval"}),
                {**_record("recNew", **{"Status": "Pending Approval"}),
                 "createdTime": "2025-04-01T00:00:00Z"},
            ]})

        drafts = await _make_repo(handler).list_pending_for("lead@example.org")

        formula = parse_qs(urlsplit(str(seen[0].url)).query)["filterByFormula"][0]
        assert '{Approver Email} = "lead@example.org"' in formula
        assert '{Status} = "Pending Approval"' in formula
        assert [d.id for d in drafts] == ["recNew", "recOld"]
