"""Application factory, service wiring and run-id correlation."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from launchpad.app.drafts.repo import InMemoryDraftRepository, RegistryDraftRepository
from launchpad.app.drafts.service import DraftService
from launchpad.app.main import build_services, create_app
from launchpad.app.models import Platform
from launchpad.app.settings import LaunchpadSettings
from launchpad.app.tokens import StaticTokenProvider, tokens_from_env
from launchpad.observability import bind_run_id, run_id_ctx


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _production_settings() -> LaunchpadSettings:
    return LaunchpadSettings(
        environment="production",
        registry_base_id="appX",
        task_workspace_id="ws",
        task_team_id="team",
        task_default_template_id="tmpl",
        documents_parent_folder_id="parent",
        scoping_doc_template_id="scope",
        kickoff_deck_template_id="deck",
    )


class TestCreateApp:
    def test_invalid_settings_rejected(self):
        with pytest.raises(ValueError, match="registry_base_id is required"):
            create_app(LaunchpadSettings(environment="production"))

    @pytest.mark.asyncio
    async def test_health(self):
        app = create_app(LaunchpadSettings(), token_provider=StaticTokenProvider())
        async with _client(app) as c:
            r = await c.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok", "environment": "local"}

    @pytest.mark.asyncio
    async def test_request_id_echoed(self):
        app = create_app(LaunchpadSettings(), token_provider=StaticTokenProvider())
        async with _client(app) as c:
            given = await c.get("/health", headers={"X-Request-ID": "req-42"})
            fresh = await c.get("/health")
        assert given.headers["X-Request-ID"] == "req-42"
        assert len(fresh.headers["X-Request-ID"]) == 12

    @pytest.mark.asyncio
    async def test_injected_draft_service_is_used(self):
        service = DraftService(InMemoryDraftRepository())
        app = create_app(LaunchpadSettings(), draft_service=service)
        assert app.state.draft_service is service
        async with _client(app) as c:
            r = await c.post("/api/v1/drafts", json={"submission": {"name": "Climate"}})
        assert r.status_code == 201


class TestBuildServices:
    def test_local_uses_in_memory_drafts(self):
        services = build_services(LaunchpadSettings(), token_provider=StaticTokenProvider())
        assert isinstance(services.draft_service.repo, InMemoryDraftRepository)

    def test_deployed_uses_registry_drafts(self):
        services = build_services(_production_settings(), token_provider=StaticTokenProvider())
        assert isinstance(services.draft_service.repo, RegistryDraftRepository)
        assert services.registry.client.base_id == "appX"


class TestTokensFromEnv:
    @pytest.mark.asyncio
    async def test_unset_means_not_connected(self):
        provider = tokens_from_env({"REGISTRY_TOKEN": "pat", "DOCUMENTS_TOKEN": ""})
        assert await provider.get_valid_token(Platform.REGISTRY) == "pat"
        assert await provider.get_valid_token(Platform.DOCUMENTS) is None
        assert await provider.get_valid_token(Platform.TASK_TRACKER) is None


class TestRunId:
    def test_bind_explicit(self):
        assert bind_run_id("run-1") == "run-1"
        assert run_id_ctx.get() == "run-1"

    def test_bind_generates(self):
        rid = bind_run_id()
        assert len(rid) == 12
        assert run_id_ctx.get() == rid
