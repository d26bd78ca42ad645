"""Launchpad FastAPI application factory.

The create_app() factory builds the ASGI application serving the draft
review API.  Services are injected; when none are given, build_services()
wires the platform clients, provisioner and draft repository from
settings.

Usage:
    # Local development (in-memory drafts, tokens from env)
    from launchpad.app.main import create_app
    app = create_app(LaunchpadSettings())

    # Testing (full DI control)
    app = create_app(settings, draft_service=service)
"""

from __future__ import annotations

import logging
import os
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability import bind_run_id, configure_logging
from .drafts.repo import InMemoryDraftRepository, RegistryDraftRepository
from .drafts.routes import create_draft_review_router
from .drafts.service import DraftService
from .duplicates.checker import DuplicateChecker
from .providers.document_client import DocumentClient
from .providers.registry_client import RegistryClient
from .providers.task_client import TaskTrackerClient
from .provisioning.executor import ResourceProvisioner
from .provisioning.records import RegistryProjects
from .provisioning.session_store import InMemorySessionStore, SessionStore
from .settings import LaunchpadSettings
from .tokens import TokenProvider, tokens_from_env

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LaunchpadServices:
    """Everything wired from one settings object."""

    registry: RegistryProjects
    task_client: TaskTrackerClient
    document_client: DocumentClient
    duplicate_checker: DuplicateChecker
    provisioner: ResourceProvisioner
    draft_service: DraftService


def build_services(
    settings: LaunchpadSettings,
    *,
    token_provider: TokenProvider,
    session_store: SessionStore | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> LaunchpadServices:
    timeout = settings.http_timeout_seconds
    registry_client = RegistryClient(
        token_provider=token_provider,
        base_id=settings.registry_base_id or "unconfigured",
        api_url=settings.registry_api_url,
        http_client=http_client,
        timeout_seconds=timeout,
    )
    task_client = TaskTrackerClient(
        token_provider=token_provider,
        api_url=settings.task_api_url,
        http_client=http_client,
        timeout_seconds=timeout,
    )
    document_client = DocumentClient(
        token_provider=token_provider,
        http_client=http_client,
        timeout_seconds=timeout,
    )
    registry = RegistryProjects(registry_client, settings)

    provisioner = ResourceProvisioner(
        settings=settings,
        token_provider=token_provider,
        registry=registry,
        task_client=task_client,
        document_client=document_client,
        session_store=session_store or InMemorySessionStore(),
    )
    if settings.is_local:
        draft_repo = InMemoryDraftRepository()
    else:
        draft_repo = RegistryDraftRepository(registry_client, settings)

    return LaunchpadServices(
        registry=registry,
        task_client=task_client,
        document_client=document_client,
        duplicate_checker=DuplicateChecker(
            registry=registry,
            task_client=task_client,
            document_client=document_client,
        ),
        provisioner=provisioner,
        draft_service=DraftService(draft_repo, provisioner=provisioner),
    )


class RunIDMiddleware(BaseHTTPMiddleware):
    """Bind X-Request-ID (or a fresh id) as the run id for log correlation."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        run_id = bind_run_id(request.headers.get("x-request-id") or uuid.uuid4().hex[:12])
        request.state.run_id = run_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = run_id
        return response


def create_app(
    settings: LaunchpadSettings | None = None,
    *,
    draft_service: DraftService | None = None,
    token_provider: TokenProvider | None = None,
) -> FastAPI:
    """Create a configured launchpad FastAPI application.

    Raises:
        ValueError: If settings validation fails.
    """
    if settings is None:
        settings = LaunchpadSettings()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "Launchpad settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    if draft_service is None:
        services = build_services(
            settings, token_provider=token_provider or tokens_from_env(os.environ),
        )
        draft_service = services.draft_service

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        logger.info("Launchpad startup (environment=%s)", settings.environment)
        yield
        logger.info("Launchpad shutdown")

    app = FastAPI(
        title="Project Launchpad",
        description="Draft review and project resource provisioning",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.draft_service = draft_service

    app.add_middleware(RunIDMiddleware)

    @app.get("/health")
    async def health():
        return {"status": "ok", "environment": settings.environment}

    app.include_router(create_draft_review_router(draft_service))
    return app


def serve() -> None:
    """Run the app with uvicorn using settings from the environment."""
    import uvicorn

    configure_logging()
    app = create_app(LaunchpadSettings.from_env())
    uvicorn.run(
        app,
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", "8000")),
        log_config=None,
    )
