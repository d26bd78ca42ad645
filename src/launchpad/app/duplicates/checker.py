"""Cross-platform duplicate detection.

The three platform checks run concurrently and every branch resolves to a
DuplicateMatch: a failure on one platform (including a missing credential)
is logged and reported as "not found" so creation can proceed.  A URL the
user supplied for a platform short-circuits that platform's query.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AbstractSet, Any, Awaitable, Callable

from ..errors import LaunchpadError, NotConnected
from ..models import (
    DuplicateCheckResult,
    DuplicateMatch,
    ExistingUrls,
    Platform,
    Resolution,
    Resolutions,
)
from ..provisioning.records import RegistryProjects
from ..urls import parse_document_url, parse_task_project_url

logger = logging.getLogger(__name__)

ALL_PLATFORMS = frozenset(Platform)


def _names_overlap(a: str, b: str) -> bool:
    a = a.lower().strip()
    b = b.lower().strip()
    return bool(a and b) and (a in b or b in a)


def default_resolutions(result: DuplicateCheckResult) -> Resolutions:
    """Suggested resolution per platform for a duplicate check result."""
    return Resolutions(
        registry=Resolution.UPDATE if result.registry.found else Resolution.CREATE,
        task_tracker=(
            Resolution.USE_EXISTING if result.task_tracker.found else Resolution.CREATE
        ),
        documents=Resolution.USE_EXISTING if result.documents.found else Resolution.CREATE,
    )


class DuplicateChecker:
    def __init__(
        self,
        *,
        registry: RegistryProjects,
        task_client: Any,
        document_client: Any,
    ) -> None:
        self._registry = registry
        self._tasks = task_client
        self._documents = document_client

    async def check(
        self,
        name: str,
        *,
        workspace_id: str | None = None,
        shared_drive_id: str | None = None,
        parent_folder_id: str | None = None,
        existing_urls: ExistingUrls | None = None,
        platforms: AbstractSet[Platform] = ALL_PLATFORMS,
    ) -> DuplicateCheckResult:
        urls = existing_urls or ExistingUrls()
        settings = self._registry.settings
        if not settings.duplicate_check_enabled:
            platforms = frozenset()
        workspace_id = workspace_id or settings.task_workspace_id or None
        shared_drive_id = shared_drive_id or settings.documents_shared_drive_id or None
        parent_folder_id = parent_folder_id or settings.documents_parent_folder_id or None

        registry, task_tracker, documents = await asyncio.gather(
            self._guard(
                Platform.REGISTRY,
                platforms,
                lambda: self._check_registry(name),
            ),
            self._guard(
                Platform.TASK_TRACKER,
                platforms,
                lambda: self._check_task_tracker(name, workspace_id, urls.task_project_url),
            ),
            self._guard(
                Platform.DOCUMENTS,
                platforms,
                lambda: self._check_documents(
                    name, shared_drive_id, parent_folder_id, urls.scoping_doc_url,
                ),
            ),
        )
        result = DuplicateCheckResult(
            registry=registry, task_tracker=task_tracker, documents=documents,
        )
        logger.info(
            "Duplicate check for %r: registry=%s task_tracker=%s documents=%s",
            name,
            registry.found,
            task_tracker.found,
            documents.found,
            extra={"has_duplicates": result.has_duplicates},
        )
        return result

    async def _guard(
        self,
        platform: Platform,
        platforms: AbstractSet[Platform],
        check: Callable[[], Awaitable[DuplicateMatch]],
    ) -> DuplicateMatch:
        if platform not in platforms:
            return DuplicateMatch(platform=platform, skipped=True)
        try:
            return await check()
        except NotConnected as exc:
            logger.info("Duplicate check skipped for %s: %s", platform.value, exc)
            return DuplicateMatch(platform=platform, skipped=True, error=str(exc))
        except LaunchpadError as exc:
            logger.warning(
                "Duplicate check failed for %s: %s", platform.value, exc,
                extra={"platform": platform.value, "error_code": exc.code},
            )
            return DuplicateMatch(platform=platform, error=str(exc))
        except Exception as exc:
            logger.exception("Duplicate check crashed for %s", platform.value)
            return DuplicateMatch(platform=platform, error=str(exc))

    async def _check_registry(self, name: str) -> DuplicateMatch:
        records = await self._registry.find_projects_by_name(name)
        if not records:
            return DuplicateMatch(platform=Platform.REGISTRY)
        record = records[0]
        name_field = self._registry_name_field
        return DuplicateMatch(
            platform=Platform.REGISTRY,
            found=True,
            matched_id=record["id"],
            url=self._registry.record_url(record["id"]),
            matched_name=(record.get("fields") or {}).get(name_field),
        )

    @property
    def _registry_name_field(self) -> str:
        return self._registry.settings.project_fields["name"]

    async def _check_task_tracker(
        self, name: str, workspace_id: str | None, user_url: str | None,
    ) -> DuplicateMatch:
        if user_url:
            return DuplicateMatch(
                platform=Platform.TASK_TRACKER,
                found=True,
                matched_id=parse_task_project_url(user_url),
                url=user_url,
                user_provided=True,
            )
        if not workspace_id:
            return DuplicateMatch(platform=Platform.TASK_TRACKER, skipped=True)

        projects = await self._tasks.typeahead_projects(workspace_id, name)
        for project in projects:
            if _names_overlap(project.get("name") or "", name):
                return DuplicateMatch(
                    platform=Platform.TASK_TRACKER,
                    found=True,
                    matched_id=project.get("gid"),
                    url=project.get("permalink_url"),
                    matched_name=project.get("name"),
                )
        return DuplicateMatch(platform=Platform.TASK_TRACKER)

    async def _check_documents(
        self,
        name: str,
        shared_drive_id: str | None,
        parent_folder_id: str | None,
        user_url: str | None,
    ) -> DuplicateMatch:
        if user_url:
            return DuplicateMatch(
                platform=Platform.DOCUMENTS,
                found=True,
                matched_id=parse_document_url(user_url),
                url=user_url,
                user_provided=True,
            )

        folders = await self._documents.search_folders(
            name, shared_drive_id=shared_drive_id, parent_folder_id=parent_folder_id,
        )
        wanted = name.lower()
        for folder in folders:
            if (folder.get("name") or "").lower() == wanted:
                return DuplicateMatch(
                    platform=Platform.DOCUMENTS,
                    found=True,
                    matched_id=folder.get("id"),
                    url=folder.get("webViewLink"),
                    matched_name=folder.get("name"),
                )
        return DuplicateMatch(platform=Platform.DOCUMENTS)
