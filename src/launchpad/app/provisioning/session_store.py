"""Per-submission provisioning state.

The provisioner loads the session before running and saves it whenever
a step records progress, so a re-invocation resumes where the previous run
stopped.  Last write wins; callers must not run two provisioners for the
same submission concurrently.
"""

from __future__ import annotations

import asyncio
import json
import os
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from ..models import CreatedResourceSet


@dataclass(frozen=True, slots=True)
class ProvisioningSession:
    submission_id: str
    resources: CreatedResourceSet = field(default_factory=CreatedResourceSet)
    snapshot: dict[str, Any] | None = None
    """Last submission snapshot provisioned, as ``ProjectSubmission.to_dict()``."""
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "resources": self.resources.to_dict(),
            "snapshot": self.snapshot,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProvisioningSession:
        updated_at = data.get("updated_at")
        return cls(
            submission_id=data["submission_id"],
            resources=CreatedResourceSet.from_dict(data.get("resources")),
            snapshot=data.get("snapshot"),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )


class SessionStore(Protocol):
    async def load(self, submission_id: str) -> ProvisioningSession | None:
        ...

    async def save(self, session: ProvisioningSession) -> ProvisioningSession:
        ...

    async def delete(self, submission_id: str) -> None:
        ...


def _touch(session: ProvisioningSession) -> ProvisioningSession:
    return replace(session, updated_at=datetime.now(timezone.utc))


class InMemorySessionStore:
    """Session store for tests and single-process use."""

    def __init__(self) -> None:
        self._sessions: dict[str, ProvisioningSession] = {}
        self.saves = 0

    async def load(self, submission_id: str) -> ProvisioningSession | None:
        return self._sessions.get(submission_id)

    async def save(self, session: ProvisioningSession) -> ProvisioningSession:
        session = _touch(session)
        self._sessions[session.submission_id] = session
        self.saves += 1
        return session

    async def delete(self, submission_id: str) -> None:
        self._sessions.pop(submission_id, None)


class JsonFileSessionStore:
    """All sessions in one JSON document, rewritten atomically on save.

    File access runs in a worker thread so the event loop keeps serving
    requests; the lock serialises read-modify-write cycles within a process.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        with self._path.open(encoding="utf-8") as fh:
            return json.load(fh)

    def _write(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, sort_keys=True)
        os.replace(tmp, self._path)

    async def load(self, submission_id: str) -> ProvisioningSession | None:
        raw = (await asyncio.to_thread(self._read)).get(submission_id)
        return ProvisioningSession.from_dict(raw) if raw else None

    async def save(self, session: ProvisioningSession) -> ProvisioningSession:
        session = _touch(session)
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[session.submission_id] = session.to_dict()
            await asyncio.to_thread(self._write, data)
        return session

    async def delete(self, submission_id: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if data.pop(submission_id, None) is not None:
                await asyncio.to_thread(self._write, data)
