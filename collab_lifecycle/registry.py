"""Active-session registry: the set of background sessions currently running.

The registry is a JSON array of session records. Each hook invocation is its
own process, so every mutation holds an exclusive flock on a sibling lock
file for the whole read-modify-write span. The new document is written to a
temporary file and renamed into place, which lets external tooling read the
registry at any time without taking the lock.

Orphaned entries (a start whose stop never arrives) are left alone here;
expiring them is up to whoever inspects the registry.
"""

from __future__ import annotations

import contextlib
import fcntl
import json
import logging
import os
from pathlib import Path
from typing import Iterator, Optional

from pydantic import ValidationError

from .errors import RegistryCorruptError
from .models import ActiveSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    def __init__(self, path: Path, lock_path: Optional[Path] = None):
        self.path = Path(path)
        self.lock_path = (
            Path(lock_path) if lock_path else self.path.with_name(f".{self.path.name}.lock")
        )

    @contextlib.contextmanager
    def _locked(self) -> Iterator[None]:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.lock_path, "a") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _read(self) -> list[ActiveSession]:
        if not self.path.exists():
            return []
        text = self.path.read_text()
        if not text.strip():
            return []
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RegistryCorruptError(f"{self.path} is not valid JSON: {e.msg}") from e
        if not isinstance(data, list):
            raise RegistryCorruptError(f"{self.path} does not hold a session array")
        try:
            return [ActiveSession.model_validate(item) for item in data]
        except ValidationError as e:
            raise RegistryCorruptError(
                f"{self.path} holds {e.error_count()} invalid session field(s)"
            ) from e

    def _write(self, sessions: list[ActiveSession]) -> None:
        tmp_path = self.path.with_name(f".{self.path.name}.{os.getpid()}.tmp")
        try:
            tmp_path.write_text(
                json.dumps([s.model_dump() for s in sessions], indent=2) + "\n"
            )
            os.replace(tmp_path, self.path)
        except OSError:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise

    def register(self, session: ActiveSession) -> bool:
        """Add a session. Returns False if the id is already registered."""
        with self._locked():
            sessions = self._read()
            if any(s.id == session.id for s in sessions):
                logger.info("Session %s already registered", session.id)
                return False
            sessions.append(session)
            self._write(sessions)
        logger.info("Registered session %s (%s)", session.id, session.type)
        return True

    def unregister(self, session_id: str) -> bool:
        """Remove a session. Returns False if no session has that id."""
        with self._locked():
            sessions = self._read()
            remaining = [s for s in sessions if s.id != session_id]
            if len(remaining) == len(sessions):
                logger.info("No registered session %s; nothing to remove", session_id)
                return False
            self._write(remaining)
        logger.info("Unregistered session %s", session_id)
        return True

    def list_sessions(self) -> list[ActiveSession]:
        """Snapshot of the registry. Safe to call without the lock."""
        return self._read()
