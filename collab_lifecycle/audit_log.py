"""Append-only JSONL audit log.

Every record is serialized before the file is touched and written with a
single write() on an O_APPEND descriptor under an exclusive flock, so two
hook processes can never interleave partial lines. Nothing in this module
truncates, rewrites, or rotates the file.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
from pathlib import Path
from typing import Iterator

from .models import AuditRecord

logger = logging.getLogger(__name__)


class AuditLog:
    def __init__(self, path: Path):
        self.path = Path(path)

    def append(self, record: AuditRecord) -> None:
        """Append one record as one line. Raises OSError on I/O failure."""
        payload = record.to_line().encode("utf-8")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.path), os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            try:
                self._write_line(fd, payload)
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    def _write_line(self, fd: int, payload: bytes) -> None:
        view = memoryview(payload)
        try:
            while view:
                written = os.write(fd, view)
                if written <= 0:
                    raise OSError(f"no progress writing to {self.path}")
                view = view[written:]
        except OSError:
            # Terminate a torn line so the next record starts on its own line.
            if len(view) < len(payload):
                try:
                    os.write(fd, b"\n")
                except OSError:
                    pass
            raise

    def read_records(self) -> Iterator[dict]:
        """Yield parsed records, skipping blank or corrupt lines.

        A crash mid-write can leave a torn final line; everything before it
        stays readable.
        """
        if not self.path.exists():
            return
        with open(self.path, "r", encoding="utf-8", errors="replace") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug("Skipping corrupt line %d in %s", lineno, self.path)
                    continue
                if isinstance(record, dict):
                    yield record
