"""Tests for the append-only audit log."""

from __future__ import annotations

import errno
import json
import os
from unittest import mock

import pytest

from collab_lifecycle.audit_log import AuditLog
from collab_lifecycle.models import AuditRecord, EventKind


def _record(subject="Task", **data):
    return AuditRecord(kind=EventKind.TOOL_INVOCATION, subject=subject, data=data)


class TestAppend:
    def test_creates_parent_directory(self, tmp_path):
        log = AuditLog(tmp_path / "deep" / "nested" / "events.jsonl")
        log.append(_record())
        assert log.path.exists()
        assert len(log.path.read_text().splitlines()) == 1

    def test_one_line_per_record(self, tmp_path):
        log = AuditLog(tmp_path / "events.jsonl")
        for i in range(5):
            log.append(_record(index=i))
        lines = log.path.read_text().splitlines()
        assert [json.loads(line)["data"]["index"] for line in lines] == list(range(5))

    def test_existing_bytes_never_rewritten(self, tmp_path):
        log = AuditLog(tmp_path / "events.jsonl")
        log.append(_record("Bash"))
        log.append(_record("Edit"))
        snapshot = log.path.read_bytes()

        log.append(_record("Task"))
        after = log.path.read_bytes()
        assert after.startswith(snapshot)
        assert len(after) > len(snapshot)

    def test_serialization_failure_writes_nothing(self, tmp_path):
        log = AuditLog(tmp_path / "events.jsonl")
        log.append(_record())
        before = log.path.read_bytes()
        with mock.patch.object(AuditRecord, "to_line", side_effect=ValueError("boom")):
            with pytest.raises(ValueError):
                log.append(_record())
        assert log.path.read_bytes() == before

    def test_partial_writes_are_completed(self, tmp_path):
        real_write = os.write

        def dribble(fd, data):
            return real_write(fd, bytes(data[:16]))

        log = AuditLog(tmp_path / "events.jsonl")
        with mock.patch("collab_lifecycle.audit_log.os.write", side_effect=dribble):
            log.append(_record("Bash", prompt="x" * 100))
        [record] = list(log.read_records())
        assert record["data"]["prompt"] == "x" * 100

    def test_failed_write_keeps_damage_to_one_line(self, tmp_path):
        log = AuditLog(tmp_path / "events.jsonl")
        log.append(_record("Bash"))

        real_write = os.write
        calls = []

        def disk_fills_up(fd, data):
            calls.append(bytes(data))
            if len(calls) == 1:
                return real_write(fd, bytes(data[:10]))
            if len(calls) == 2:
                raise OSError(errno.ENOSPC, "No space left on device")
            return real_write(fd, data)

        with mock.patch("collab_lifecycle.audit_log.os.write", side_effect=disk_fills_up):
            with pytest.raises(OSError):
                log.append(_record("Edit"))
        assert calls[-1] == b"\n"

        log.append(_record("Task"))
        assert [r["subject"] for r in log.read_records()] == ["Bash", "Task"]
        assert len(log.path.read_text().splitlines()) == 3

    def test_unwritable_location_raises_oserror(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        log = AuditLog(blocker / "events.jsonl")
        with pytest.raises(OSError):
            log.append(_record())


class TestReadRecords:
    def test_missing_file_yields_nothing(self, tmp_path):
        assert list(AuditLog(tmp_path / "events.jsonl").read_records()) == []

    def test_skips_torn_and_blank_lines(self, tmp_path):
        log = AuditLog(tmp_path / "events.jsonl")
        log.append(_record("Bash"))
        with open(log.path, "a") as f:
            f.write("\n")
            f.write('{"id": "evt-torn", "kind": "tool_inv')
        records = list(log.read_records())
        assert [r["subject"] for r in records] == ["Bash"]
