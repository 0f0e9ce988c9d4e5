"""Pydantic models for hook events, audit records, and active sessions."""

from __future__ import annotations

import json
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import MalformedEventError


class EventKind(str, Enum):
    TOOL_INVOCATION = "tool_invocation"
    SESSION_START = "session_start"
    SESSION_STOP = "session_stop"


# Host-native hook names, used when the event carries no explicit "kind".
HOST_EVENT_KINDS = {
    "PreToolUse": EventKind.TOOL_INVOCATION,
    "PostToolUse": EventKind.TOOL_INVOCATION,
    "SubagentStart": EventKind.SESSION_START,
    "SubagentStop": EventKind.SESSION_STOP,
}


class _Event(BaseModel):
    model_config = ConfigDict(extra="ignore")

    host_session_id: str = ""


class ToolInvocation(_Event):
    kind: EventKind = EventKind.TOOL_INVOCATION
    tool_name: str = Field(min_length=1)
    description: str = ""
    prompt: str = ""


class SessionStart(_Event):
    kind: EventKind = EventKind.SESSION_START
    session_id: str = Field(min_length=1)
    session_type: str = "unknown"


class SessionStop(_Event):
    kind: EventKind = EventKind.SESSION_STOP
    session_id: str = Field(min_length=1)
    session_type: str = "unknown"


Event = Union[ToolInvocation, SessionStart, SessionStop]

_EVENT_MODELS = {
    EventKind.TOOL_INVOCATION: ToolInvocation,
    EventKind.SESSION_START: SessionStart,
    EventKind.SESSION_STOP: SessionStop,
}


def utc_iso(ts: float) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(ts))


class AuditRecord(BaseModel):
    """One line of the audit log. Never edited once written."""

    id: str = Field(default_factory=lambda: f"evt-{uuid.uuid4().hex[:8]}")
    ts: float = Field(default_factory=time.time)
    ts_iso: str = ""
    kind: EventKind
    subject: str
    host_session_id: str = ""
    data: dict = Field(default_factory=dict)

    def model_post_init(self, __context) -> None:
        if not self.ts_iso:
            self.ts_iso = utc_iso(self.ts)

    def to_line(self) -> str:
        """Compact single-line JSON, newline terminated."""
        return self.model_dump_json() + "\n"


class ActiveSession(BaseModel):
    id: str
    type: str = "unknown"
    started_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


def truncate(text: str, limit: int) -> str:
    """Bound text to at most `limit` characters."""
    if limit <= 0:
        return ""
    return text if len(text) <= limit else text[:limit]


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        # Lone surrogates (UTF-16 cut points) cannot be written as UTF-8.
        return value.encode("utf-8", "replace").decode("utf-8")
    return json.dumps(value)


def _resolve_kind(doc: dict) -> Optional[EventKind]:
    raw_kind = doc.get("kind")
    if raw_kind is None:
        host_name = doc.get("hook_event_name")
        if not isinstance(host_name, str):
            return None
        return HOST_EVENT_KINDS.get(host_name)
    if not isinstance(raw_kind, str):
        return None
    try:
        return EventKind(raw_kind)
    except ValueError:
        return None


def _flatten_host_fields(kind: EventKind, doc: dict) -> dict:
    """Map the host's native hook payload onto the flat event schema.

    Flat fields already present in the document take precedence.
    """
    flat = dict(doc)
    # The host's own session id names the conversation, not the subagent.
    flat["host_session_id"] = _as_text(doc.get("host_session_id") or "")
    if kind is EventKind.TOOL_INVOCATION:
        tool_input = doc.get("tool_input")
        if not isinstance(tool_input, dict):
            tool_input = {}
        flat["tool_name"] = _as_text(doc.get("tool_name"))
        flat["description"] = _as_text(
            doc.get("description", tool_input.get("description"))
        )
        flat["prompt"] = _as_text(doc.get("prompt", tool_input.get("prompt")))
        if not flat["host_session_id"] and "kind" not in doc:
            flat["host_session_id"] = _as_text(doc.get("session_id"))
    else:
        if "kind" in doc:
            flat["session_id"] = _as_text(doc.get("session_id"))
        else:
            flat["session_id"] = _as_text(doc.get("agent_id"))
            if not flat["host_session_id"]:
                flat["host_session_id"] = _as_text(doc.get("session_id"))
        flat["session_type"] = _as_text(
            doc.get("session_type") or doc.get("agent_type") or "unknown"
        )
    return flat


def parse_event(raw: str) -> Optional[Event]:
    """Parse one hook input document.

    Returns None for event kinds this hook does not know about.
    Raises MalformedEventError for anything that is not a usable event.
    """
    if not raw or not raw.strip():
        raise MalformedEventError("empty hook input")
    try:
        doc = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedEventError(f"hook input is not JSON: {e.msg}") from e
    if not isinstance(doc, dict):
        raise MalformedEventError(
            f"hook input must be a JSON object, got {type(doc).__name__}"
        )

    kind = _resolve_kind(doc)
    if kind is None:
        return None

    try:
        return _EVENT_MODELS[kind].model_validate(_flatten_host_fields(kind, doc))
    except ValidationError as e:
        raise MalformedEventError(
            f"invalid {kind.value} event: {e.error_count()} error(s)"
        ) from e
