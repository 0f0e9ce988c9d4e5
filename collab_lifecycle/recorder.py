"""Lifecycle hook entry point: record one event, update the registry, exit 0.

Hook protocol:
- Reads one JSON document from stdin (read to completion before parsing)
- Writes nothing to stdout or stderr
- Exit 0 always. This hook is instrumentation; it must never block or fail
  the tool call or subagent that triggered it.

Every step reports into a HookOutcome instead of raising, and run() maps any
outcome to exit status 0.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from .audit_log import AuditLog
from .config import LifecycleConfig, load_lifecycle_config, project_dir_from_env
from .errors import LifecycleError
from .models import (
    ActiveSession,
    AuditRecord,
    Event,
    EventKind,
    SessionStart,
    SessionStop,
    ToolInvocation,
    parse_event,
    truncate,
    utc_iso,
)
from .registry import SessionRegistry

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] [lifecycle-hook] %(levelname)s %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%SZ"

# Errors an internal step may raise; each is folded into the outcome.
_STEP_ERRORS = (LifecycleError, OSError, ValidationError, ValueError)


class HookOutcome(BaseModel):
    """Result of handling one hook invocation."""

    status: Literal["recorded", "ignored", "failed"] = "ignored"
    kind: Optional[EventKind] = None
    actions: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    def fail(self, step: str, exc: BaseException) -> None:
        self.errors.append(f"{step}: {type(exc).__name__}: {exc}")


def build_record(event: Event, config: LifecycleConfig, ts: float) -> AuditRecord:
    """Derive the audit record for an event, stamped with the recorder's clock."""
    if isinstance(event, ToolInvocation):
        return AuditRecord(
            ts=ts,
            kind=event.kind,
            subject=event.tool_name,
            host_session_id=event.host_session_id,
            data={
                "description": truncate(event.description, config.description_max_chars),
                "prompt": truncate(event.prompt, config.prompt_max_chars),
                "prompt_chars": len(event.prompt),
            },
        )
    return AuditRecord(
        ts=ts,
        kind=event.kind,
        subject=event.session_type,
        host_session_id=event.host_session_id,
        data={"session_id": event.session_id},
    )


def _update_registry(
    event: Event, started_at: str, config: LifecycleConfig, outcome: HookOutcome
) -> None:
    registry = SessionRegistry(config.registry_path, config.registry_lock_path)
    try:
        if isinstance(event, SessionStart):
            added = registry.register(
                ActiveSession(
                    id=event.session_id,
                    type=event.session_type,
                    started_at=started_at,
                )
            )
            outcome.actions.append(
                "session_registered" if added else "session_already_registered"
            )
        elif isinstance(event, SessionStop):
            removed = registry.unregister(event.session_id)
            outcome.actions.append(
                "session_unregistered" if removed else "session_not_found"
            )
    except _STEP_ERRORS as e:
        outcome.fail("registry", e)


def handle_event(raw: str, config: LifecycleConfig) -> HookOutcome:
    """Handle one raw hook input document. Never raises for expected failures."""
    outcome = HookOutcome()
    if not config.enabled:
        outcome.actions.append("disabled")
        return outcome

    try:
        event = parse_event(raw)
    except _STEP_ERRORS as e:
        outcome.fail("parse", e)
        outcome.status = "failed"
        return outcome

    if event is None:
        outcome.actions.append("unknown_event_kind")
        return outcome
    outcome.kind = event.kind

    ts = time.time()
    try:
        AuditLog(config.events_path).append(build_record(event, config, ts))
        outcome.actions.append("audit_appended")
    except _STEP_ERRORS as e:
        outcome.fail("audit", e)

    if isinstance(event, (SessionStart, SessionStop)):
        _update_registry(event, utc_iso(ts), config, outcome)

    outcome.status = "failed" if outcome.errors else "recorded"
    return outcome


def configure_logging(config: LifecycleConfig) -> None:
    """Send hook logs to the state dir. Falls back to silence if unwritable."""
    root = logging.getLogger("collab_lifecycle")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = False
    root.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))

    try:
        config.log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(config.log_path)
    except OSError:
        root.addHandler(logging.NullHandler())
        return
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    formatter.converter = time.gmtime
    handler.setFormatter(formatter)
    root.addHandler(handler)


def _load_config() -> LifecycleConfig:
    project_dir = project_dir_from_env()
    try:
        return load_lifecycle_config(project_dir)
    except ValidationError as e:
        config = LifecycleConfig(project_dir=project_dir)
        configure_logging(config)
        logger.warning("Invalid lifecycle settings; using defaults: %s", e)
        return config


def _read_stdin() -> str:
    stream = getattr(sys.stdin, "buffer", None)
    if stream is None:
        return sys.stdin.read()
    return stream.read().decode("utf-8", errors="replace")


def main() -> int:
    raw = _read_stdin()
    config = _load_config()
    configure_logging(config)

    outcome = handle_event(raw, config)
    if outcome.errors:
        logger.warning(
            "%s %s: %s",
            outcome.status,
            outcome.kind.value if outcome.kind else "event",
            "; ".join(outcome.errors),
        )
    else:
        logger.info(
            "%s %s: %s",
            outcome.status,
            outcome.kind.value if outcome.kind else "event",
            ", ".join(outcome.actions),
        )
    return 0


def run() -> int:
    """Console entry point. Exit status is 0 whatever happens inside."""
    # Until configure_logging() runs, nothing may fall through to stderr.
    root = logging.getLogger("collab_lifecycle")
    root.propagate = False
    if not root.handlers:
        root.addHandler(logging.NullHandler())
    try:
        main()
    except Exception as e:
        try:
            logger.error("Unhandled error: %s", e)
        except Exception:
            pass
    return 0
