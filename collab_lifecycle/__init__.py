"""Lifecycle event hook for the Collaborative Intelligence System.

One short-lived process per tool or subagent event: append an audit record,
keep the active-session registry current, exit 0 no matter what happened.
"""

from .models import ActiveSession, AuditRecord, EventKind
from .recorder import HookOutcome, handle_event, main, run

__all__ = [
    "ActiveSession",
    "AuditRecord",
    "EventKind",
    "HookOutcome",
    "handle_event",
    "main",
    "run",
]
