#!/usr/bin/env python3
"""PreToolUse / SubagentStart / SubagentStop hook: record lifecycle events.

Appends one audit record per event to .avt/lifecycle/events.jsonl and keeps
.avt/lifecycle/active-sessions.json in step with subagent starts and stops.

Hook protocol:
- Reads JSON from stdin (hook_event_name, tool_name, tool_input, agent_id, ...)
- Writes nothing to stdout
- Exit 0 always (instrumentation never blocks the agent)
"""

import sys
from pathlib import Path

# Make the package importable when the hook runs from a plain checkout.
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

try:
    from collab_lifecycle.recorder import run
except Exception:
    sys.exit(0)

if __name__ == "__main__":
    sys.exit(run())
