"""Shared fixtures for lifecycle hook tests."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from collab_lifecycle.config import LifecycleConfig

REPO_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def config(tmp_path):
    return LifecycleConfig(project_dir=tmp_path)


@pytest.fixture
def hook_env(tmp_path):
    """Environment for running the hook as a real subprocess against tmp_path."""
    env = dict(os.environ)
    env["CLAUDE_PROJECT_DIR"] = str(tmp_path)
    env["PYTHONPATH"] = os.pathsep.join(
        p for p in (str(REPO_ROOT), env.get("PYTHONPATH", "")) if p
    )
    return env


def spawn_hook(payload, env) -> subprocess.Popen:
    """Start one hook process and feed it payload (dict or raw string)."""
    raw = payload if isinstance(payload, str) else json.dumps(payload)
    proc = subprocess.Popen(
        [sys.executable, "-m", "collab_lifecycle"],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env,
        cwd=str(REPO_ROOT),
    )
    proc.stdin.write(raw.encode("utf-8"))
    proc.stdin.close()
    return proc


def wait_hook(proc: subprocess.Popen, timeout: float = 60) -> subprocess.CompletedProcess:
    """Wait for a spawned hook. Its stdin is already closed, so no communicate()."""
    returncode = proc.wait(timeout=timeout)
    stdout = proc.stdout.read()
    stderr = proc.stderr.read()
    proc.stdout.close()
    proc.stderr.close()
    return subprocess.CompletedProcess(proc.args, returncode, stdout, stderr)


@pytest.fixture
def run_hook(hook_env):
    """Run the hook once and return its CompletedProcess result."""

    def _run(payload):
        return wait_hook(spawn_hook(payload, hook_env), timeout=30)

    return _run
