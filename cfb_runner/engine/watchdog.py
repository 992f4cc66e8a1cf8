"""
Deadline guard for detached processes.

Once the runner stops waiting for a process, a small watchdog process keeps
its timeout alive: at the deadline the process group and every descendant
get SIGTERM, then SIGKILL after the grace period. The watchdog runs in its
own session so it outlives the orchestrator that started it.

Usage: ``python -m cfb_runner.engine.watchdog PID SECONDS [GRACE]``
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import time
from typing import List, Optional, Sequence

import psutil

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1


def _finished(proc: psutil.Process) -> bool:
    try:
        return proc.status() == psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return True


def wait_until(proc: psutil.Process, deadline: float) -> bool:
    """Poll until ``proc`` ends or ``deadline`` (monotonic) passes; True if it ended."""
    while time.monotonic() < deadline:
        if _finished(proc):
            return True
        time.sleep(min(POLL_INTERVAL, max(deadline - time.monotonic(), 0.0)))
    return _finished(proc)


def kill_tree(proc: psutil.Process, grace_seconds: float) -> None:
    """SIGTERM the group and descendants of ``proc``, then SIGKILL survivors."""
    try:
        descendants = proc.children(recursive=True)
    except psutil.Error:
        descendants = []
    targets = [proc, *descendants]

    for sig in (signal.SIGTERM, signal.SIGKILL):
        if os.name == "posix":
            try:
                os.killpg(proc.pid, sig)
            except (ProcessLookupError, PermissionError):
                pass
        for target in targets:
            try:
                target.send_signal(sig)
            except psutil.Error:
                continue
        if sig == signal.SIGTERM:
            if wait_until(proc, time.monotonic() + grace_seconds):
                _, alive = psutil.wait_procs(descendants, timeout=1.0)
                if not alive:
                    return
                targets = alive


def guard(pid: int, seconds: float, grace_seconds: float) -> bool:
    """Enforce the deadline on ``pid``; True when it had to be killed."""
    try:
        proc = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return False
    if wait_until(proc, time.monotonic() + max(seconds, 0.0)):
        return False
    logger.warning("Detached pid %s exceeded its timeout; terminating process tree", pid)
    kill_tree(proc, grace_seconds)
    return True


def spawn(pid: int, seconds: float, grace_seconds: float) -> subprocess.Popen:
    """Start a watchdog process guarding ``pid`` for ``seconds`` more."""
    cmd = [
        sys.executable,
        "-m",
        __name__,
        str(pid),
        f"{max(seconds, 0.0):.3f}",
        f"{grace_seconds:.3f}",
    ]
    kwargs: dict = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
    }
    if os.name == "posix":
        kwargs["start_new_session"] = True
    else:  # pragma: no cover - Windows
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    return subprocess.Popen(cmd, **kwargs)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args: List[str] = list(sys.argv[1:] if argv is None else argv)
    if len(args) not in (2, 3):
        print(__doc__, file=sys.stderr)
        return 2
    grace = float(args[2]) if len(args) == 3 else 5.0
    guard(int(args[0]), float(args[1]), grace)
    return 0


if __name__ == "__main__":
    sys.exit(main())
