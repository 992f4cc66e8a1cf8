"""
Rusage sampler reading the kernel accounting record of a reaped child.

This is the preferred strategy: ``os.wait4`` returns the exact peak resident
set size and the user/system CPU split, the same figures ``/usr/bin/time``
prints.
"""

import logging
import os
import subprocess
import sys
import time
from typing import Any, Optional

from cfb_common.errors import MeasurementUnavailableError
from cfb_runner.models.measurement import ResourceUsage

from ._base_sampler import ResourceSampler


logger = logging.getLogger(__name__)


def maxrss_to_bytes(maxrss: int, platform: str = sys.platform) -> Optional[int]:
    """Convert ``ru_maxrss`` to bytes (KiB on Linux, bytes on macOS)."""
    if maxrss <= 0:
        return None
    if platform == "darwin":
        return int(maxrss)
    return int(maxrss) * 1024


class RusageSampler(ResourceSampler):
    """Sampler reaping the child with ``os.wait4``."""

    approximate = False

    def __init__(self, name: str = "RusageSampler", poll_interval: float = 0.02):
        super().__init__(name)
        self.poll_interval = poll_interval
        self._rusage: Any = None

    @classmethod
    def is_available(cls) -> bool:
        return hasattr(os, "wait4")

    def wait(self, proc: subprocess.Popen, timeout: float) -> Optional[int]:
        if proc.returncode is not None:
            return proc.returncode
        deadline = time.monotonic() + max(timeout, 0.0)
        while True:
            try:
                pid, status, rusage = os.wait4(proc.pid, os.WNOHANG)
            except ChildProcessError:
                # Reaped by someone else; status and accounting record are gone.
                logger.warning("pid %s was reaped outside the sampler", proc.pid)
                self.exit_unknown = True
                return None
            if pid == proc.pid:
                self._rusage = rusage
                proc.returncode = os.waitstatus_to_exitcode(status)
                return proc.returncode
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            time.sleep(min(self.poll_interval, remaining))

    def usage(self) -> ResourceUsage:
        if self._rusage is None:
            error = MeasurementUnavailableError(
                "no rusage record for process",
                context={"sampler": self.name, "pid": self._pid},
            )
            logger.debug("%s", error)
            return ResourceUsage.unknown(source="rusage")
        return ResourceUsage(
            peak_memory_bytes=maxrss_to_bytes(self._rusage.ru_maxrss),
            user_cpu=round(float(self._rusage.ru_utime), 3),
            system_cpu=round(float(self._rusage.ru_stime), 3),
            approximate=False,
            source="rusage",
        )
