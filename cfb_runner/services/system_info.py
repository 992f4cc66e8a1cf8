"""Host description for report headers.

Collects the same facts the benchmark reports always started with: OS,
kernel, architecture, CPU model and total memory.
"""

from __future__ import annotations

import platform
import socket
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import psutil


def _cpu_model() -> str:
    """Best-effort CPU model name."""
    cpuinfo = Path("/proc/cpuinfo")
    if cpuinfo.exists():
        try:
            for line in cpuinfo.read_text(errors="replace").splitlines():
                if line.lower().startswith("model name") and ":" in line:
                    return line.split(":", 1)[1].strip()
        except OSError:
            pass
    return platform.processor() or platform.machine() or "unknown"


@dataclass(frozen=True)
class HostInfo:
    hostname: str
    os: str
    kernel: str
    architecture: str
    cpu_model: str
    cpu_count: int | None
    total_memory_bytes: int | None
    python: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def describe(self) -> str:
        """One-line summary used on the console."""
        cores = f"{self.cpu_count} cores" if self.cpu_count else "unknown cores"
        return f"{self.os} {self.kernel} ({self.architecture}), {self.cpu_model}, {cores}"


def collect_host_info() -> HostInfo:
    try:
        total_memory: int | None = int(psutil.virtual_memory().total)
    except (OSError, psutil.Error):
        total_memory = None
    return HostInfo(
        hostname=socket.gethostname(),
        os=platform.system() or "unknown",
        kernel=platform.release() or "unknown",
        architecture=platform.machine() or "unknown",
        cpu_model=_cpu_model(),
        cpu_count=psutil.cpu_count(logical=True),
        total_memory_bytes=total_memory,
        python=platform.python_version(),
    )
