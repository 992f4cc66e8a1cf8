"""
Polling sampler using psutil.

Degraded strategy for hosts without a rusage facility: the process tree is
polled at a fixed interval and the largest observed footprint is kept. The
figures are approximate and are labelled as such.
"""

import logging
import subprocess
import threading
from typing import Optional

import psutil

from cfb_common.errors import MeasurementUnavailableError
from cfb_runner.models.measurement import ResourceUsage

from ._base_sampler import ResourceSampler


logger = logging.getLogger(__name__)


class PollingSampler(ResourceSampler):
    """Sampler polling RSS and CPU times of the process tree."""

    approximate = True

    def __init__(self, name: str = "PollingSampler", interval_seconds: float = 0.2):
        """
        Initialize the polling sampler.

        Args:
            name: Name of the sampler
            interval_seconds: Polling interval in seconds
        """
        super().__init__(name)
        self.interval_seconds = interval_seconds
        self._process: Optional[psutil.Process] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._peak_bytes = 0
        self._user_cpu: Optional[float] = None
        self._system_cpu: Optional[float] = None
        self._samples = 0

    @classmethod
    def is_available(cls) -> bool:
        return True

    def attach(self, proc: subprocess.Popen) -> None:
        super().attach(proc)
        try:
            self._process = psutil.Process(proc.pid)
        except psutil.Error as exc:
            logger.warning("Cannot attach %s to pid %s: %s", self.name, proc.pid, exc)
            return
        self._stop.clear()
        self._sample()
        self._thread = threading.Thread(target=self._sampling_loop, daemon=True)
        self._thread.start()

    def _sampling_loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            if not self._sample():
                break

    def _sample(self) -> bool:
        """Take one sample; False once the root process is gone."""
        root = self._process
        if root is None:
            return False
        try:
            with root.oneshot():
                mem = root.memory_info()
                times = root.cpu_times()
            tree_rss = mem.rss
            try:
                children = root.children(recursive=True)
            except psutil.Error:
                children = []
            for child in children:
                try:
                    tree_rss += child.memory_info().rss
                except psutil.Error:
                    continue
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            return False
        except psutil.AccessDenied as exc:
            logger.debug("%s denied access to pid %s: %s", self.name, root.pid, exc)
            return False

        # Windows exposes a true peak working-set counter.
        peak = max(tree_rss, getattr(mem, "peak_wset", 0) or 0)
        with self._lock:
            self._peak_bytes = max(self._peak_bytes, peak)
            self._user_cpu = times.user + getattr(times, "children_user", 0.0)
            self._system_cpu = times.system + getattr(times, "children_system", 0.0)
            self._samples += 1
        return True

    def _stop_thread(self) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=self.interval_seconds * 2)
        self._thread = None

    def wait(self, proc: subprocess.Popen, timeout: float) -> Optional[int]:
        try:
            return proc.wait(timeout=max(timeout, 0.0))
        except subprocess.TimeoutExpired:
            return None

    def detach(self) -> None:
        self._stop_thread()
        super().detach()

    def usage(self) -> ResourceUsage:
        self._stop_thread()
        with self._lock:
            samples = self._samples
            peak = self._peak_bytes
            user, system = self._user_cpu, self._system_cpu
        if samples == 0:
            error = MeasurementUnavailableError(
                "process exited before it could be sampled",
                context={"sampler": self.name, "pid": self._pid},
            )
            logger.debug("%s", error)
            return ResourceUsage.unknown(source="psutil-poll")
        return ResourceUsage(
            peak_memory_bytes=peak or None,
            user_cpu=round(user, 3) if user is not None else None,
            system_cpu=round(system, 3) if system is not None else None,
            approximate=True,
            source="psutil-poll",
        )
