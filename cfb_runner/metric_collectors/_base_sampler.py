"""
Base sampler abstract class for per-process resource measurement.

A sampler is attached to a freshly started child process, owns waiting for
it, and reports the resource usage once the process has ended.
"""

from abc import ABC, abstractmethod
import logging
import subprocess
from typing import Optional

from cfb_runner.models.measurement import ResourceUsage


logger = logging.getLogger(__name__)


class ResourceSampler(ABC):
    """Abstract base class for all resource samplers."""

    #: True when figures are estimates rather than kernel accounting data.
    approximate: bool = False

    def __init__(self, name: str):
        """
        Initialize the sampler.

        Args:
            name: Name of the sampling strategy
        """
        self.name = name
        self._pid: Optional[int] = None
        #: Set when the process ended but its exit status could not be read.
        self.exit_unknown = False

    @classmethod
    @abstractmethod
    def is_available(cls) -> bool:
        """Return True when the host supports this strategy."""

    def attach(self, proc: subprocess.Popen) -> None:
        """Start tracking a newly spawned process."""
        self._pid = proc.pid

    @abstractmethod
    def wait(self, proc: subprocess.Popen, timeout: float) -> Optional[int]:
        """
        Wait up to ``timeout`` seconds for the process to exit.

        Returns:
            The exit code (negative for a signal) or None if still running.
            None is also returned when the process is gone but its status
            was lost; ``exit_unknown`` tells the two apart.
        """

    @abstractmethod
    def usage(self) -> ResourceUsage:
        """Return the resource usage gathered for the attached process."""

    def detach(self) -> None:
        """Stop tracking without waiting for the process to finish."""
        logger.debug("%s sampler detached from pid %s", self.name, self._pid)
        self._pid = None
