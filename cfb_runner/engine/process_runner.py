"""Run one external command with a timeout, a log artifact and tree cleanup."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

import psutil

from cfb_common.errors import ExecutionTimeoutError
from cfb_runner.engine import watchdog
from cfb_runner.metric_collectors import ResourceSampler, SamplerFactory, select_sampler
from cfb_runner.models.measurement import Outcome, ResourceUsage

try:
    import resource
except ImportError:  # pragma: no cover - Windows
    resource = None  # type: ignore[assignment]


logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 5.0
MAX_OUTPUT_BYTES = 1024 * 1024


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of a single external process execution."""

    command: tuple[str, ...]
    status: Outcome
    exit_code: int | None
    wall_time: float
    usage: ResourceUsage
    pid: int | None
    log_path: Path
    output: str = ""

    @property
    def cpu_percent(self) -> float | None:
        return self.usage.cpu_percent(self.wall_time)

    def stats_line(self) -> str:
        """Single summary line in the spirit of ``/usr/bin/time -f``."""

        def _fmt(value: float | None, suffix: str = "s") -> str:
            return "N/A" if value is None else f"{value:.2f}{suffix}"

        peak = self.usage.peak_memory_bytes
        memory = "N/A" if peak is None else f"{peak // 1024}kB"
        if peak is not None and self.usage.approximate:
            memory = f"~{memory}"
        cpu = self.cpu_percent
        return (
            f"STATS: Real={self.wall_time:.2f}s User={_fmt(self.usage.user_cpu)} "
            f"System={_fmt(self.usage.system_cpu)} MaxMemory={memory} "
            f"CPUUsage={'N/A' if cpu is None else f'{cpu:.0f}%'} "
            f"Status={self.status.value} ExitCode={self.exit_code}"
        )


def _address_space_limiter(limit_mb: int) -> Callable[[], None]:
    limit = int(limit_mb) * 1024 * 1024

    def _apply() -> None:
        resource.setrlimit(resource.RLIMIT_AS, (limit, limit))

    return _apply


def _signal_group(pid: int, sig: int) -> None:
    try:
        os.killpg(pid, sig)
    except (ProcessLookupError, PermissionError):
        pass


def _read_output(log_path: Path, offset: int, limit: int = MAX_OUTPUT_BYTES) -> str:
    try:
        with open(log_path, "rb") as handle:
            handle.seek(0, os.SEEK_END)
            end = handle.tell()
            start = max(offset, end - limit)
            handle.seek(start)
            data = handle.read(end - start)
    except OSError as exc:
        logger.warning("Could not read back log %s: %s", log_path, exc)
        return ""
    return data.decode("utf-8", errors="replace")


class ProcessRunner:
    """Launch external commands and measure them with a resource sampler."""

    def __init__(
        self,
        sampler_factory: Optional[SamplerFactory] = None,
        *,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
    ) -> None:
        self._sampler_factory = sampler_factory or select_sampler()
        self.grace_seconds = grace_seconds

    @property
    def sampler_name(self) -> str:
        return getattr(self._sampler_factory, "__name__", str(self._sampler_factory))

    def _popen_kwargs(self, workdir: Path, memory_limit_mb: int | None) -> dict:
        kwargs: dict = {
            "cwd": workdir,
            "stdin": subprocess.DEVNULL,
            "stderr": subprocess.STDOUT,
        }
        if os.name == "posix":
            kwargs["start_new_session"] = True
        else:  # pragma: no cover - Windows
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        if memory_limit_mb:
            if resource is None:
                logger.warning("Memory limits are not supported on this host; ignoring")
            else:
                kwargs["preexec_fn"] = _address_space_limiter(memory_limit_mb)
        return kwargs

    def run(
        self,
        command: Sequence[str],
        working_directory: Path | str,
        timeout: float,
        *,
        log_path: Path,
        memory_limit_mb: int | None = None,
        detach_after: float | None = None,
        append: bool = False,
    ) -> ProcessResult:
        """
        Run ``command`` in ``working_directory`` and wait for it.

        stdout and stderr go straight into ``log_path`` so partial output
        survives a timeout. The working directory applies to the child only.

        Raises:
            OSError: the command could not be started.
        """
        cmd = tuple(str(part) for part in command)
        workdir = Path(working_directory).expanduser()
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        sampler = self._sampler_factory()

        with open(log_path, "ab" if append else "wb") as log:
            log.write(f"$ {' '.join(cmd)}\n# cwd: {workdir}\n".encode())
            log.flush()
            output_offset = log.tell()

            logger.info("Running %s (cwd=%s, timeout=%ss)", " ".join(cmd), workdir, timeout)
            start = time.perf_counter()
            proc = subprocess.Popen(cmd, stdout=log, **self._popen_kwargs(workdir, memory_limit_mb))
            sampler.attach(proc)
            try:
                status, exit_code, ended = self._supervise(
                    proc, sampler, timeout, detach_after, start
                )
            except BaseException:
                self.terminate_tree(proc, sampler)
                raise
            wall_time = round((ended or time.perf_counter()) - start, 3)

            if status is Outcome.DETACHED:
                usage = ResourceUsage.unknown(source=sampler.name)
            else:
                usage = sampler.usage()
            output = _read_output(log_path, output_offset)
            result = ProcessResult(
                command=cmd,
                status=status,
                exit_code=exit_code,
                wall_time=wall_time,
                usage=usage,
                pid=proc.pid,
                log_path=log_path,
                output=output,
            )
            log.write(f"\n{result.stats_line()}\n".encode())

        if status is Outcome.DETACHED:
            # The Popen object is dropped; the watchdog enforces what is left of the timeout.
            remaining = max(timeout - wall_time, 0.0)
            try:
                watchdog.spawn(proc.pid, remaining, self.grace_seconds)
            except OSError as exc:
                logger.error("Cannot guard detached pid %s (%s); terminating it now", proc.pid, exc)
                self.terminate_tree(proc, sampler)
                return result
            logger.warning(
                "%s still running after %ss; continuing in background (pid %s, deadline in %.1fs)",
                cmd[0],
                detach_after,
                proc.pid,
                remaining,
            )
        return result

    def _supervise(
        self,
        proc: subprocess.Popen,
        sampler: ResourceSampler,
        timeout: float,
        detach_after: float | None,
        start: float,
    ) -> tuple[Outcome, int | None, float | None]:
        """Wait for ``proc``; returns status, exit code and the timeout instant if hit."""
        if detach_after is not None and detach_after < timeout:
            code = sampler.wait(proc, detach_after)
            if code is None and not sampler.exit_unknown:
                sampler.detach()
                return Outcome.DETACHED, None, None
            return self._ended(proc, sampler, code)

        code = sampler.wait(proc, timeout)
        if code is None and not sampler.exit_unknown:
            ended = time.perf_counter()
            error = ExecutionTimeoutError(
                f"{proc.args[0]} timed out after {timeout}s",
                context={"pid": proc.pid, "timeout_seconds": timeout},
            )
            logger.error("%s. Terminating process tree.", error)
            self.terminate_tree(proc, sampler)
            return Outcome.TIMEOUT, proc.returncode, ended
        return self._ended(proc, sampler, code)

    def _ended(
        self, proc: subprocess.Popen, sampler: ResourceSampler, code: int | None
    ) -> tuple[Outcome, int | None, float | None]:
        if code is None:
            logger.error("Exit status of %s (pid %s) is unknown", proc.args[0], proc.pid)
            return Outcome.FAILURE, None, None
        return self._status_for(code), code, None

    @staticmethod
    def _status_for(code: int) -> Outcome:
        return Outcome.SUCCESS if code == 0 else Outcome.FAILURE

    def terminate_tree(self, proc: subprocess.Popen, sampler: ResourceSampler) -> None:
        """Signal the process and every descendant, escalating to SIGKILL."""
        if proc.returncode is not None or sampler.exit_unknown:
            return
        try:
            descendants = psutil.Process(proc.pid).children(recursive=True)
        except psutil.Error:
            descendants = []

        self._send(proc, descendants, graceful=True)
        code = sampler.wait(proc, self.grace_seconds)
        _, alive = psutil.wait_procs(
            descendants, timeout=self.grace_seconds if code is None else 1.0
        )
        if code is None or alive:
            logger.warning("Force killing process tree of pid %s", proc.pid)
            self._send(proc, alive, graceful=False)
            if code is None:
                sampler.wait(proc, self.grace_seconds)
            psutil.wait_procs(alive, timeout=1.0)

    @staticmethod
    def _send(
        proc: subprocess.Popen, descendants: list[psutil.Process], *, graceful: bool
    ) -> None:
        # Popen.terminate() polls (and reaps) on POSIX, which would lose the
        # rusage record, so signal the pid directly there.
        if os.name == "posix":
            sig = signal.SIGTERM if graceful else signal.SIGKILL
            _signal_group(proc.pid, sig)
            if proc.returncode is None:
                try:
                    os.kill(proc.pid, sig)
                except (ProcessLookupError, PermissionError):
                    pass
        else:  # pragma: no cover - Windows
            try:
                proc.terminate() if graceful else proc.kill()
            except OSError:
                pass
        for child in descendants:
            try:
                child.terminate() if graceful else child.kill()
            except psutil.Error:
                continue
