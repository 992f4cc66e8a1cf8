"""Tests for ProcessRunner timeouts, exit codes, logs and measurement."""

from __future__ import annotations

import os
import sys
import time
from pathlib import Path

import psutil
import pytest

from cfb_runner.engine.process_runner import ProcessRunner
from cfb_runner.metric_collectors import PollingSampler, RusageSampler
from cfb_runner.models.measurement import Outcome


pytestmark = pytest.mark.unit_runner

needs_wait4 = pytest.mark.skipif(not hasattr(os, "wait4"), reason="os.wait4 unavailable")
posix_only = pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX only")


@pytest.fixture
def runner() -> ProcessRunner:
    return ProcessRunner(grace_seconds=2.0)


def _gone(pid: int) -> bool:
    try:
        return psutil.Process(pid).status() == psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return True


def test_success_captures_output_and_log(runner, py_command, tmp_path: Path) -> None:
    log = tmp_path / "logs" / "ok.log"
    result = runner.run(py_command("print('hello'); import sys; print('oops', file=sys.stderr)"), tmp_path, 10, log_path=log)

    assert result.status is Outcome.SUCCESS
    assert result.exit_code == 0
    assert "hello" in result.output
    assert "oops" in result.output
    text = log.read_text()
    assert text.startswith("$ ")
    assert "hello" in text
    assert "STATS: Real=" in text
    assert "Status=success" in text


def test_nonzero_exit_is_failure(runner, py_command, tmp_path: Path) -> None:
    result = runner.run(py_command("import sys; sys.exit(3)"), tmp_path, 10, log_path=tmp_path / "f.log")
    assert result.status is Outcome.FAILURE
    assert result.exit_code == 3


def test_timeout_terminates_and_keeps_partial_output(runner, py_command, tmp_path: Path) -> None:
    code = "import time; print('started', flush=True); time.sleep(5)"
    log = tmp_path / "t.log"
    result = runner.run(py_command(code), tmp_path, 1.0, log_path=log)

    assert result.status is Outcome.TIMEOUT
    assert result.wall_time == pytest.approx(1.0, abs=0.2)
    assert "started" in log.read_text()
    assert _gone(result.pid)


@pytest.mark.slow
@posix_only
def test_timeout_kills_whole_process_tree(runner, py_command, tmp_path: Path) -> None:
    child_pid_file = tmp_path / "child.pid"
    code = (
        "import subprocess, sys, time\n"
        "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
        f"open({str(child_pid_file)!r}, 'w').write(str(child.pid))\n"
        "time.sleep(30)\n"
    )
    result = runner.run(py_command(code), tmp_path, 1.5, log_path=tmp_path / "tree.log")
    assert result.status is Outcome.TIMEOUT

    child_pid = int(child_pid_file.read_text())
    deadline = time.monotonic() + 3
    while time.monotonic() < deadline:
        if _gone(child_pid):
            break
        time.sleep(0.05)
    else:
        pytest.fail(f"descendant {child_pid} survived the timeout")


def test_working_directory_applies_to_child_only(runner, py_command, tmp_path: Path) -> None:
    workdir = tmp_path / "work"
    workdir.mkdir()
    before = os.getcwd()
    result = runner.run(py_command("import os; print(os.getcwd())"), workdir, 10, log_path=tmp_path / "cwd.log")
    assert os.getcwd() == before
    assert Path(result.output.strip().splitlines()[-1]).resolve() == workdir.resolve()


def test_missing_program_raises(runner, tmp_path: Path) -> None:
    with pytest.raises(OSError):
        runner.run([str(tmp_path / "does-not-exist")], tmp_path, 5, log_path=tmp_path / "m.log")


@pytest.mark.slow
@needs_wait4
def test_rusage_peak_memory_tracks_allocation(py_command, tmp_path: Path) -> None:
    runner = ProcessRunner(RusageSampler)
    baseline = runner.run(py_command("import time; time.sleep(1)"), tmp_path, 10, log_path=tmp_path / "b.log")
    loaded = runner.run(
        py_command("import time; data = b'x' * (10 * 1024 * 1024); time.sleep(1)"),
        tmp_path,
        10,
        log_path=tmp_path / "l.log",
    )

    assert baseline.usage.approximate is False
    delta = loaded.usage.peak_memory_bytes - baseline.usage.peak_memory_bytes
    mib = 1024 * 1024
    assert 8 * mib <= delta <= 14 * mib
    assert loaded.cpu_percent is not None


def test_polling_sampler_result_is_approximate(py_command, tmp_path: Path) -> None:
    runner = ProcessRunner(lambda: PollingSampler(interval_seconds=0.05))
    result = runner.run(
        py_command("import time; data = b'x' * (10 * 1024 * 1024); time.sleep(1)"),
        tmp_path,
        10,
        log_path=tmp_path / "p.log",
    )
    assert result.status is Outcome.SUCCESS
    assert result.usage.approximate is True
    assert "MaxMemory=~" in (tmp_path / "p.log").read_text()


def test_detach_leaves_process_running(runner, py_command, tmp_path: Path) -> None:
    result = runner.run(py_command("import time; time.sleep(10)"), tmp_path, 30, log_path=tmp_path / "d.log", detach_after=0.3)
    try:
        assert result.status is Outcome.DETACHED
        assert result.usage.peak_memory_bytes is None
        assert psutil.pid_exists(result.pid)
    finally:
        proc = psutil.Process(result.pid)
        proc.kill()
        proc.wait(timeout=5)


def test_detach_window_not_reached(runner, py_command, tmp_path: Path) -> None:
    result = runner.run(py_command("pass"), tmp_path, 30, log_path=tmp_path / "q.log", detach_after=10)
    assert result.status is Outcome.SUCCESS


@posix_only
def test_detached_process_is_killed_at_its_timeout(runner, py_command, tmp_path: Path) -> None:
    result = runner.run(py_command("import time; time.sleep(8)"), tmp_path, 1.0, log_path=tmp_path / "w.log", detach_after=0.3)
    try:
        assert result.status is Outcome.DETACHED
        assert not _gone(result.pid)
        deadline = time.monotonic() + 2.5
        while time.monotonic() < deadline and not _gone(result.pid):
            time.sleep(0.05)
        assert _gone(result.pid), "detached process outlived its timeout"
    finally:
        if not _gone(result.pid):
            psutil.Process(result.pid).kill()


@pytest.mark.slow
@posix_only
def test_timeout_wall_time_excludes_grace_period(runner, py_command, tmp_path: Path) -> None:
    code = (
        "import signal, time\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        "time.sleep(30)\n"
    )
    started = time.monotonic()
    result = runner.run(py_command(code), tmp_path, 1.0, log_path=tmp_path / "stubborn.log")
    elapsed = time.monotonic() - started

    assert result.status is Outcome.TIMEOUT
    assert elapsed >= 1.0 + runner.grace_seconds * 0.9
    assert result.wall_time == pytest.approx(1.0, abs=0.2)
    assert _gone(result.pid)


def test_append_keeps_previous_log(runner, py_command, tmp_path: Path) -> None:
    log = tmp_path / "a.log"
    runner.run(py_command("print('first')"), tmp_path, 10, log_path=log)
    second = runner.run(py_command("print('second')"), tmp_path, 10, log_path=log, append=True)
    text = log.read_text()
    assert "first" in text and "second" in text
    assert "first" not in second.output


@pytest.mark.skipif(sys.platform != "linux", reason="RLIMIT_AS semantics are Linux specific")
def test_memory_limit_makes_large_allocation_fail(runner, py_command, tmp_path: Path) -> None:
    result = runner.run(
        py_command("data = bytearray(512 * 1024 * 1024)"),
        tmp_path,
        20,
        log_path=tmp_path / "limit.log",
        memory_limit_mb=256,
    )
    assert result.status is Outcome.FAILURE
    assert "MemoryError" in result.output
