"""Tests for sampler selection and the sampling strategies."""

from __future__ import annotations

import os
import subprocess
import sys

import pytest

from cfb_common.errors import ConfigurationError
from cfb_runner.metric_collectors import (
    PollingSampler,
    RusageSampler,
    available_samplers,
    select_sampler,
)
from cfb_runner.metric_collectors.rusage_sampler import maxrss_to_bytes


pytestmark = pytest.mark.unit_runner

needs_wait4 = pytest.mark.skipif(not hasattr(os, "wait4"), reason="os.wait4 unavailable")


def test_maxrss_units() -> None:
    assert maxrss_to_bytes(2048, platform="linux") == 2048 * 1024
    assert maxrss_to_bytes(2048, platform="darwin") == 2048
    assert maxrss_to_bytes(0) is None


def test_select_sampler_prefers_rusage_when_available() -> None:
    expected = RusageSampler if RusageSampler.is_available() else PollingSampler
    assert select_sampler() is expected
    assert available_samplers()[-1] == "poll"


def test_select_sampler_by_name() -> None:
    assert select_sampler("poll") is PollingSampler


def test_select_sampler_unknown_name() -> None:
    with pytest.raises(ConfigurationError):
        select_sampler("perf")


def test_select_sampler_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(RusageSampler, "is_available", classmethod(lambda cls: False))
    assert select_sampler() is PollingSampler
    with pytest.raises(ConfigurationError):
        select_sampler("rusage")


@needs_wait4
def test_rusage_sampler_reports_exit_code_and_usage() -> None:
    proc = subprocess.Popen([sys.executable, "-c", "import sys; sys.exit(4)"])
    sampler = RusageSampler()
    sampler.attach(proc)
    assert sampler.wait(proc, 10) == 4
    assert proc.returncode == 4
    usage = sampler.usage()
    assert usage.approximate is False
    assert usage.peak_memory_bytes and usage.peak_memory_bytes > 0
    assert usage.user_cpu is not None and usage.system_cpu is not None


@needs_wait4
def test_rusage_sampler_times_out_without_reaping() -> None:
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(5)"])
    sampler = RusageSampler(poll_interval=0.01)
    sampler.attach(proc)
    try:
        assert sampler.wait(proc, 0.1) is None
        assert proc.returncode is None
    finally:
        proc.kill()
        sampler.wait(proc, 5)


def test_rusage_usage_unknown_before_exit() -> None:
    usage = RusageSampler().usage()
    assert usage.peak_memory_bytes is None
    assert usage.user_cpu is None


def test_polling_sampler_marks_figures_approximate() -> None:
    code = "import time; data = b'x' * (8 * 1024 * 1024); time.sleep(0.6)"
    proc = subprocess.Popen([sys.executable, "-c", code])
    sampler = PollingSampler(interval_seconds=0.05)
    sampler.attach(proc)
    assert sampler.wait(proc, 10) == 0
    usage = sampler.usage()
    assert usage.approximate is True
    assert usage.source == "psutil-poll"
    assert usage.peak_memory_bytes is not None
    assert usage.peak_memory_bytes > 8 * 1024 * 1024


def test_polling_sampler_wait_timeout() -> None:
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(5)"])
    sampler = PollingSampler(interval_seconds=0.05)
    sampler.attach(proc)
    try:
        assert sampler.wait(proc, 0.1) is None
    finally:
        sampler.detach()
        proc.kill()
        proc.wait()


@needs_wait4
def test_rusage_sampler_external_reap_leaves_status_unknown() -> None:
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    sampler = RusageSampler()
    sampler.attach(proc)
    os.waitpid(proc.pid, 0)

    assert sampler.wait(proc, 1) is None
    assert sampler.exit_unknown is True
    assert proc.returncode is None
    assert sampler.usage().peak_memory_bytes is None
