"""Stable runner API surface."""

from cfb_runner.engine.process_runner import ProcessResult, ProcessRunner
from cfb_runner.engine.scenario_executor import ScenarioExecutor
from cfb_runner.metric_collectors import (
    PollingSampler,
    ResourceSampler,
    RusageSampler,
    available_samplers,
    select_sampler,
)
from cfb_runner.models import Measurement, Outcome, Phase, ResourceUsage, Scenario, safe_token
from cfb_runner.services.artifacts import find_executable
from cfb_runner.services.system_info import HostInfo, collect_host_info

__all__ = [
    "HostInfo",
    "Measurement",
    "Outcome",
    "Phase",
    "PollingSampler",
    "ProcessResult",
    "ProcessRunner",
    "ResourceSampler",
    "ResourceUsage",
    "RusageSampler",
    "Scenario",
    "ScenarioExecutor",
    "available_samplers",
    "collect_host_info",
    "find_executable",
    "safe_token",
    "select_sampler",
]
