"""Public controller API surface."""

from cfb_controller.catalog import plan, scenarios_for_phase
from cfb_controller.lifecycle import RunLifecycle, RunState
from cfb_controller.models import (
    BenchConfig,
    ImplementationConfig,
    OperationConfig,
    default_implementations,
    default_workspace,
)
from cfb_controller.orchestrator import BenchmarkOrchestrator
from cfb_controller.paths import generate_run_id
from cfb_controller.types import NullProgress, ProgressSink, RunSummary

__all__ = [
    "BenchConfig",
    "BenchmarkOrchestrator",
    "ImplementationConfig",
    "NullProgress",
    "OperationConfig",
    "ProgressSink",
    "RunLifecycle",
    "RunState",
    "RunSummary",
    "default_implementations",
    "default_workspace",
    "generate_run_id",
    "plan",
    "scenarios_for_phase",
]
