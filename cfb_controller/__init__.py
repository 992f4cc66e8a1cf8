"""Orchestration of benchmark phases for cfb-bench."""

from cfb_controller.models.config import BenchConfig
from cfb_controller.orchestrator import BenchmarkOrchestrator

__all__ = ["BenchConfig", "BenchmarkOrchestrator"]
