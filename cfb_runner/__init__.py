"""Runner facade for cfb-bench: process execution and resource sampling."""

from cfb_runner.api import Measurement, Outcome, Phase, ProcessRunner, Scenario

__all__ = ["Measurement", "Outcome", "Phase", "ProcessRunner", "Scenario"]
