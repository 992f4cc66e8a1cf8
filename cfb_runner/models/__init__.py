"""Data models shared by the runner, reporting and controller layers."""

from cfb_runner.models.measurement import Measurement, Outcome, ResourceUsage
from cfb_runner.models.scenario import Phase, Scenario, safe_token

__all__ = [
    "Measurement",
    "Outcome",
    "Phase",
    "ResourceUsage",
    "Scenario",
    "safe_token",
]
