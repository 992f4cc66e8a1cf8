"""Controller configuration models."""

from cfb_controller.models.config import (
    BenchConfig,
    ImplementationConfig,
    OperationConfig,
    default_implementations,
    default_workspace,
)

__all__ = [
    "BenchConfig",
    "ImplementationConfig",
    "OperationConfig",
    "default_implementations",
    "default_workspace",
]
