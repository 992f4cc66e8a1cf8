"""
Resource samplers for measuring external benchmark processes.

Two strategies share one contract: exact kernel accounting through
``os.wait4`` and an approximate psutil polling fallback.
"""

from cfb_runner.metric_collectors._base_sampler import ResourceSampler
from cfb_runner.metric_collectors.polling_sampler import PollingSampler
from cfb_runner.metric_collectors.registry import (
    SAMPLERS,
    SamplerFactory,
    available_samplers,
    select_sampler,
)
from cfb_runner.metric_collectors.rusage_sampler import RusageSampler, maxrss_to_bytes

__all__ = [
    "PollingSampler",
    "ResourceSampler",
    "RusageSampler",
    "SAMPLERS",
    "SamplerFactory",
    "available_samplers",
    "maxrss_to_bytes",
    "select_sampler",
]
