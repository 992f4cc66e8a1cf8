"""Registry and start-up selection of resource sampling strategies."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from cfb_common.errors import ConfigurationError
from cfb_runner.metric_collectors._base_sampler import ResourceSampler
from cfb_runner.metric_collectors.polling_sampler import PollingSampler
from cfb_runner.metric_collectors.rusage_sampler import RusageSampler

logger = logging.getLogger(__name__)

SamplerFactory = Callable[[], ResourceSampler]

# Preferred strategy first.
SAMPLERS: Dict[str, type[ResourceSampler]] = {
    "rusage": RusageSampler,
    "poll": PollingSampler,
}


def available_samplers() -> list[str]:
    """Names of the strategies usable on this host, preferred first."""
    return [name for name, cls in SAMPLERS.items() if cls.is_available()]


def select_sampler(preferred: Optional[str] = None) -> SamplerFactory:
    """
    Pick a sampler factory based on host capabilities.

    Args:
        preferred: Force a strategy by name ("rusage" or "poll").

    Raises:
        ConfigurationError: the requested strategy is unknown or unavailable.
    """
    if preferred:
        cls = SAMPLERS.get(preferred)
        if cls is None:
            raise ConfigurationError(
                f"Unknown sampler {preferred!r}",
                context={"available": sorted(SAMPLERS)},
            )
        if not cls.is_available():
            raise ConfigurationError(
                f"Sampler {preferred!r} is not supported on this host",
                context={"available": available_samplers()},
            )
        logger.debug("Using %s sampler (requested)", preferred)
        return cls

    for name, cls in SAMPLERS.items():
        if cls.is_available():
            logger.debug("Using %s sampler", name)
            return cls
    # PollingSampler only needs psutil, which is a hard dependency.
    raise ConfigurationError("No resource sampler available on this host")
