"""
Duration Normalizer
Computes the playback retiming needed to bring a clip into the accepted duration range
"""

import logging
from typing import Optional

from .models import Retiming

logger = logging.getLogger(__name__)

# Stand-in for a source duration that rounds to zero
MIN_SOURCE_DURATION = 0.001


def duration_out_of_range(duration: Optional[float], min_duration: float,
                          max_duration: float, epsilon: float = 0.0) -> bool:
    """True when a known duration falls outside [min - eps, max + eps]."""
    if duration is None:
        return False
    return duration < min_duration - epsilon or duration > max_duration + epsilon


def compute_retiming_factor(source_duration: Optional[float], min_duration: float,
                            max_duration: float, epsilon: float = 0.0) -> Optional[Retiming]:
    """
    Compute the retiming for a clip whose duration falls outside the accepted range.

    Args:
        source_duration: Probed duration in seconds, or None when unknown
        min_duration: Shortest accepted duration
        max_duration: Longest accepted duration
        epsilon: Slack applied to both ends of the range

    Returns:
        Retiming with ``factor = clamped / source``, or None when no retiming is needed
    """
    if not duration_out_of_range(source_duration, min_duration, max_duration, epsilon):
        return None

    target_duration = min(max(source_duration, min_duration), max_duration)
    source = source_duration if source_duration > 0 else MIN_SOURCE_DURATION
    factor = target_duration / source
    logger.debug(f"Retiming {source_duration:.3f}s -> {target_duration:.3f}s (factor {factor:.6f})")
    return Retiming(factor)
