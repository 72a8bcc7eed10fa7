"""
Profile Table Builder
Ordered ladder of (width, fps, colors) encode profiles, highest quality first
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence

from .error_handler import ConstraintError
from .models import Profile, ProfileTable

logger = logging.getLogger(__name__)

KEEP_RATE = 'keep'

# Palette sizes tried at full width before any frame resampling
STABLE_TIMING_COLORS = (256, 192, 160)

# Hand-tuned descending ladder; ``None`` width means "the requested max width".
# Ordered by expected output size, not guaranteed monotone.
DEFAULT_LADDER = (
    (None, 18, 256),
    (None, 15, 256),
    (None, 12, 192),
    (960, 12, 192),
    (832, 10, 160),
    (768, 10, 128),
    (640, 8, 128),
    (576, 8, 96),
    (512, 8, 96),
    (448, 6, 80),
    (384, 5, 64),
    (320, 4, 64),
    (256, 4, 48),
    (256, 4, 32),
)


def build_profile_table(max_width: int, prefer_stable_timing: bool,
                        custom_table: Optional[Sequence[Profile]] = None) -> ProfileTable:
    """
    Build the ordered profile table for one request.

    Args:
        max_width: Width used by the full-width entries
        prefer_stable_timing: Prepend full-width profiles that keep the source frame rate
        custom_table: Optional caller-supplied table; used unmodified when non-empty

    Returns:
        Non-empty tuple of profiles
    """
    if custom_table:
        logger.debug(f"Using custom profile table with {len(custom_table)} entries")
        return tuple(custom_table)

    profiles: List[Profile] = []
    if prefer_stable_timing:
        profiles.extend(Profile(max_width, None, colors) for colors in STABLE_TIMING_COLORS)
    for width, fps, colors in DEFAULT_LADDER:
        profiles.append(Profile(max_width if width is None else width, fps, colors))
    return tuple(profiles)


def _parse_fps(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str):
        if value.strip().lower() == KEEP_RATE:
            return None
        return float(value)
    return float(value)


def parse_profile_table(rows: Iterable[Any]) -> ProfileTable:
    """Convert config rows ``[width, fps|'keep', colors]`` (or mappings) into profiles."""
    profiles = []
    for position, row in enumerate(rows):
        try:
            if isinstance(row, dict):
                width, fps, colors = row['width'], row.get('fps'), row['colors']
            else:
                width, fps, colors = row
            profiles.append(Profile(int(width), _parse_fps(fps), int(colors)))
        except ConstraintError as e:
            raise ConstraintError(f"Invalid profile at position {position}: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise ConstraintError(f"Malformed profile at position {position}: {row!r}") from e
    return tuple(profiles)
