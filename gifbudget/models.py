"""
Data Model for GIF Budget Compression
Requests, constraints, encode profiles, trial results and search state
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple

from .error_handler import ConstraintError

BYTES_PER_MB = 1024 * 1024
MAX_PALETTE_COLORS = 256
PASS_THROUGH_INDEX = -1


def mb_to_bytes(value_mb: float) -> int:
    return int(value_mb * BYTES_PER_MB)


def human_bytes(size: int) -> str:
    """Format a byte count the way task logs display it (B / KB / MB)."""
    if size < 1024:
        return f"{size}B"
    if size < BYTES_PER_MB:
        return f"{size / 1024:.2f}KB"
    return f"{size / BYTES_PER_MB:.2f}MB"


@dataclass(frozen=True)
class ConstraintSet:
    """Caller-supplied limits for one compression request (sizes in bytes)"""
    target_bytes: int
    tolerance_bytes: int
    max_width: int
    min_duration: float = 0.0
    max_duration: float = 4.0
    duration_epsilon: float = 0.02
    prefer_stable_timing: bool = True
    verbose: bool = False
    show_encoder_log: bool = False

    @classmethod
    def from_mb(cls, max_mb: float, tolerance_mb: float, max_width: int, **kwargs) -> 'ConstraintSet':
        """Build constraints from the megabyte values presets and the CLI use."""
        return cls(
            target_bytes=mb_to_bytes(max_mb),
            tolerance_bytes=mb_to_bytes(tolerance_mb),
            max_width=int(max_width),
            **kwargs
        )

    def validate(self) -> None:
        """Raise ConstraintError when the set cannot drive a search."""
        if self.target_bytes <= 0:
            raise ConstraintError(f"Target size must be positive (got {self.target_bytes} bytes)")
        if self.tolerance_bytes <= 0:
            raise ConstraintError(f"Tolerance must be positive (got {self.tolerance_bytes} bytes)")
        if self.max_width <= 0:
            raise ConstraintError(f"Max width must be positive (got {self.max_width}px)")
        if self.min_duration < 0 or self.max_duration < 0:
            raise ConstraintError("Duration limits must not be negative")
        if self.min_duration > self.max_duration:
            raise ConstraintError(
                f"Min duration {self.min_duration}s exceeds max duration {self.max_duration}s"
            )
        if self.duration_epsilon < 0:
            raise ConstraintError(f"Duration epsilon must not be negative (got {self.duration_epsilon})")


@dataclass(frozen=True)
class Profile:
    """One encode attempt: output width, sampling rate and palette size.

    ``fps`` of ``None`` keeps the source frame timing untouched.
    """
    width: int
    fps: Optional[float]
    colors: int

    def __post_init__(self):
        if self.width <= 0:
            raise ConstraintError(f"Profile width must be positive (got {self.width})")
        if self.fps is not None and self.fps <= 0:
            raise ConstraintError(f"Profile fps must be positive (got {self.fps})")
        if self.colors <= 0:
            raise ConstraintError(f"Profile colors must be positive (got {self.colors})")
        if self.colors > MAX_PALETTE_COLORS:
            object.__setattr__(self, 'colors', MAX_PALETTE_COLORS)

    @property
    def keeps_rate(self) -> bool:
        return self.fps is None

    def describe(self) -> str:
        rate = 'keep' if self.fps is None else f"{self.fps:g}fps"
        return f"{self.width}px/{rate}/{self.colors}c"


ProfileTable = Tuple[Profile, ...]


@dataclass(frozen=True)
class Retiming:
    """Playback-speed factor applied as a presentation timestamp rescale."""
    factor: float

    @property
    def filter(self) -> str:
        return f"setpts={self.factor:.6f}*PTS"


@dataclass
class MediaInfo:
    """Probed metadata; every field may be unknown."""
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None
    frame_count: Optional[int] = None


@dataclass
class CompressionRequest:
    task_id: str
    data: bytes
    constraints: ConstraintSet
    size: Optional[int] = None
    width: Optional[int] = None
    duration: Optional[float] = None
    custom_profiles: Optional[ProfileTable] = None

    def __post_init__(self):
        if self.size is None:
            self.size = len(self.data)

    @property
    def input_name(self) -> str:
        return f"in_{self.task_id}.gif"


@dataclass(frozen=True)
class ConstraintCheck:
    """Which constraints the source violates."""
    need_size: bool
    need_scale: bool
    need_duration: bool

    @property
    def satisfied(self) -> bool:
        return not (self.need_size or self.need_scale or self.need_duration)


@dataclass
class TrialResult:
    index: int
    profile: Profile
    data: bytes
    size: int
    deviation: int

    @property
    def abs_deviation(self) -> int:
        return abs(self.deviation)

    @property
    def oversized(self) -> bool:
        return self.deviation > 0

    @property
    def undersized(self) -> bool:
        """True when the artifact is at or under the target size."""
        return self.deviation <= 0

    def within_tolerance(self, tolerance_bytes: int) -> bool:
        return self.undersized and self.abs_deviation <= tolerance_bytes


@dataclass
class SearchState:
    """Mutable bookkeeping for one search; created and discarded per request."""
    tolerance_bytes: int
    best: Optional[TrialResult] = None
    hit: bool = False
    last: Optional[TrialResult] = None
    low: int = 0
    high: int = -1
    iterations: int = 0

    def consider(self, trial: TrialResult) -> bool:
        """Record a finished trial; returns True when it satisfies the tolerance.

        Ties on absolute deviation prefer an artifact under the budget over one
        above it.
        """
        best = self.best
        if (best is None
                or trial.abs_deviation < best.abs_deviation
                or (trial.abs_deviation == best.abs_deviation
                    and trial.undersized and best.oversized)):
            self.best = trial
        self.last = trial
        if trial.within_tolerance(self.tolerance_bytes):
            self.hit = True
            self.best = trial
        return self.hit


@dataclass
class CompressionResult:
    data: bytes
    hit: bool
    profile_index: int = PASS_THROUGH_INDEX
    profile: Optional[Profile] = None
    note: str = ''
    trials: int = 0
    size: int = field(init=False)

    def __post_init__(self):
        self.size = len(self.data)

    @property
    def passed_through(self) -> bool:
        return self.profile_index == PASS_THROUGH_INDEX

    def to_envelope(self) -> Dict[str, Any]:
        return {
            'buffer': self.data,
            'hit': self.hit,
            'best_idx': self.profile_index,
            'note': self.note,
        }
