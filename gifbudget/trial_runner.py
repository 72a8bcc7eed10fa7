"""
Trial Runner
One palette pass plus one palette-based re-encode for a single profile
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .error_handler import EncoderError
from .ffmpeg_utils import FFmpegEncoder
from .models import ConstraintSet, Profile, Retiming, TrialResult, human_bytes

logger = logging.getLogger(__name__)

PALETTEGEN_OPTIONS = 'stats_mode=diff:reserve_transparent=1'
PALETTEUSE_OPTIONS = 'dither=bayer:bayer_scale=5:diff_mode=rectangle'


@dataclass
class TrialContext:
    """Per-request values every trial needs; passed explicitly, never global."""
    task_id: str
    input_name: str
    constraints: ConstraintSet
    retiming: Optional[Retiming] = None
    log: Optional[logging.LoggerAdapter] = None

    @property
    def target_bytes(self) -> int:
        return self.constraints.target_bytes

    @property
    def tolerance_bytes(self) -> int:
        return self.constraints.tolerance_bytes

    @property
    def logger(self):
        return self.log or logger

    @property
    def encoder_verbosity(self) -> str:
        return 'info' if self.constraints.show_encoder_log else 'error'


def build_transform_chain(profile: Profile, retiming: Optional[Retiming] = None) -> str:
    """Retime, resample and scale filters shared by both passes."""
    filters = []
    if retiming is not None:
        filters.append(retiming.filter)
    if not profile.keeps_rate:
        filters.append(f"fps={profile.fps:g}")
    # Never upscale: min(iw, W) with the comma escaped for the filtergraph parser
    filters.append(f"scale=min(iw\\,{profile.width}):-1:flags=lanczos")
    return ','.join(filters)


def build_palette_filter(profile: Profile, retiming: Optional[Retiming] = None) -> str:
    chain = build_transform_chain(profile, retiming)
    return f"{chain},palettegen=max_colors={profile.colors}:{PALETTEGEN_OPTIONS}"


def build_paletteuse_filter(profile: Profile, retiming: Optional[Retiming] = None) -> str:
    chain = build_transform_chain(profile, retiming)
    return f"[0:v]{chain}[x];[x][1:v]paletteuse={PALETTEUSE_OPTIONS}"


def artifact_names(task_id: str, index: int):
    """Palette and trial artifact names, unique per request and profile index."""
    return f"palette_{task_id}_{index}.png", f"trial_{task_id}_{index}.gif"


class TrialRunner:
    """Runs single-profile encode trials against an FFmpegEncoder"""

    def __init__(self, encoder: FFmpegEncoder):
        self.encoder = encoder

    def _run_pass(self, args: List[str], context: TrialContext, label: str) -> None:
        result = self.encoder.exec(args, log=context.log)
        if not result.ok:
            raise EncoderError(
                f"{label} pass exited with code {result.returncode}",
                returncode=result.returncode,
                stderr=result.stderr
            )

    def _remove_safe(self, name: str) -> None:
        try:
            self.encoder.delete_file(name)
        except (FileNotFoundError, EncoderError):
            pass

    def run_trial(self, index: int, profile: Profile, context: TrialContext) -> Optional[TrialResult]:
        """
        Encode the request input with one profile and measure the result.

        Args:
            index: Position of the profile in the request's table
            profile: Profile to encode with
            context: Request context (input name, target, retiming, logger)

        Returns:
            TrialResult, or None when either encoder pass failed
        """
        palette_name, trial_name = artifact_names(context.task_id, index)
        verbosity = context.encoder_verbosity
        log = context.logger

        try:
            self._run_pass([
                '-v', verbosity,
                '-i', context.input_name,
                '-vf', build_palette_filter(profile, context.retiming),
                palette_name,
            ], context, 'palette')
            self._run_pass([
                '-v', verbosity,
                '-i', context.input_name,
                '-i', palette_name,
                '-filter_complex', build_paletteuse_filter(profile, context.retiming),
                '-loop', '0',
                trial_name,
            ], context, 'encode')
            data = self.encoder.read_file(trial_name)
        except EncoderError as e:
            log.warning(f"PROFILE {index} ({profile.describe()}) failed: {e}")
            return None
        finally:
            self._remove_safe(palette_name)
            self._remove_safe(trial_name)

        size = len(data)
        trial = TrialResult(
            index=index,
            profile=profile,
            data=data,
            size=size,
            deviation=size - context.target_bytes
        )
        message = (f"PROFILE {index} ({profile.describe()}): {human_bytes(size)} "
                   f"({'over' if trial.oversized else 'under'} target by {human_bytes(trial.abs_deviation)})")
        if context.constraints.verbose:
            log.info(message)
        else:
            log.debug(message)
        return trial
