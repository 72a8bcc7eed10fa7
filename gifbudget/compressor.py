"""
GIF Budget Compressor
Runs one compression request: validation, retiming, the pass-through
decision, profile table construction and the size-targeting search
"""

import logging

from .duration import compute_retiming_factor, duration_out_of_range
from .error_handler import EncoderError
from .ffmpeg_utils import FFmpegEncoder
from .logger_setup import task_logger
from .models import (CompressionRequest, CompressionResult, ConstraintCheck,
                     PASS_THROUGH_INDEX, human_bytes)
from .profiles import build_profile_table
from .search_controller import SearchController
from .trial_runner import TrialContext, TrialRunner

logger = logging.getLogger(__name__)


def check_constraints(request: CompressionRequest) -> ConstraintCheck:
    """Work out which constraints the source violates; unknown width/duration are never checked."""
    constraints = request.constraints
    return ConstraintCheck(
        need_size=request.size > constraints.target_bytes,
        need_scale=bool(request.width) and request.width > constraints.max_width,
        need_duration=duration_out_of_range(
            request.duration,
            constraints.min_duration,
            constraints.max_duration,
            constraints.duration_epsilon
        )
    )


class GifBudgetCompressor:
    """Compresses one request at a time against a single FFmpegEncoder"""

    def __init__(self, encoder: FFmpegEncoder):
        self.encoder = encoder
        self.runner = TrialRunner(encoder)
        self.controller = SearchController(self.runner)

    def compress(self, request: CompressionRequest) -> CompressionResult:
        """
        Compress ``request`` toward its size target.

        Raises:
            ConstraintError: constraints are malformed (nothing is encoded)
            EncoderInitError: the encoder could not be loaded
        """
        constraints = request.constraints
        constraints.validate()
        self.encoder.load()

        log = task_logger(request.task_id, __name__)
        log.info(f"Source {human_bytes(request.size)}, width={request.width or '?'}, "
                 f"duration={'%.2fs' % request.duration if request.duration is not None else 'unknown'}; "
                 f"target {human_bytes(constraints.target_bytes)} ± {human_bytes(constraints.tolerance_bytes)}")

        input_name = request.input_name
        try:
            self.encoder.write_file(input_name, request.data)
            return self._run(request, input_name, log)
        finally:
            try:
                self.encoder.delete_file(input_name)
            except (FileNotFoundError, EncoderError):
                pass

    def _run(self, request: CompressionRequest, input_name: str,
             log: logging.LoggerAdapter) -> CompressionResult:
        constraints = request.constraints
        check = check_constraints(request)

        retiming = None
        if check.need_duration:
            retiming = compute_retiming_factor(
                request.duration,
                constraints.min_duration,
                constraints.max_duration,
                constraints.duration_epsilon
            )
            if retiming is not None:
                log.info(f"Duration outside [{constraints.min_duration}, {constraints.max_duration}]s, "
                         f"retiming with {retiming.filter}")

        if check.satisfied:
            log.info("All constraints already met; copying source unmodified")
            return CompressionResult(
                data=self.encoder.read_file(input_name),
                hit=True,
                profile_index=PASS_THROUGH_INDEX,
                note='copied'
            )

        prefer_stable = constraints.prefer_stable_timing and not check.need_size
        profiles = build_profile_table(constraints.max_width, prefer_stable, request.custom_profiles)
        log.debug(f"Profile table: {len(profiles)} entries (stable timing first={prefer_stable})")

        context = TrialContext(
            task_id=request.task_id,
            input_name=input_name,
            constraints=constraints,
            retiming=retiming,
            log=log
        )
        result = self.controller.search(profiles, context)
        log.info(f"Done: {human_bytes(result.size)}, hit={result.hit}, profile={result.profile_index}, "
                 f"trials={result.trials}")
        return result
