"""
Search Controller
Boundary-first probing followed by a capped binary search over the profile
table, tracking the best artifact seen so far.

The ladder is only roughly ordered by output size, so the bracket moves on
the sign each trial actually observed and the iteration cap is always kept.
"""

import logging
from typing import Optional, Sequence

from .models import (CompressionResult, PASS_THROUGH_INDEX, Profile, SearchState,
                     TrialResult, human_bytes)
from .trial_runner import TrialContext, TrialRunner

logger = logging.getLogger(__name__)


class SearchController:
    """Drives TrialRunner over a profile table until the size target is met"""

    def __init__(self, runner: TrialRunner):
        self.runner = runner

    def _trial(self, state: SearchState, profiles: Sequence[Profile], index: int,
               context: TrialContext) -> Optional[TrialResult]:
        trial = self.runner.run_trial(index, profiles[index], context)
        if trial is not None:
            state.consider(trial)
        return trial

    def _finish(self, state: SearchState, context: TrialContext, trials: int) -> CompressionResult:
        log = context.logger
        if state.best is not None:
            best = state.best
            note = 'hit' if state.hit else 'best-effort'
            log.info(f"Selected profile {best.index} ({best.profile.describe()}): "
                     f"{human_bytes(best.size)}, hit={state.hit}")
            return CompressionResult(
                data=best.data,
                hit=state.hit,
                profile_index=best.index,
                profile=best.profile,
                note=note,
                trials=trials
            )

        log.warning("Every trial failed; returning the original input unmodified")
        original = self.runner.encoder.read_file(context.input_name)
        return CompressionResult(
            data=original,
            hit=False,
            profile_index=PASS_THROUGH_INDEX,
            note='fallback',
            trials=trials
        )

    def search(self, profiles: Sequence[Profile], context: TrialContext) -> CompressionResult:
        """
        Search ``profiles`` for the artifact closest to the target size.

        Args:
            profiles: Non-empty profile table, least aggressive first
            context: Request context shared by every trial

        Returns:
            The tolerance-hitting trial, else the best trial seen, else the
            unmodified input when every trial failed
        """
        if not profiles:
            raise ValueError("Profile table must not be empty")

        state = SearchState(tolerance_bytes=context.tolerance_bytes)
        count = len(profiles)
        trials = 0

        self._trial(state, profiles, 0, context)
        trials += 1
        if state.hit:
            return self._finish(state, context, trials)

        if count > 1:
            self._trial(state, profiles, count - 1, context)
            trials += 1
            if state.hit:
                return self._finish(state, context, trials)

        if count <= 2:
            return self._finish(state, context, trials)

        state.low, state.high = 1, count - 2
        max_iterations = count * 2
        while state.low <= state.high and state.iterations < max_iterations and not state.hit:
            state.iterations += 1
            mid = (state.low + state.high) // 2
            self._trial(state, profiles, mid, context)
            trials += 1
            if state.hit:
                break
            # A failed trial leaves the previous observation as the direction
            if state.last is not None and state.last.oversized:
                state.low = mid + 1
            else:
                state.high = mid - 1

        context.logger.debug(f"Binary search finished after {state.iterations} iterations "
                             f"(bracket [{state.low}, {state.high}])")
        return self._finish(state, context, trials)
