"""
Unit tests for the boundary-first / binary search over the profile table.
Trials are simulated by a runner that maps profile index to output size.
"""

import unittest

from gifbudget.models import ConstraintSet, PASS_THROUGH_INDEX, Profile, TrialResult
from gifbudget.profiles import build_profile_table
from gifbudget.search_controller import SearchController
from gifbudget.trial_runner import TrialContext


class _Encoder:
    def __init__(self, files):
        self.files = files

    def read_file(self, name):
        return self.files[name]


class FakeRunner:
    def __init__(self, sizes, failing=()):
        self.sizes = sizes
        self.failing = set(failing)
        self.calls = []
        self.encoder = _Encoder({'in_t.gif': b'ORIGINAL'})

    def run_trial(self, index, profile, context):
        self.calls.append(index)
        if index in self.failing:
            return None
        size = self.sizes[index]
        return TrialResult(index=index, profile=profile, data=b'x' * size,
                           size=size, deviation=size - context.target_bytes)


def _context(target=9000, tolerance=1000):
    constraints = ConstraintSet(target_bytes=target, tolerance_bytes=tolerance, max_width=1024)
    return TrialContext(task_id='t', input_name='in_t.gif', constraints=constraints)


def _table(length):
    return tuple(Profile(1024 - i * 10, 10, 128) for i in range(length))


class TestBoundaryProbing(unittest.TestCase):

    def test_first_profile_hit_stops_immediately(self):
        runner = FakeRunner({0: 8500, 13: 300})
        result = SearchController(runner).search(_table(14), _context())

        self.assertEqual(runner.calls, [0])
        self.assertTrue(result.hit)
        self.assertEqual(result.profile_index, 0)
        self.assertEqual(result.size, 8500)

    def test_last_profile_hit_stops_after_two_trials(self):
        runner = FakeRunner({0: 14000, 13: 8200})
        result = SearchController(runner).search(_table(14), _context())

        self.assertEqual(runner.calls, [0, 13])
        self.assertTrue(result.hit)
        self.assertEqual(result.profile_index, 13)

    def test_single_profile_table_runs_exactly_one_trial(self):
        runner = FakeRunner({0: 20000})
        result = SearchController(runner).search(_table(1), _context())

        self.assertEqual(runner.calls, [0])
        self.assertFalse(result.hit)
        self.assertEqual(result.profile_index, 0)
        self.assertEqual(result.size, 20000)

    def test_oversized_first_trial_is_not_a_hit_even_within_tolerance(self):
        runner = FakeRunner({0: 9500, 1: 3000})
        result = SearchController(runner).search(_table(2), _context())

        self.assertEqual(runner.calls, [0, 1])
        self.assertFalse(result.hit)
        self.assertEqual(result.profile_index, 0)


class TestBinarySearch(unittest.TestCase):

    def test_converges_in_interior(self):
        sizes = [14000, 13000, 12500, 11800, 10900, 10100, 9600,
                 8600, 7400, 6000, 4700, 3000, 1500, 300]
        runner = FakeRunner(dict(enumerate(sizes)))

        result = SearchController(runner).search(_table(14), _context())

        self.assertEqual(runner.calls, [0, 13, 6, 9, 7])
        self.assertTrue(result.hit)
        self.assertEqual(result.profile_index, 7)
        self.assertEqual(result.trials, 5)
        self.assertLessEqual(abs(result.size - 9000), 1000)

    def test_no_hit_returns_minimum_deviation_trial(self):
        sizes = {i: 20000 for i in range(13)}
        sizes[13] = 100
        runner = FakeRunner(sizes)

        result = SearchController(runner).search(_table(14), _context())

        self.assertFalse(result.hit)
        self.assertEqual(result.profile_index, 13)
        self.assertEqual(result.note, 'best-effort')
        interior = runner.calls[2:]
        self.assertLessEqual(len(interior), 2 * 14)
        self.assertEqual(interior, [6, 9, 11, 12])

    def test_interior_trials_never_exceed_cap_on_non_monotone_ladder(self):
        # Alternating sizes; no entry lands inside the tolerance window
        sizes = {i: (30000 if i % 2 else 100) for i in range(17)}
        sizes[0] = 30000
        runner = FakeRunner(sizes)

        result = SearchController(runner).search(build_profile_table(1024, True), _context(tolerance=10))

        self.assertFalse(result.hit)
        self.assertLessEqual(len(runner.calls) - 2, 2 * 17)
        self.assertEqual(len(runner.calls), len(set(runner.calls)))

    def test_bracket_uses_observed_sign_not_index_order(self):
        # Interior midpoint is unexpectedly small, so the search moves toward earlier entries
        sizes = {0: 30000, 1: 8500, 2: 2000, 3: 2000, 4: 100}
        runner = FakeRunner(sizes)

        result = SearchController(runner).search(_table(5), _context())

        self.assertEqual(runner.calls, [0, 4, 2, 1])
        self.assertTrue(result.hit)
        self.assertEqual(result.profile_index, 1)


class TestBestCandidate(unittest.TestCase):

    def test_tie_prefers_undersized_over_oversized(self):
        runner = FakeRunner({0: 10000, 1: 8000})
        result = SearchController(runner).search(_table(2), _context(tolerance=500))

        self.assertFalse(result.hit)
        self.assertEqual(result.profile_index, 1)

    def test_tie_keeps_earlier_undersized(self):
        runner = FakeRunner({0: 8000, 1: 10000})
        result = SearchController(runner).search(_table(2), _context(tolerance=500))

        self.assertEqual(result.profile_index, 0)

    def test_hit_trial_is_returned_even_if_an_oversized_trial_was_closer(self):
        runner = FakeRunner({0: 9100, 1: 8200})
        result = SearchController(runner).search(_table(2), _context())

        self.assertTrue(result.hit)
        self.assertEqual(result.profile_index, 1)
        self.assertEqual(result.size, 8200)


class TestTrialFailures(unittest.TestCase):

    def test_all_trials_failing_returns_original_input(self):
        runner = FakeRunner({}, failing=range(14))
        result = SearchController(runner).search(_table(14), _context())

        self.assertFalse(result.hit)
        self.assertEqual(result.profile_index, PASS_THROUGH_INDEX)
        self.assertEqual(result.data, b'ORIGINAL')
        self.assertEqual(result.note, 'fallback')

    def test_failed_trial_is_excluded_from_candidates(self):
        runner = FakeRunner({0: 14000, 1: 12000}, failing=[1])
        result = SearchController(runner).search(_table(2), _context())

        self.assertEqual(result.profile_index, 0)
        self.assertFalse(result.hit)

    def test_empty_table_is_rejected(self):
        with self.assertRaises(ValueError):
            SearchController(FakeRunner({})).search((), _context())


if __name__ == "__main__":
    unittest.main()
