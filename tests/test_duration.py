import pytest

from gifbudget.duration import compute_retiming_factor, duration_out_of_range


def test_six_second_clip_is_sped_up_into_four_seconds():
    retiming = compute_retiming_factor(6.0, 0.0, 4.0, 0.02)

    assert retiming.factor == pytest.approx(4 / 6)
    assert retiming.filter == 'setpts=0.666667*PTS'


def test_short_clip_is_slowed_down_to_minimum():
    retiming = compute_retiming_factor(0.5, 1.0, 4.0)

    assert retiming.factor == pytest.approx(2.0)


@pytest.mark.parametrize('duration', [None, 0.0, 2.5, 4.0, 4.015])
def test_no_retiming_when_unknown_or_in_range(duration):
    assert compute_retiming_factor(duration, 0.0, 4.0, 0.02) is None


def test_epsilon_widens_the_range():
    assert duration_out_of_range(4.03, 0.0, 4.0, 0.02)
    assert not duration_out_of_range(4.01, 0.0, 4.0, 0.02)
    assert duration_out_of_range(0.97, 1.0, 4.0, 0.02)


def test_zero_duration_uses_minimal_positive_source():
    retiming = compute_retiming_factor(0.0, 1.0, 4.0)

    assert retiming.factor == pytest.approx(1000.0)


@pytest.mark.parametrize('source', [0.2, 0.9, 5.0, 6.0, 30.0, 123.4])
def test_retimed_duration_lands_inside_range(source):
    min_d, max_d, eps = 1.0, 4.0, 0.02

    retiming = compute_retiming_factor(source, min_d, max_d, eps)

    assert min_d - eps <= source * retiming.factor <= max_d + eps
