import pytest

from gifbudget.error_handler import ConstraintError
from gifbudget.models import Profile
from gifbudget.profiles import DEFAULT_LADDER, build_profile_table, parse_profile_table


def test_default_table_starts_at_max_width_and_ends_most_aggressive():
    table = build_profile_table(1024, prefer_stable_timing=False)

    assert len(table) == len(DEFAULT_LADDER) == 14
    assert table[0] == Profile(1024, 18, 256)
    assert table[2] == Profile(1024, 12, 192)
    assert table[3] == Profile(960, 12, 192)
    assert table[-1] == Profile(256, 4, 32)


def test_stable_timing_prepends_keep_rate_profiles():
    table = build_profile_table(800, prefer_stable_timing=True)

    assert len(table) == 17
    assert [p.colors for p in table[:3]] == [256, 192, 160]
    assert all(p.fps is None and p.width == 800 for p in table[:3])
    assert table[3] == Profile(800, 18, 256)


def test_custom_table_is_returned_unmodified():
    custom = [Profile(300, 10, 64)]

    table = build_profile_table(1024, prefer_stable_timing=True, custom_table=custom)

    assert table == (Profile(300, 10, 64),)


def test_empty_custom_table_falls_back_to_ladder():
    assert len(build_profile_table(1024, False, custom_table=[])) == 14


def test_profile_clamps_palette_colors():
    assert Profile(320, 10, 400).colors == 256


def test_profile_rejects_non_positive_values():
    with pytest.raises(ConstraintError):
        Profile(0, 10, 64)
    with pytest.raises(ConstraintError):
        Profile(320, 0, 64)


def test_parse_profile_table_accepts_keep_and_mappings():
    table = parse_profile_table([[640, 'keep', 128], {'width': 320, 'fps': 8, 'colors': 64}])

    assert table == (Profile(640, None, 128), Profile(320, 8.0, 64))
    assert table[0].describe() == '640px/keep/128c'


def test_parse_profile_table_rejects_malformed_rows():
    with pytest.raises(ConstraintError, match="position 1"):
        parse_profile_table([[640, 10, 128], [640, 10]])
