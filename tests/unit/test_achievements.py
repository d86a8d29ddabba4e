"""
Unit tests for XP, ranks and achievements.

Run: pytest tests/unit/test_achievements.py -v
"""

import pytest

from arvil.training.achievements import (
    ACHIEVEMENTS,
    RANKS,
    calculate_xp,
    get_achievements,
    newly_unlocked,
    next_rank_for_xp,
    rank_for_xp,
    result_xp,
    unlocked_count,
    xp_progress,
)
from arvil.training.models import DrillResult, UserStats


def _result(drill_type="reg-plate", accuracy=80.0, speed_ms=4000.0, difficulty=2, **details):
    return DrillResult(
        id=f"{drill_type}-{accuracy}",
        drill_type=drill_type,
        timestamp=0,
        accuracy=accuracy,
        speed_ms=speed_ms,
        difficulty=difficulty,
        details=details,
    )


class TestXP:
    def test_single_result(self):
        # 10 base + 16 accuracy + 5 speed + 6 difficulty
        assert result_xp(_result()) == 37

    def test_pressure_bonus_without_speed_bonus(self):
        result = _result("pressure-mode", accuracy=100, speed_ms=6000, difficulty=5)

        assert result_xp(result) == 60

    def test_accuracy_rounds_half_up(self):
        # 72.5 * 0.2 = 14.5 -> 15
        assert result_xp(_result(accuracy=72.5, speed_ms=9000, difficulty=0)) == 25

    def test_total(self):
        assert calculate_xp([_result(), _result()]) == 74
        assert calculate_xp([]) == 0


class TestRanks:
    @pytest.mark.parametrize(
        "xp,rank",
        [(0, "Recruit"), (99, "Recruit"), (100, "Probationer"), (1500, "Sergeant"), (99999, "Commander")],
    )
    def test_rank_for_xp(self, xp, rank):
        assert rank_for_xp(xp).rank == rank

    def test_thresholds_ascend(self):
        thresholds = [r.min_xp for r in RANKS]

        assert thresholds == sorted(thresholds)
        assert thresholds[0] == 0

    def test_next_rank(self):
        assert next_rank_for_xp(120).rank == "Constable"
        assert next_rank_for_xp(8000) is None

    def test_progress(self):
        progress = xp_progress(225)

        assert progress.next_threshold == 350
        assert progress.percent == pytest.approx(50.0)

    def test_progress_at_top_rank(self):
        assert xp_progress(9000).percent == 100.0


class TestAchievements:
    def test_nothing_unlocked_initially(self):
        assert unlocked_count([], UserStats()) == 0

    def test_catalogue_order(self):
        unlocks = get_achievements([], UserStats())

        assert [a.id for a, _ in unlocks] == [a.id for a in ACHIEVEMENTS]
        assert len({a.id for a in ACHIEVEMENTS}) == len(ACHIEVEMENTS)

    def test_first_drill_and_perfect_plate(self):
        results = [_result(accuracy=100)]
        stats = UserStats(total_drills=1, total_accuracy=100, streak=1)

        unlocked = {a.id for a, ok in get_achievements(results, stats) if ok}

        assert {"first_drill", "perfect_plate", "gold_standard"} <= unlocked
        assert "ten_drills" not in unlocked

    def test_streaks(self):
        unlocked = {a.id for a, ok in get_achievements([], UserStats(streak=7)) if ok}

        assert {"three_day", "seven_day"} <= unlocked
        assert "thirty_day" not in unlocked

    def test_pressure_survivor_needs_full_minute(self):
        short = [_result("pressure-mode", accuracy=75, totalTime=45)]
        full = [_result("pressure-mode", accuracy=75, totalTime=60)]

        def survivor(results):
            return dict((a.id, ok) for a, ok in get_achievements(results, UserStats()))["pressure_survivor"]

        assert not survivor(short)
        assert survivor(full)

    def test_newly_unlocked(self):
        stats = UserStats(total_drills=1)
        before = unlocked_count([], UserStats())

        fresh = newly_unlocked([_result(accuracy=50)], stats, before)

        assert [a.id for a in fresh] == ["first_drill"]
