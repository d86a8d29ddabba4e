"""
XP, ranks and achievements.

Everything here is derived from the result log and user stats; nothing is
stored. Pass the current results/stats in, get the progression view out.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .models import DrillResult, UserStats

# =============================================================================
# XP & Ranks
# =============================================================================


@dataclass(frozen=True)
class RankInfo:
    rank: str
    min_xp: int
    icon: str
    color: str


RANKS: tuple[RankInfo, ...] = (
    RankInfo("Recruit", 0, "🔰", "#737373"),
    RankInfo("Probationer", 100, "📋", "#94a3b8"),
    RankInfo("Constable", 350, "⭐", "#4ade80"),
    RankInfo("Senior Constable", 750, "⭐", "#22c55e"),
    RankInfo("Sergeant", 1500, "🔷", "#3b82f6"),
    RankInfo("Inspector", 3000, "💎", "#a855f7"),
    RankInfo("Superintendent", 5000, "👑", "#fbbf24"),
    RankInfo("Commander", 8000, "🏆", "#ef4444"),
)


@dataclass(frozen=True)
class XPProgress:
    current: int
    next_threshold: int
    percent: float


def result_xp(result: DrillResult) -> int:
    """XP earned by a single drill."""
    xp = 10
    xp += int(result.accuracy * 0.2 + 0.5)
    if result.speed_ms < 5000:
        xp += 5
    xp += result.difficulty * 3
    if result.drill_type == "pressure-mode":
        xp += 15
    return xp


def calculate_xp(results: list[DrillResult]) -> int:
    return sum(result_xp(r) for r in results)


def rank_for_xp(xp: int) -> RankInfo:
    current = RANKS[0]
    for rank in RANKS:
        if xp >= rank.min_xp:
            current = rank
    return current


def next_rank_for_xp(xp: int) -> RankInfo | None:
    """The first rank not yet reached, or None at the top."""
    for rank in RANKS:
        if xp < rank.min_xp:
            return rank
    return None


def xp_progress(xp: int) -> XPProgress:
    """Progress from the current rank's threshold toward the next one."""
    current = rank_for_xp(xp)
    nxt = next_rank_for_xp(xp)
    if nxt is None:
        return XPProgress(current=xp, next_threshold=xp, percent=100.0)

    span = nxt.min_xp - current.min_xp
    percent = (xp - current.min_xp) / span * 100
    return XPProgress(current=xp, next_threshold=nxt.min_xp, percent=min(percent, 100.0))


# =============================================================================
# Achievements
# =============================================================================


class AchievementCategory(str, Enum):
    DRILL = "drill"
    ACCURACY = "accuracy"
    STREAK = "streak"
    PRESSURE = "pressure"
    MILESTONE = "milestone"


Condition = Callable[[list[DrillResult], UserStats], bool]


@dataclass(frozen=True)
class Achievement:
    id: str
    title: str
    description: str
    icon: str
    category: AchievementCategory
    condition: Condition

    def is_unlocked(self, results: list[DrillResult], stats: UserStats) -> bool:
        return self.condition(results, stats)


def _pressure_survivor(results: list[DrillResult], stats: UserStats) -> bool:
    for r in results:
        if r.drill_type != "pressure-mode" or r.accuracy < 70:
            continue
        total_time = r.details.get("totalTime")
        if isinstance(total_time, (int, float)) and total_time >= 60:
            return True
    return False


ACHIEVEMENTS: tuple[Achievement, ...] = (
    # Drill count milestones
    Achievement(
        "first_drill", "First Contact", "Complete your first drill", "🎯",
        AchievementCategory.MILESTONE, lambda rs, s: s.total_drills >= 1,
    ),
    Achievement(
        "ten_drills", "Warming Up", "Complete 10 drills", "🔥",
        AchievementCategory.MILESTONE, lambda rs, s: s.total_drills >= 10,
    ),
    Achievement(
        "fifty_drills", "Dedicated", "Complete 50 drills", "💪",
        AchievementCategory.MILESTONE, lambda rs, s: s.total_drills >= 50,
    ),
    Achievement(
        "hundred_drills", "Centurion", "Complete 100 drills", "🏛️",
        AchievementCategory.MILESTONE, lambda rs, s: s.total_drills >= 100,
    ),
    # Accuracy
    Achievement(
        "perfect_plate", "Eagle Eye", "100% accuracy on a plate drill", "🦅",
        AchievementCategory.ACCURACY,
        lambda rs, s: any(r.drill_type == "reg-plate" and r.accuracy == 100 for r in rs),
    ),
    Achievement(
        "five_perfect", "Sharpshooter", "100% accuracy on 5 drills", "🎖️",
        AchievementCategory.ACCURACY,
        lambda rs, s: sum(1 for r in rs if r.accuracy == 100) >= 5,
    ),
    Achievement(
        "gold_standard", "Gold Standard", "Reach 90% average accuracy", "🥇",
        AchievementCategory.ACCURACY, lambda rs, s: s.total_accuracy >= 90,
    ),
    # Streaks
    Achievement(
        "three_day", "Consistent", "3-day training streak", "📆",
        AchievementCategory.STREAK, lambda rs, s: s.streak >= 3,
    ),
    Achievement(
        "seven_day", "Committed", "7-day training streak", "🗓️",
        AchievementCategory.STREAK, lambda rs, s: s.streak >= 7,
    ),
    Achievement(
        "thirty_day", "Iron Discipline", "30-day training streak", "⚔️",
        AchievementCategory.STREAK, lambda rs, s: s.streak >= 30,
    ),
    # Pressure mode
    Achievement(
        "first_pressure", "Under Fire", "Complete a Pressure Mode drill", "🔥",
        AchievementCategory.PRESSURE,
        lambda rs, s: any(r.drill_type == "pressure-mode" for r in rs),
    ),
    Achievement(
        "pressure_ace", "Ice Veins", "80%+ accuracy in Pressure Mode", "🧊",
        AchievementCategory.PRESSURE,
        lambda rs, s: any(r.drill_type == "pressure-mode" and r.accuracy >= 80 for r in rs),
    ),
    Achievement(
        "pressure_survivor", "Survivor",
        "Complete 60s Pressure Mode with 70%+ accuracy", "🛡️",
        AchievementCategory.PRESSURE, _pressure_survivor,
    ),
    # Scene snapshots
    Achievement(
        "scene_master", "Photographic", "90%+ on a Scene Snapshot", "📸",
        AchievementCategory.ACCURACY,
        lambda rs, s: any(r.drill_type == "scene-snapshot" and r.accuracy >= 90 for r in rs),
    ),
    # Speed
    Achievement(
        "speed_demon", "Speed Demon", "Average recall under 3 seconds", "⚡",
        AchievementCategory.DRILL,
        lambda rs, s: any(r.speed_ms < 3000 and r.accuracy >= 80 for r in rs),
    ),
)


def get_achievements(
    results: list[DrillResult],
    stats: UserStats,
) -> list[tuple[Achievement, bool]]:
    """Every achievement paired with its unlock flag, in catalogue order."""
    return [(a, a.is_unlocked(results, stats)) for a in ACHIEVEMENTS]


def unlocked_count(results: list[DrillResult], stats: UserStats) -> int:
    return sum(1 for _, unlocked in get_achievements(results, stats) if unlocked)


def newly_unlocked(
    results: list[DrillResult],
    stats: UserStats,
    previous_count: int,
) -> list[Achievement]:
    """Unlocked achievements beyond the first `previous_count` (catalogue order)."""
    unlocked = [a for a, ok in get_achievements(results, stats) if ok]
    return unlocked[previous_count:]
