"""
Data records for the training core.

- SpacedItem: review state of one fact the learner got wrong
- DrillResult: one completed drill attempt (append-only)
- NDMEntry: a National Decision Model write-up
- UserStats: running aggregates over the result log

Timestamps are epoch milliseconds throughout. Records serialize to the
camelCase field names used by the export document.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

DAY_MS = 24 * 60 * 60 * 1000

_BASE36 = string.digits + string.ascii_lowercase


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_id(timestamp_ms: int | None = None) -> str:
    """Opaque id: creation time plus 7 random base36 characters."""
    stamp = now_ms() if timestamp_ms is None else timestamp_ms
    suffix = "".join(random.choices(_BASE36, k=7))
    return f"{stamp}-{suffix}"


def ms_to_datetime(value: int) -> datetime:
    """Local datetime for an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(value / 1000)


# =============================================================================
# Spaced Items
# =============================================================================


@dataclass
class SpacedItem:
    """SM-2 review state for a single tracked fact."""

    id: str
    item_type: str  # Drill the fact came from, e.g. "reg-plate"
    content: str  # The fact itself; doubles as the re-test prompt
    ease_factor: float = 2.5
    interval: int = 1  # Days until next review
    repetitions: int = 0  # Consecutive successes since last failure
    next_review: int = 0
    last_review: int = 0

    def is_due(self, now: int | None = None) -> bool:
        """Whether the scheduled review time has passed."""
        current = now_ms() if now is None else now
        return self.next_review <= current

    @property
    def next_review_at(self) -> datetime:
        return ms_to_datetime(self.next_review)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.item_type,
            "content": self.content,
            "easeFactor": self.ease_factor,
            "interval": self.interval,
            "repetitions": self.repetitions,
            "nextReview": self.next_review,
            "lastReview": self.last_review,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SpacedItem:
        return cls(
            id=str(data["id"]),
            item_type=str(data["type"]),
            content=str(data["content"]),
            ease_factor=float(data.get("easeFactor", 2.5)),
            interval=int(data.get("interval", 1)),
            repetitions=int(data.get("repetitions", 0)),
            next_review=int(data.get("nextReview", 0)),
            last_review=int(data.get("lastReview", 0)),
        )


# =============================================================================
# Drill Results
# =============================================================================


@dataclass(frozen=True)
class DrillResult:
    """A completed drill attempt. Never mutated once logged."""

    id: str
    drill_type: str
    timestamp: int
    accuracy: float  # 0-100
    speed_ms: float  # Average response time
    difficulty: int  # 1-5
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.drill_type,
            "timestamp": self.timestamp,
            "accuracy": self.accuracy,
            "speedMs": self.speed_ms,
            "difficulty": self.difficulty,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DrillResult:
        return cls(
            id=str(data["id"]),
            drill_type=str(data["type"]),
            timestamp=int(data["timestamp"]),
            accuracy=float(data["accuracy"]),
            speed_ms=float(data.get("speedMs", 0)),
            difficulty=int(data.get("difficulty", 1)),
            details=dict(data.get("details") or {}),
        )


# =============================================================================
# NDM Entries
# =============================================================================


@dataclass(frozen=True)
class NDMEntry:
    """National Decision Model write-up, one field per stage."""

    id: str
    timestamp: int
    gather: str = ""
    assess: str = ""
    powers: str = ""
    options: str = ""
    action: str = ""
    review: str = ""
    drill_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "gather": self.gather,
            "assess": self.assess,
            "powers": self.powers,
            "options": self.options,
            "action": self.action,
            "review": self.review,
        }
        if self.drill_id is not None:
            data["drillId"] = self.drill_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NDMEntry:
        return cls(
            id=str(data["id"]),
            timestamp=int(data["timestamp"]),
            gather=data.get("gather", ""),
            assess=data.get("assess", ""),
            powers=data.get("powers", ""),
            options=data.get("options", ""),
            action=data.get("action", ""),
            review=data.get("review", ""),
            drill_id=data.get("drillId"),
        )


# =============================================================================
# User Stats
# =============================================================================


@dataclass
class UserStats:
    """Aggregates maintained incrementally as drill results are logged."""

    total_drills: int = 0
    total_accuracy: float = 0.0  # Running mean
    streak: int = 0  # Consecutive training days
    last_drill_date: str = ""  # ISO date of the most recent drill
    best_accuracy: float = 0.0
    plates_attempted: int = 0
    plates_correct: int = 0
    scenes_attempted: int = 0
    scenes_correct: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalDrills": self.total_drills,
            "totalAccuracy": self.total_accuracy,
            "streak": self.streak,
            "lastDrillDate": self.last_drill_date,
            "bestAccuracy": self.best_accuracy,
            "platesAttempted": self.plates_attempted,
            "platesCorrect": self.plates_correct,
            "scenesAttempted": self.scenes_attempted,
            "scenesCorrect": self.scenes_correct,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserStats:
        return cls(
            total_drills=int(data.get("totalDrills", 0)),
            total_accuracy=float(data.get("totalAccuracy", 0.0)),
            streak=int(data.get("streak", 0)),
            last_drill_date=str(data.get("lastDrillDate", "")),
            best_accuracy=float(data.get("bestAccuracy", 0.0)),
            plates_attempted=int(data.get("platesAttempted", 0)),
            plates_correct=int(data.get("platesCorrect", 0)),
            scenes_attempted=int(data.get("scenesAttempted", 0)),
            scenes_correct=int(data.get("scenesCorrect", 0)),
        )
