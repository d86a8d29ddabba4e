"""
SM-2 Spaced Repetition Scheduler for drill facts.

Implements:
- SM-2 algorithm for review intervals and ease factors
- Quality grades validated at the boundary (Quality)
- Accuracy -> quality mapping for drill scores
- Competency tiers (bronze / silver / gold) for accuracy values

SM-2 Grade Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall
"""

from __future__ import annotations

import math
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from .errors import InvalidQualityError, ItemNotFoundError
from .models import DAY_MS, SpacedItem, generate_id, now_ms

if TYPE_CHECKING:
    from .state_store import ItemStore

PASSING_QUALITY = 3

# (minimum accuracy, quality), evaluated high to low
QUALITY_BANDS: tuple[tuple[float, int], ...] = (
    (95, 5),
    (80, 4),
    (60, 3),
    (40, 2),
    (20, 1),
)


# =============================================================================
# Quality Grades
# =============================================================================


class Quality(int):
    """
    A review grade guaranteed to be an integer in [0, 5].

    Construction is the only validation point: anything else (floats,
    bools, strings, out-of-range ints) raises InvalidQualityError.
    """

    MIN = 0
    MAX = 5

    def __new__(cls, value: int) -> Quality:
        if isinstance(value, Quality):
            return value
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidQualityError(value)
        if not cls.MIN <= value <= cls.MAX:
            raise InvalidQualityError(value)
        return super().__new__(cls, value)

    @classmethod
    def from_accuracy(cls, accuracy: float) -> Quality:
        return cls(accuracy_to_quality(accuracy))

    @property
    def is_passing(self) -> bool:
        """Grades of 3 and above count as successful recall."""
        return self >= PASSING_QUALITY


def accuracy_to_quality(accuracy: float) -> int:
    """
    Convert an accuracy percentage to an SM-2 quality grade.

    Values outside 0-100 are not rejected: anything above 100 grades 5,
    anything below 20 (negative or NaN included) grades 0.
    """
    for threshold, quality in QUALITY_BANDS:
        if accuracy >= threshold:
            return quality
    return 0


# =============================================================================
# Competency Tiers
# =============================================================================


class CompetencyLevel(str, Enum):
    """Coarse skill tier for an accuracy value."""

    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"

    @classmethod
    def from_accuracy(cls, accuracy: float) -> CompetencyLevel:
        if accuracy >= 90:
            return cls.GOLD
        if accuracy >= 70:
            return cls.SILVER
        return cls.BRONZE

    @property
    def label(self) -> str:
        return self.value.upper()

    @property
    def color(self) -> str:
        """Hex colour used when the tier is displayed."""
        return {
            CompetencyLevel.GOLD: "#fbbf24",
            CompetencyLevel.SILVER: "#94a3b8",
            CompetencyLevel.BRONZE: "#d97706",
        }[self]


def get_competency_level(accuracy: float) -> CompetencyLevel:
    """Tier for an accuracy percentage (gold >= 90, silver >= 70)."""
    return CompetencyLevel.from_accuracy(accuracy)


# =============================================================================
# SM-2 Algorithm
# =============================================================================


@dataclass
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_easiness: float = 2.5
    minimum_easiness: float = 1.3
    first_interval: int = 1  # Days for first review
    second_interval: int = 6  # Days for second review
    maximum_interval: int | None = None  # None = intervals grow without bound


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SM2Scheduler:
    """
    Implements the SM-2 spaced repetition algorithm over an ItemStore.

    Each tracked fact has:
    - Ease Factor (EF): How easy the fact is (2.5 default, min 1.3)
    - Interval: Days until next review
    - Repetitions: Consecutive successful recalls

    Every state change is persisted to the store before it is returned.
    """

    def __init__(
        self,
        store: ItemStore,
        config: SM2Config | None = None,
        clock: Callable[[], int] | None = None,
    ):
        """
        Initialize SM-2 scheduler.

        Args:
            store: Where spaced items are read from and written to
            config: Custom configuration (uses defaults if None)
            clock: Returns the current time in epoch ms (wall clock if None)
        """
        self.store = store
        self.config = config or SM2Config()
        self.clock = clock or now_ms
        self._lock = threading.Lock()

    def create_spaced_item(self, item_type: str, content: str) -> SpacedItem:
        """
        Start tracking a fact the learner got wrong.

        Args:
            item_type: Drill the fact belongs to (e.g. "reg-plate")
            content: The fact itself

        Returns:
            The new item, due one interval from now
        """
        now = self.clock()
        interval = self.config.first_interval
        item = SpacedItem(
            id=generate_id(now),
            item_type=item_type,
            content=content,
            ease_factor=self.config.initial_easiness,
            interval=interval,
            repetitions=0,
            next_review=now + interval * DAY_MS,
            last_review=now,
        )
        self.store.save(item)

        logger.debug(f"Tracking new {item_type} item {item.id}: {content!r}")
        return item

    def calculate_next_state(
        self,
        item: SpacedItem,
        quality: int,
        now: int,
    ) -> SpacedItem:
        """
        Compute an item's state after a review, without persisting it.

        Args:
            item: Current state
            quality: Review grade (0-5)
            now: Review time in epoch ms

        Returns:
            New SpacedItem with updated interval, ease and due time
        """
        grade = Quality(quality)
        interval = item.interval
        repetitions = item.repetitions

        if grade < PASSING_QUALITY:
            # Failed - reset to beginning
            repetitions = 0
            interval = self.config.first_interval
        else:
            # Passed - advance using the ease factor from before this review
            if repetitions == 0:
                interval = self.config.first_interval
            elif repetitions == 1:
                interval = self.config.second_interval
            else:
                interval = _round_half_up(interval * item.ease_factor)
            repetitions += 1

        if self.config.maximum_interval is not None:
            interval = min(interval, self.config.maximum_interval)
        interval = max(1, interval)

        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), applied on failure too
        miss = 5 - grade
        ease_factor = max(
            self.config.minimum_easiness,
            item.ease_factor + (0.1 - miss * (0.08 + miss * 0.02)),
        )

        return replace(
            item,
            ease_factor=ease_factor,
            interval=interval,
            repetitions=repetitions,
            last_review=now,
            next_review=now + interval * DAY_MS,
        )

    def process_review(self, item: SpacedItem, quality: int) -> SpacedItem:
        """
        Apply a review to a tracked item and persist the result.

        The stored record for the item's id is the state that gets advanced,
        so a stale copy held by the caller cannot roll back newer reviews.

        Args:
            item: The reviewed item (only its id is used for lookup)
            quality: Review grade (0-5)

        Returns:
            The updated, persisted item

        Raises:
            InvalidQualityError: If quality is not an integer in [0, 5]
            ItemNotFoundError: If the store does not hold the item
        """
        grade = Quality(quality)

        with self._lock:
            current = self.store.get(item.id)
            if current is None:
                raise ItemNotFoundError(item.id)

            updated = self.calculate_next_state(current, grade, self.clock())
            self.store.save(updated)

        logger.debug(
            f"Reviewed {updated.id}: quality={int(grade)}, "
            f"interval={updated.interval}d, ease={updated.ease_factor:.2f}, "
            f"repetitions={updated.repetitions}"
        )
        return updated

    def get_due_items(
        self,
        now: int | None = None,
        item_type: str | None = None,
    ) -> list[SpacedItem]:
        """Items due at `now` (scheduler clock if omitted), optionally for one drill type."""
        current = self.clock() if now is None else now
        return self.store.get_due_items(current, item_type=item_type)
