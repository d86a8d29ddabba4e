"""
Drill completion loop.

When a drill finishes, its checked facts flow into the scheduler:
1. The drill result is appended to the result log
2. Facts that match a due item of the same drill type are reviewed
   (correct -> quality 5, wrong -> quality 0)
3. Wrong facts that are not tracked yet become new spaced items
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from .models import DrillResult, SpacedItem, generate_id, now_ms
from .scheduler import SM2Scheduler, accuracy_to_quality
from .state_store import ItemStore, ResultLog


@dataclass(frozen=True)
class FactOutcome:
    """One checked fact from a drill, e.g. a plate or a labelled scene detail."""

    content: str
    correct: bool


@dataclass
class DrillSummary:
    """What a completed drill changed."""

    result: DrillResult
    created: list[SpacedItem] = field(default_factory=list)
    reviewed: list[SpacedItem] = field(default_factory=list)

    @property
    def missed(self) -> int:
        return len(self.created)


def average_accuracy(facts: list[FactOutcome]) -> float:
    """Share of correct facts as a percentage (0 for an empty drill)."""
    if not facts:
        return 0.0
    return sum(1 for f in facts if f.correct) / len(facts) * 100


def new_drill_result(
    drill_type: str,
    accuracy: float,
    speed_ms: float,
    difficulty: int,
    details: dict[str, Any] | None = None,
    timestamp: int | None = None,
) -> DrillResult:
    """Build a result record with a fresh id."""
    stamp = now_ms() if timestamp is None else timestamp
    return DrillResult(
        id=generate_id(stamp),
        drill_type=drill_type,
        timestamp=stamp,
        accuracy=accuracy,
        speed_ms=speed_ms,
        difficulty=difficulty,
        details=details or {},
    )


class DrillRecorder:
    """
    Records finished drills and feeds their facts to the scheduler.

    Wiring:
        store = SQLiteStateStore()
        recorder = DrillRecorder(store, SM2Scheduler(store))
        recorder.complete_drill(result, facts)
    """

    def __init__(self, results: ResultLog, scheduler: SM2Scheduler):
        self.results = results
        self.scheduler = scheduler

    @property
    def items(self) -> ItemStore:
        return self.scheduler.store

    def complete_drill(
        self,
        result: DrillResult,
        facts: list[FactOutcome],
    ) -> DrillSummary:
        """
        Log a drill and update spaced items for its facts.

        Args:
            result: The finished drill's result record
            facts: Per-fact correctness, in the order they were asked

        Returns:
            DrillSummary listing the items created and reviewed
        """
        self.results.save_drill_result(result)
        summary = DrillSummary(result=result)
        drill_type = result.drill_type

        # Review facts that came back round on schedule
        due = self.scheduler.get_due_items(item_type=drill_type)
        due_by_content: dict[str, SpacedItem] = {}
        for item in due:
            due_by_content.setdefault(item.content, item)

        for fact in facts:
            item = due_by_content.pop(fact.content, None)
            if item is None:
                continue
            quality = accuracy_to_quality(100 if fact.correct else 0)
            summary.reviewed.append(self.scheduler.process_review(item, quality))

        # Track new misses once per fact
        for fact in facts:
            if fact.correct:
                continue
            if self.items.find(drill_type, fact.content) is not None:
                continue
            summary.created.append(
                self.scheduler.create_spaced_item(drill_type, fact.content)
            )

        logger.info(
            f"Drill {result.id} ({drill_type}): accuracy={result.accuracy:.1f}%, "
            f"{len(summary.reviewed)} reviewed, {len(summary.created)} newly tracked"
        )
        return summary
