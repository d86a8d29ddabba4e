"""
Unit tests for the SM-2 scheduler.

Tests:
- Item creation defaults
- Interval progression (1, 6, then interval * ease)
- Failure reset and graduated ease penalty
- Ease factor floor and interval invariants
- Quality validation and missing-item rejection

Run: pytest tests/unit/test_scheduler.py -v
"""

import itertools

import pytest

from arvil.training.errors import InvalidQualityError, ItemNotFoundError
from arvil.training.models import DAY_MS, SpacedItem
from arvil.training.scheduler import Quality, SM2Config, SM2Scheduler


def _tracked(store, **overrides) -> SpacedItem:
    """Save an item with the given state and return it."""
    fields = dict(
        id="item-1",
        item_type="reg-plate",
        content="AB12 CDE",
        ease_factor=2.5,
        interval=1,
        repetitions=0,
        next_review=0,
        last_review=0,
    )
    fields.update(overrides)
    item = SpacedItem(**fields)
    store.save(item)
    return item


class TestCreateSpacedItem:
    """Tests for new item defaults."""

    def test_defaults(self, scheduler, clock):
        item = scheduler.create_spaced_item("reg-plate", "AB12 CDE")

        assert item.item_type == "reg-plate"
        assert item.content == "AB12 CDE"
        assert item.ease_factor == 2.5
        assert item.interval == 1
        assert item.repetitions == 0
        assert item.last_review == clock.now
        assert item.next_review == clock.now + DAY_MS

    def test_persisted(self, scheduler, memory_store):
        item = scheduler.create_spaced_item("scene-snapshot", "Time: 14:32")

        assert memory_store.get(item.id) == item

    def test_ids_are_unique(self, scheduler, memory_store):
        first = scheduler.create_spaced_item("reg-plate", "AB12 CDE")
        second = scheduler.create_spaced_item("reg-plate", "AB12 CDE")

        assert first.id != second.id
        assert len(memory_store.get_all()) == 2

    def test_not_due_until_a_day_passes(self, scheduler, clock):
        scheduler.create_spaced_item("reg-plate", "AB12 CDE")

        assert scheduler.get_due_items() == []
        clock.advance_days(1)
        assert len(scheduler.get_due_items()) == 1


class TestProgression:
    """Tests for successful-review interval growth."""

    def test_three_good_reviews(self, scheduler, memory_store):
        """Quality 4 keeps ease at 2.5, so intervals run 1, 6, 15."""
        item = _tracked(memory_store)

        first = scheduler.process_review(item, 4)
        second = scheduler.process_review(first, 4)
        ease_before_third = second.ease_factor
        third = scheduler.process_review(second, 4)

        assert (first.interval, first.repetitions) == (1, 1)
        assert (second.interval, second.repetitions) == (6, 2)
        assert ease_before_third == pytest.approx(2.5)
        assert third.interval == round(6 * ease_before_third) == 15
        assert third.repetitions == 3

    def test_third_interval_uses_ease_from_before_the_review(self, scheduler, memory_store):
        """Interval 6 at ease 2.7 becomes 16; using the post-review 2.8 would give 17."""
        item = _tracked(memory_store, repetitions=2, interval=6, ease_factor=2.7)

        updated = scheduler.process_review(item, 5)

        assert updated.interval == 16
        assert updated.ease_factor == pytest.approx(2.8)

    def test_rounding_is_half_up(self, scheduler, memory_store):
        item = _tracked(memory_store, repetitions=2, interval=5, ease_factor=2.5)

        updated = scheduler.process_review(item, 4)

        assert updated.interval == 13

    def test_first_success_after_reset_is_one_day(self, scheduler, memory_store):
        item = _tracked(memory_store, repetitions=4, interval=30, ease_factor=2.2)

        failed = scheduler.process_review(item, 1)
        recovered = scheduler.process_review(failed, 5)

        assert recovered.interval == 1
        assert recovered.repetitions == 1

    def test_maximum_interval_caps_growth(self, memory_store, clock):
        capped = SM2Scheduler(memory_store, SM2Config(maximum_interval=10), clock=clock)
        item = _tracked(memory_store, repetitions=2, interval=6, ease_factor=2.5)

        updated = capped.process_review(item, 5)

        assert updated.interval == 10
        assert updated.next_review == clock.now + 10 * DAY_MS

    def test_uncapped_by_default(self, scheduler, memory_store):
        item = _tracked(memory_store, repetitions=10, interval=3000, ease_factor=2.5)

        updated = scheduler.process_review(item, 5)

        assert updated.interval == 7500


class TestEaseFactor:
    """Tests for the ease factor update."""

    @pytest.mark.parametrize(
        "quality,expected_delta",
        [(5, 0.1), (4, 0.0), (3, -0.14), (2, -0.32), (1, -0.54), (0, -0.8)],
    )
    def test_delta_per_quality(self, scheduler, memory_store, quality, expected_delta):
        item = _tracked(memory_store, ease_factor=2.5)

        updated = scheduler.process_review(item, quality)

        assert updated.ease_factor == pytest.approx(2.5 + expected_delta)

    def test_failure_penalty_is_graduated(self, scheduler, memory_store):
        """All failing grades reset the schedule but lower ease by different amounts."""
        eases = []
        for quality in (0, 1, 2):
            item = _tracked(memory_store, id=f"item-{quality}")
            eases.append(scheduler.process_review(item, quality).ease_factor)

        assert eases[0] < eases[1] < eases[2] < 2.5

    def test_floor(self, scheduler, memory_store):
        item = _tracked(memory_store, ease_factor=1.35)

        updated = scheduler.process_review(item, 0)

        assert updated.ease_factor == 1.3

    def test_repeated_failures_stay_at_floor(self, scheduler, memory_store):
        item = _tracked(memory_store)
        for _ in range(10):
            item = scheduler.process_review(item, 0)

        assert item.ease_factor == 1.3


class TestFailureReset:
    """Tests for quality < 3."""

    @pytest.mark.parametrize("quality", [0, 1, 2])
    def test_reset_from_advanced_state(self, scheduler, memory_store, clock, quality):
        item = _tracked(memory_store, repetitions=5, interval=40, ease_factor=2.0)

        updated = scheduler.process_review(item, quality)

        assert updated.repetitions == 0
        assert updated.interval == 1
        assert updated.last_review == clock.now
        assert updated.next_review == clock.now + DAY_MS


class TestInvariants:
    """State invariants across review sequences."""

    @pytest.mark.parametrize("grades", list(itertools.product([0, 2, 3, 5], repeat=3)))
    def test_invariants_hold(self, scheduler, memory_store, clock, grades):
        item = _tracked(memory_store)

        for grade in grades:
            clock.advance_days(item.interval)
            item = scheduler.process_review(item, grade)

            assert item.ease_factor >= 1.3
            assert item.interval >= 1
            assert item.repetitions >= 0
            assert item.next_review == item.last_review + item.interval * DAY_MS

    def test_review_removes_item_from_due_set(self, scheduler, memory_store, clock):
        item = _tracked(memory_store, next_review=clock.now - 1)
        assert [i.id for i in scheduler.get_due_items()] == [item.id]

        scheduler.process_review(item, 5)

        assert scheduler.get_due_items() == []


class TestPersistence:
    """Tests for persist-before-return and id handling."""

    def test_review_is_persisted(self, scheduler, memory_store):
        item = _tracked(memory_store)

        updated = scheduler.process_review(item, 5)

        assert memory_store.get(item.id) == updated
        assert len(memory_store.get_all()) == 1

    def test_content_and_type_unchanged(self, scheduler, memory_store):
        item = _tracked(memory_store)

        updated = scheduler.process_review(item, 3)

        assert updated.id == item.id
        assert updated.content == item.content
        assert updated.item_type == item.item_type

    def test_stale_copy_does_not_roll_back(self, scheduler, memory_store):
        item = _tracked(memory_store)
        scheduler.process_review(item, 5)

        # Reviewing the pre-review copy advances the stored state
        updated = scheduler.process_review(item, 5)

        assert updated.repetitions == 2
        assert updated.interval == 6

    def test_missing_item_rejected(self, scheduler):
        ghost = SpacedItem(id="ghost", item_type="reg-plate", content="ZZ99 ZZZ")

        with pytest.raises(ItemNotFoundError) as exc_info:
            scheduler.process_review(ghost, 5)

        assert exc_info.value.item_id == "ghost"
        assert isinstance(exc_info.value, KeyError)


class TestQualityValidation:
    """Tests for the Quality boundary type."""

    @pytest.mark.parametrize("value", [0, 1, 2, 3, 4, 5])
    def test_valid(self, value):
        assert Quality(value) == value

    @pytest.mark.parametrize("value", [-1, 6, 9, 2.5, 3.0, True, False, "3", None])
    def test_invalid(self, value):
        with pytest.raises(InvalidQualityError):
            Quality(value)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            Quality(7)

    def test_passing(self):
        assert not Quality(2).is_passing
        assert Quality(3).is_passing

    def test_from_accuracy(self):
        assert Quality.from_accuracy(85) == 4

    def test_out_of_range_review_leaves_item_untouched(self, scheduler, memory_store):
        item = _tracked(memory_store)

        with pytest.raises(InvalidQualityError):
            scheduler.process_review(item, 9)

        assert memory_store.get(item.id) == item
