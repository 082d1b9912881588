"""Tests for usage tracking and turn dedup."""
from party_ai.core.ai import (
    TurnDedupStore,
    UsageTracker,
    end_encounter,
    get_usage_tracker,
    start_encounter,
)


class TestRecency:
    """Tests for was_used_recently / mark_used."""

    def test_marked_ability_is_recent(self, tracker):
        tracker.mark_used("hero", "focus")
        assert tracker.was_used_recently("hero", "focus")
        assert not tracker.was_used_recently("hero", "other")

    def test_expires_after_window(self, tracker):
        """With a one-turn window the marker expires on the next turn."""
        tracker.sync_turn(1)
        tracker.mark_used("hero", "focus")
        tracker.sync_turn(2)
        assert not tracker.was_used_recently("hero", "focus")

    def test_longer_window(self):
        tracker = UsageTracker(recency_window=2)
        tracker.sync_turn(1)
        tracker.mark_used("hero", "focus")
        tracker.sync_turn(2)
        assert tracker.was_used_recently("hero", "focus")
        tracker.sync_turn(3)
        assert not tracker.was_used_recently("hero", "focus")

    def test_window_floor(self):
        """A zero window is treated as one turn."""
        assert UsageTracker(recency_window=0).recency_window == 1

    def test_units_isolated(self, tracker):
        """Entries are keyed by unit, so one unit's buff never blocks another."""
        tracker.mark_used("hero", "focus")
        assert not tracker.was_used_recently("sidekick", "focus")


class TestTargetRecency:
    """Tests for the per-target markers."""

    def test_marked_pair_only(self, tracker):
        tracker.mark_used_on_target("hero", "bolster", "ally-b")
        assert tracker.was_used_on_target_recently("hero", "bolster", "ally-b")
        assert not tracker.was_used_on_target_recently("hero", "bolster", "ally-c")
        assert not tracker.was_used_on_target_recently("sidekick", "bolster", "ally-b")


class TestTurnBoundaries:
    """Tests for sync_turn and the dedup store."""

    def test_backwards_turn_resets(self, tracker):
        """A lower turn id means a new encounter."""
        tracker.sync_turn(5)
        tracker.mark_used("hero", "focus")
        tracker.dedup.add("hero", 5, "stance")

        tracker.sync_turn(1)

        assert tracker.current_turn == 1
        assert not tracker.was_used_recently("hero", "focus")
        assert len(tracker.dedup) == 0

    def test_dedup_pruned_on_new_turn(self, tracker):
        tracker.sync_turn(1)
        tracker.dedup.add("hero", 1, "stance")
        assert tracker.dedup.contains("hero", 1, "stance")

        tracker.sync_turn(2)

        assert not tracker.dedup.contains("hero", 1, "stance")

    def test_dedup_kept_within_turn(self, tracker):
        """Several decisions in the same turn share the dedup entries."""
        tracker.sync_turn(1)
        tracker.dedup.add("hero", 1, "stance")
        tracker.sync_turn(1)
        assert tracker.dedup.contains("hero", 1, "stance")

    def test_dedup_keys(self):
        store = TurnDedupStore()
        store.add("hero", 1, "taunt", "goblin")
        assert store.contains("hero", 1, "taunt", "goblin")
        assert not store.contains("hero", 1, "taunt")
        assert not store.contains("sidekick", 1, "taunt", "goblin")


class TestEncounterLifecycle:
    """Tests for the shared tracker."""

    def test_shared_instance(self):
        assert get_usage_tracker() is get_usage_tracker()

    def test_start_encounter_resets(self):
        tracker = get_usage_tracker()
        tracker.mark_used("hero", "focus")

        assert start_encounter() is tracker
        assert not tracker.was_used_recently("hero", "focus")

    def test_end_encounter_resets(self):
        tracker = get_usage_tracker()
        tracker.sync_turn(3)
        tracker.dedup.add("hero", 3, "stance")

        end_encounter()

        assert tracker.current_turn == 0
        assert len(tracker.dedup) == 0
