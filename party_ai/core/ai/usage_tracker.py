"""
Ability Usage Tracking.

Remembers which unit used which ability (optionally on which target) so
policies do not re-buff or repeat one-shot skills inside the recency
window. The window is counted in turns: a marker made on turn T is
"recent" while current_turn - T < recency_window. Expiry is a comparison
at query time; nothing sweeps old entries except turn and encounter
boundaries.

The tracker also owns the turn-scoped dedup store used for "at most once
per (unit, turn, ability, target)" rules.
"""
import logging
from typing import Dict, Optional, Set, Tuple

from party_ai.core.behavior_config import EngineTuning

logger = logging.getLogger(__name__)

SELF_TARGET = "self"

DedupKey = Tuple[str, int, str, str]


class TurnDedupStore:
    """Set of (unit_id, turn_id, ability_id, target_id) applications."""

    def __init__(self):
        self._entries: Set[DedupKey] = set()

    def contains(self, unit_id: str, turn_id: int, ability_id: str, target_id: str = SELF_TARGET) -> bool:
        return (unit_id, turn_id, ability_id, target_id) in self._entries

    def add(self, unit_id: str, turn_id: int, ability_id: str, target_id: str = SELF_TARGET) -> None:
        self._entries.add((unit_id, turn_id, ability_id, target_id))

    def prune(self, turn_id: int) -> None:
        """Drop entries from any turn other than turn_id."""
        self._entries = {e for e in self._entries if e[1] == turn_id}

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class UsageTracker:
    """
    Per-unit recency memory.

    Keys are unit and ability identifiers, so units acting in sequence never
    share entries. sync_turn() must be called with the current turn before
    a decision; a turn id lower than the last one seen starts a new
    encounter and clears everything.
    """

    def __init__(self, recency_window: int = 1):
        self.recency_window = max(1, recency_window)
        self.current_turn = 0
        self._used: Dict[Tuple[str, str], int] = {}
        self._used_on_target: Dict[Tuple[str, str, str], int] = {}
        self.dedup = TurnDedupStore()

    def sync_turn(self, turn_id: int) -> None:
        """Advance the clock to turn_id, rolling over on a backwards jump."""
        if turn_id < self.current_turn:
            logger.debug(f"Turn id went back ({self.current_turn} -> {turn_id}), resetting usage")
            self.reset()
        if turn_id != self.current_turn:
            self.dedup.prune(turn_id)
        self.current_turn = turn_id

    def _is_recent(self, marker: Optional[int]) -> bool:
        return marker is not None and self.current_turn - marker < self.recency_window

    def was_used_recently(self, unit_id: str, ability_id: str) -> bool:
        return self._is_recent(self._used.get((unit_id, ability_id)))

    def mark_used(self, unit_id: str, ability_id: str) -> None:
        self._used[(unit_id, ability_id)] = self.current_turn

    def was_used_on_target_recently(self, unit_id: str, ability_id: str, target_id: str) -> bool:
        return self._is_recent(self._used_on_target.get((unit_id, ability_id, target_id)))

    def mark_used_on_target(self, unit_id: str, ability_id: str, target_id: str) -> None:
        self._used_on_target[(unit_id, ability_id, target_id)] = self.current_turn

    def reset(self) -> None:
        self.current_turn = 0
        self._used.clear()
        self._used_on_target.clear()
        self.dedup.clear()


# Process-wide tracker shared by every decision in the encounter
_tracker: Optional[UsageTracker] = None


def get_usage_tracker() -> UsageTracker:
    """Get the shared tracker, creating it on first use."""
    global _tracker
    if _tracker is None:
        _tracker = UsageTracker(EngineTuning.from_settings().recency_window)
    return _tracker


def start_encounter() -> UsageTracker:
    """Reset usage memory at the start of an encounter."""
    tracker = get_usage_tracker()
    tracker.reset()
    logger.info("Usage tracker reset for new encounter")
    return tracker


def end_encounter() -> None:
    """Clear usage memory so nothing bleeds into the next encounter."""
    get_usage_tracker().reset()
