"""
Target Evaluation and Snapshot Building.

Scores enemies for the acting unit and derives the precomputed target
candidates (nearest, weakest, best melee, best ranged, best overall) the
decision pipeline reads from its snapshot.
"""
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, List, Optional, Sequence, TYPE_CHECKING

from party_ai.core.behavior_config import BehaviorSettings, RangePreference, get_unit_settings
from party_ai.core.errors import InvalidSnapshotError
from .classification import AbilityClassifier, get_default_classifier
from .models import Ability, ActionContext, TurnPlanHint, Unit

if TYPE_CHECKING:
    from .host import CombatHost

logger = logging.getLogger(__name__)

DEFAULT_MELEE_RANGE = 2.0
UNHITTABLE_PENALTY = 1000.0


class TargetPriority(str, Enum):
    """Target selection priorities."""
    NEAREST = "nearest"
    WEAKEST = "weakest"
    BEST_SCORE = "best_score"


@dataclass
class TargetScore:
    """Evaluation score for a potential target."""
    target: Unit
    total_score: float = 0.0
    hp_percent_score: float = 0.0
    hp_absolute_score: float = 0.0
    distance_score: float = 0.0
    killable_bonus: float = 0.0
    range_adjustment: float = 0.0
    distance: float = 0.0
    is_hittable: bool = True
    reasons: List[str] = field(default_factory=list)


def find_nearest_enemy(unit: Unit, enemies: Sequence[Unit], host: "CombatHost") -> Optional[Unit]:
    if not enemies:
        return None
    return min(enemies, key=lambda e: host.distance(unit, e))


def find_weakest_enemy(enemies: Sequence[Unit]) -> Optional[Unit]:
    """Lowest HP percent, ties broken by lowest absolute HP."""
    if not enemies:
        return None
    return min(enemies, key=lambda e: (e.hp_percent, e.current_hp))


def find_most_wounded_ally(unit: Unit, allies: Sequence[Unit]) -> Optional[Unit]:
    """Most wounded among allies and the unit itself, None if nobody is hurt."""
    candidates = [u for u in list(allies) + [unit] if u.current_hp < u.max_hp]
    if not candidates:
        return None
    return min(candidates, key=lambda u: u.hp_percent)


def _range_adjustment(preference: RangePreference, distance: float) -> float:
    if preference.favors_ranged:
        if distance > 5.0:
            return 20.0
        if distance < 3.0:
            return -30.0
        return 0.0
    if preference == RangePreference.PREFER_MELEE:
        return max(0.0, (10.0 - distance) * 3.0)
    return 0.0


def score_targets(
    unit: Unit,
    enemies: Sequence[Unit],
    host: "CombatHost",
    range_preference: RangePreference = RangePreference.ADAPTIVE,
    attacks: Sequence[Ability] = (),
    estimated_damage: Optional[float] = None,
) -> List[TargetScore]:
    """
    Score every enemy and return them best first.

    Scoring:
    - HP percent: up to 30 points for a badly hurt target
    - Absolute HP: up to 20 points, 100 / HP
    - Distance: up to 15 points for the closest target
    - Killable: 35 points if one hit kills, 10 if two do
    - Range preference adjustment
    - Targets no attack can legally hit sink by 1000

    Args:
        unit: The acting unit
        enemies: Living enemies
        host: Host answering distance and legality queries
        range_preference: Preference applied as the adjustment
        attacks: Abilities used to decide hittability; empty means all hittable
        estimated_damage: Expected damage per hit, enables the killable bonus

    Returns:
        List of TargetScore sorted by total_score descending
    """
    if not enemies:
        return []

    max_distance = max([1.0] + [host.distance(unit, e) for e in enemies])
    scores = []

    for enemy in enemies:
        distance = host.distance(unit, enemy)
        score = TargetScore(target=enemy, distance=distance)

        score.hp_percent_score = (100.0 - enemy.hp_percent) / 100.0 * 30.0
        score.hp_absolute_score = min(20.0, 100.0 / max(5.0, enemy.current_hp))
        score.distance_score = (1.0 - distance / max_distance) * 15.0

        if estimated_damage:
            if enemy.current_hp <= estimated_damage * 1.2:
                score.killable_bonus = 35.0
                score.reasons.append("Killable this hit")
            elif enemy.current_hp <= estimated_damage * 2:
                score.killable_bonus = 10.0
                score.reasons.append("Killable in two hits")

        score.range_adjustment = _range_adjustment(range_preference, distance)

        if attacks:
            score.is_hittable = any(host.can_use(a, enemy)[0] for a in attacks)

        score.total_score = (
            score.hp_percent_score
            + score.hp_absolute_score
            + score.distance_score
            + score.killable_bonus
            + score.range_adjustment
        )
        if not score.is_hittable:
            score.total_score -= UNHITTABLE_PENALTY
            score.reasons.append("Not hittable from here")

        scores.append(score)

    scores.sort(key=lambda s: s.total_score, reverse=True)
    return scores


def get_best_target(
    unit: Unit,
    enemies: Sequence[Unit],
    host: "CombatHost",
    priority: TargetPriority = TargetPriority.BEST_SCORE,
    range_preference: RangePreference = RangePreference.ADAPTIVE,
    attacks: Sequence[Ability] = (),
) -> Optional[Unit]:
    """Pick one target by priority. BEST_SCORE returns None when nobody is hittable."""
    if priority == TargetPriority.NEAREST:
        return find_nearest_enemy(unit, enemies, host)
    if priority == TargetPriority.WEAKEST:
        return find_weakest_enemy(enemies)

    hittable = [s for s in score_targets(unit, enemies, host, range_preference, attacks) if s.is_hittable]
    return hittable[0].target if hittable else None


def build_action_context(
    host: "CombatHost",
    unit: Unit,
    allies: Iterable[Unit] = (),
    enemies: Iterable[Unit] = (),
    abilities: Iterable[Ability] = (),
    current_ap: float = 0.0,
    max_ap: Optional[float] = None,
    settings: Optional[BehaviorSettings] = None,
    reserved_ap_for_attack: Optional[float] = None,
    has_performed_first_action: bool = False,
    can_move: bool = True,
    turn_id: int = 0,
    turn_plan: Optional[TurnPlanHint] = None,
    plan: bool = False,
    classifier: Optional[AbilityClassifier] = None,
    melee_range: float = DEFAULT_MELEE_RANGE,
) -> ActionContext:
    """
    Build the read-only snapshot for one decision.

    Args:
        host: Host answering distance and legality queries
        unit: The acting unit
        allies: Living allies, the unit itself excluded
        enemies: Living enemies
        abilities: Abilities the unit can currently afford and has unlocked
        current_ap: AP left this turn
        max_ap: AP at turn start, defaults to current_ap
        settings: Behavior settings, defaults to the unit's registered settings
        reserved_ap_for_attack: AP to keep for the planned attack, defaults to
            the cheapest offensive ability's cost
        has_performed_first_action: Whether the unit already acted this turn
        can_move: Whether the unit can still move
        turn_id: Current turn counter
        turn_plan: Advisory plan to attach
        plan: Compute the advisory plan when turn_plan is not given
        classifier: Ability classifier, defaults to the shared one
        melee_range: Distance at which an enemy counts as engaged

    Returns:
        Populated ActionContext
    """
    if unit is None:
        raise InvalidSnapshotError("Cannot build a snapshot without an acting unit")

    classifier = classifier or get_default_classifier()
    settings = settings or get_unit_settings(unit.unit_id)
    allies = tuple(a for a in allies if a.current_hp > 0 and a.unit_id != unit.unit_id)
    enemies = tuple(e for e in enemies if e.current_hp > 0)
    abilities = tuple(abilities)

    attacks = [a for a in abilities if classifier.is_offensive(a)]
    melee_attacks = [a for a in attacks if a.is_melee]
    ranged_attacks = [a for a in attacks if a.is_ranged]

    if reserved_ap_for_attack is None:
        costs = [host.get_ap_cost(a) for a in attacks]
        reserved_ap_for_attack = min(costs) if costs else 0.0

    nearest = find_nearest_enemy(unit, enemies, host)
    nearest_distance = host.distance(unit, nearest) if nearest else float("inf")
    in_melee = [e for e in enemies if host.distance(unit, e) <= melee_range]

    best_melee = get_best_target(
        unit, in_melee, host, range_preference=RangePreference.PREFER_MELEE, attacks=melee_attacks
    ) if melee_attacks else None
    best_ranged = get_best_target(
        unit, enemies, host, range_preference=RangePreference.PREFER_RANGED, attacks=ranged_attacks
    ) if ranged_attacks else None
    best = get_best_target(
        unit, enemies, host, range_preference=settings.range_preference, attacks=attacks
    )

    ctx = ActionContext(
        unit=unit,
        hp_percent=unit.hp_percent,
        current_ap=current_ap,
        max_ap=current_ap if max_ap is None else max_ap,
        settings=settings,
        reserved_ap_for_attack=reserved_ap_for_attack,
        has_performed_first_action=has_performed_first_action,
        allies=allies,
        enemies=enemies,
        available_abilities=abilities,
        nearest_enemy=nearest,
        weakest_enemy=find_weakest_enemy(enemies),
        best_melee_target=best_melee,
        best_ranged_target=best_ranged,
        best_target=best,
        most_wounded_ally=find_most_wounded_ally(unit, allies),
        nearest_enemy_distance=nearest_distance,
        is_in_melee_range=bool(in_melee),
        has_melee_weapon=any(a.is_melee for a in abilities),
        has_ranged_weapon=any(a.is_ranged for a in abilities),
        enemies_in_melee_range=len(in_melee),
        can_move=can_move,
        turn_plan=turn_plan,
        turn_id=turn_id,
    )

    if turn_plan is None and plan:
        from .turn_planner import plan_turn
        ctx = replace(ctx, turn_plan=plan_turn(ctx, host, classifier))

    logger.debug(
        f"Snapshot for {unit.display_name}: {len(enemies)} enemies, {len(allies)} allies, "
        f"{len(abilities)} abilities, nearest={nearest.display_name if nearest else None}"
    )
    return ctx
