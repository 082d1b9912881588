"""
Advisory Turn Planner.

Looks at the whole turn before the first decision and suggests whether to
buff first or hold range. The result is a TurnPlanHint attached to the
snapshot; phases treat it as advice, never as a command.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

from .classification import AbilityClassifier, get_default_classifier
from .models import Ability, ActionContext, TimingTag, TurnPlanHint, Unit

if TYPE_CHECKING:
    from .host import CombatHost

logger = logging.getLogger(__name__)

EMERGENCY_HP = 30.0
DANGER_DISTANCE = 5.0


class TurnPriority(str, Enum):
    """What the turn should be built around."""
    EMERGENCY = "emergency"
    RETREAT = "retreat"
    BUFF_MOVE_ATTACK = "buff_move_attack"
    MOVE_AND_ATTACK = "move_and_attack"
    BUFFED_ATTACK = "buffed_attack"
    DIRECT_ATTACK = "direct_attack"


@dataclass
class TurnSituation:
    """Facts the planner derives from a snapshot."""
    hittable_enemies: List[Unit] = field(default_factory=list)
    primary_attack: Optional[Ability] = None
    primary_attack_cost: float = 1.0
    best_buff: Optional[Ability] = None
    best_buff_cost: float = 0.0
    attacks_without_buff: int = 0
    attacks_with_buff: int = 0
    is_in_danger: bool = False


def _find_best_buff(ctx: ActionContext, host: "CombatHost", classifier: AbilityClassifier) -> Optional[Ability]:
    """Cheapest inactive self buff, attack buffs winning ties."""
    buffs = [
        a for a in ctx.available_abilities
        if classifier.is_proactive_buff(a)
        and a.can_target_self
        and not classifier.is_post_first_action(a)
        and not host.has_active_buff(ctx.unit, a)
    ]
    if not buffs:
        return None
    return min(
        buffs,
        key=lambda a: (
            host.get_ap_cost(a),
            0 if classifier.classify_timing(a) == TimingTag.PRE_ATTACK_BUFF else 1,
        ),
    )


def analyze_situation(
    ctx: ActionContext,
    host: "CombatHost",
    classifier: AbilityClassifier,
) -> TurnSituation:
    situation = TurnSituation()

    attacks = [a for a in ctx.available_abilities if classifier.is_offensive(a)]
    situation.hittable_enemies = [
        e for e in ctx.enemies if any(host.can_use(a, e)[0] for a in attacks)
    ]
    if attacks:
        situation.primary_attack = min(attacks, key=host.get_ap_cost)
        situation.primary_attack_cost = host.get_ap_cost(situation.primary_attack)

    situation.best_buff = _find_best_buff(ctx, host, classifier)
    if situation.best_buff is not None:
        situation.best_buff_cost = host.get_ap_cost(situation.best_buff)

    if situation.primary_attack_cost > 0:
        situation.attacks_without_buff = int(ctx.current_ap // situation.primary_attack_cost)
        ap_after_buff = ctx.current_ap - situation.best_buff_cost
        situation.attacks_with_buff = (
            int(ap_after_buff // situation.primary_attack_cost) if ap_after_buff > 0 else 0
        )

    situation.is_in_danger = (
        ctx.settings.range_preference.favors_ranged
        and ctx.nearest_enemy_distance <= DANGER_DISTANCE
    )
    return situation


def plan_turn(
    ctx: ActionContext,
    host: "CombatHost",
    classifier: Optional[AbilityClassifier] = None,
) -> TurnPlanHint:
    """
    Build the advisory plan for this turn.

    Order of checks:
    1. HP critical -> emergency, no buffing
    2. Ranged unit with an enemy close and able to move -> retreat
    3. Nobody hittable -> reposition, buffing first if a buff is affordable
    4. A buff still leaves at least one primary attack -> buff first
    5. Otherwise attack directly
    """
    classifier = classifier or get_default_classifier()
    situation = analyze_situation(ctx, host, classifier)

    if ctx.hp_percent < EMERGENCY_HP:
        priority = TurnPriority.EMERGENCY
        hint = TurnPlanHint(reason="HP critical - emergency first")
    elif situation.is_in_danger and ctx.can_move:
        priority = TurnPriority.RETREAT
        hint = TurnPlanHint(
            should_retreat=True,
            reason=f"In danger (enemy {ctx.nearest_enemy_distance:.1f} away) while preferring range",
        )
    elif not situation.hittable_enemies:
        buff_first = situation.best_buff is not None and situation.attacks_with_buff >= 1
        priority = TurnPriority.BUFF_MOVE_ATTACK if buff_first else TurnPriority.MOVE_AND_ATTACK
        hint = TurnPlanHint(should_buff_first=buff_first, reason="No hittable targets - move needed")
    elif situation.best_buff is not None and situation.attacks_with_buff >= 1:
        priority = TurnPriority.BUFFED_ATTACK
        hint = TurnPlanHint(
            should_buff_first=True,
            reason=(
                f"Buff {situation.best_buff.display_name} then "
                f"{situation.attacks_with_buff} attack(s)"
            ),
        )
    else:
        priority = TurnPriority.DIRECT_ATTACK
        hint = TurnPlanHint(
            reason=f"Direct attack ({situation.attacks_without_buff} attack(s) available)"
        )

    logger.info(
        f"[TurnPlanner] {ctx.unit.display_name}: priority={priority.value}, "
        f"buff_first={hint.should_buff_first}, retreat={hint.should_retreat} - {hint.reason}"
    )
    return hint
