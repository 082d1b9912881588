"""
Decision Phase Toolbox.

Every phase is a plain function ``phase(ctx, env) -> Optional[ActionDecision]``.
A policy walks its phases in order and returns the first decision any of
them produces. Phases never mutate the snapshot; the only things they write
are the usage tracker (recency markers, turn dedup) and the per-decision
``DecisionEnv.suppress_approach`` flag set by the retreat phase.

Shared phases, in the order the balanced pipeline uses them:
1. emergency_heal
2. reload
3. retreat
4. proactive_buffs
5. debuffs
6. attack
7. post_first_action
8. secondary_attack_nearest / secondary_attack_weakest
9. turn_ending
10. forced_basic_attack
11. attack_with_approach (opt-in)
12. move_fallback
"""
import logging
from typing import Callable, List, Optional, Sequence, Tuple, TYPE_CHECKING

from party_ai.core.behavior_config import EngineTuning, RangePreference
from . import special_abilities
from .classification import AbilityClassifier
from .models import Ability, ActionContext, ActionDecision, Unit, WeaponAttackType
from .resources import can_afford_with_reserve, should_top_up, weapon_sets_needing_reload
from .safety import SafetyEvaluator
from .usage_tracker import UsageTracker

if TYPE_CHECKING:
    from .host import CombatHost

logger = logging.getLogger(__name__)

# Failure reasons that mean the enemy cannot be seen rather than reached
LOS_KEYWORDS = ("los", "sight", "visible", "see")

# Beyond this distance a range denial is worth an attack-with-approach
APPROACH_MIN_DISTANCE = 3.0

# Base tactical priority per attack type; lower is tried first
ATTACK_TYPE_PRIORITY = {
    WeaponAttackType.MELEE: 10,
    WeaponAttackType.SINGLE_SHOT: 10,
    WeaponAttackType.NONE: 15,
    WeaponAttackType.BURST: 20,
    WeaponAttackType.SCATTER: 30,
    WeaponAttackType.GRENADE: 40,
}
CLUSTER_BONUS_PER_ENEMY = 5
CLUSTER_BONUS_CAP = 20


TargetSelector = Callable[[ActionContext, "DecisionEnv"], Optional[Unit]]


class DecisionEnv:
    """
    Collaborators and scratch state for one decision.

    Created fresh by DecisionPolicy.decide for every call, so nothing here
    outlives the decision except what is written to the tracker.
    """

    def __init__(
        self,
        host: "CombatHost",
        classifier: AbilityClassifier,
        tracker: UsageTracker,
        tuning: EngineTuning,
        policy_name: str = "Balanced",
        target_selector: Optional[TargetSelector] = None,
    ):
        self.host = host
        self.classifier = classifier
        self.tracker = tracker
        self.tuning = tuning
        self.policy_name = policy_name
        self.target_selector = target_selector
        self.safety = SafetyEvaluator(host, classifier, tuning)
        self.suppress_approach = False

    def primary_target(self, ctx: ActionContext) -> Optional[Unit]:
        """Role-chosen target, falling back to the nearest enemy."""
        target = self.target_selector(ctx, self) if self.target_selector else None
        return target or ctx.nearest_enemy

    def check(self, ability: Ability, target: Unit) -> Tuple[bool, str]:
        """Host legality check with the denial logged."""
        ok, reason = self.host.can_use(ability, target)
        if not ok:
            logger.debug(
                f"[{self.policy_name}] {ability.display_name} -> {target.display_name} denied: {reason}"
            )
        return ok, reason

    def legal(self, ability: Ability, target: Unit) -> bool:
        return self.check(ability, target)[0]


# ============================================================================
# Ability filters
# ============================================================================

def get_offensive_abilities(ctx: ActionContext, env: DecisionEnv) -> List[Ability]:
    """
    Abilities eligible for generic attack use.

    Enemy-targetable, no non-attack timing, and never a reload,
    post-first-action, turn-ending or finisher ability.
    """
    classifier = env.classifier
    return [
        a for a in ctx.available_abilities
        if classifier.is_offensive(a)
        and not classifier.is_reload(a)
        and not classifier.is_post_first_action(a)
        and not classifier.is_run_and_gun(a)
        and not classifier.is_turn_ending(a)
        and not classifier.is_finisher(a)
    ]


def get_basic_attacks(ctx: ActionContext, env: DecisionEnv) -> List[Ability]:
    """Weapon-bound attacks, minus reloads, grenades and timing-gated skills."""
    classifier = env.classifier
    return [
        a for a in ctx.available_abilities
        if a.has_weapon_binding
        and not classifier.is_reload(a)
        and not classifier.is_grenade(a)
        and not classifier.is_post_first_action(a)
        and not classifier.is_run_and_gun(a)
        and not classifier.is_turn_ending(a)
    ]


def filter_by_range(
    abilities: Sequence[Ability],
    preference: RangePreference,
    strict: bool = False,
) -> List[Ability]:
    """
    Hard range-preference filter.

    Ranged-favouring preferences drop melee abilities, PREFER_MELEE drops
    ranged ones, ADAPTIVE keeps everything. When strict is False the filter
    only applies if at least one ability of the preferred kind exists;
    when strict is True the other kind is dropped regardless.
    """
    abilities = list(abilities)
    if preference.favors_ranged:
        if strict or any(a.is_ranged for a in abilities):
            return [a for a in abilities if not a.is_melee]
    elif preference == RangePreference.PREFER_MELEE:
        if strict or any(a.is_melee for a in abilities):
            return [a for a in abilities if not a.is_ranged]
    return abilities


def filter_basic_by_range(abilities: Sequence[Ability], preference: RangePreference) -> List[Ability]:
    """Forced-attack filter: ranged preferences keep only ranged, PREFER_MELEE only melee."""
    if preference.favors_ranged:
        return [a for a in abilities if a.is_ranged]
    if preference == RangePreference.PREFER_MELEE:
        return [a for a in abilities if a.is_melee]
    return list(abilities)


def attack_priority(ctx: ActionContext, env: DecisionEnv, ability: Ability, target: Unit) -> int:
    """Tactical priority, lower first. Area attacks improve with clustered enemies."""
    attack_type = ability.attack_type
    if env.classifier.is_grenade(ability):
        attack_type = WeaponAttackType.GRENADE
    priority = ATTACK_TYPE_PRIORITY.get(attack_type, ATTACK_TYPE_PRIORITY[WeaponAttackType.NONE])

    if attack_type in (WeaponAttackType.SCATTER, WeaponAttackType.GRENADE) or env.classifier.is_aoe(ability):
        extra = env.safety.count_enemies_near(ctx, target, env.tuning.grenade_radius) - 1
        priority -= min(CLUSTER_BONUS_CAP, max(0, extra) * CLUSTER_BONUS_PER_ENEMY)
    return priority


def range_penalty(ctx: ActionContext, ability: Ability) -> int:
    """Soft tie-breaker: 1 when the ability's range kind goes against the situation."""
    preference = ctx.settings.range_preference
    if preference.favors_ranged:
        return 1 if ability.is_melee else 0
    if preference == RangePreference.PREFER_MELEE:
        return 1 if ability.is_ranged else 0
    if ctx.is_in_melee_range:
        return 1 if ability.is_ranged else 0
    return 1 if ability.is_melee else 0


def has_any_valid_attack(ctx: ActionContext, env: DecisionEnv) -> bool:
    """Full re-scan: any gated offensive ability legal on any living enemy."""
    for ability in get_offensive_abilities(ctx, env):
        if not env.safety.passes(ctx, ability):
            continue
        for enemy in ctx.enemies:
            if enemy.current_hp <= 0:
                continue
            if not env.safety.is_aoe_safe(ctx, ability, enemy):
                continue
            if env.host.can_use(ability, enemy)[0]:
                return True
    return False


# ============================================================================
# Attack building blocks
# ============================================================================

def try_special_abilities(ctx: ActionContext, env: DecisionEnv, target: Unit) -> Optional[ActionDecision]:
    """Effective combos first (best score wins), then DoT setups for waiting intensifiers."""
    ranked = special_abilities.rank_effective(
        env.host, ctx.available_abilities, target, ctx.enemies, env.tuning
    )
    for score, ability in ranked:
        if not env.safety.passes(ctx, ability):
            continue
        if not env.safety.is_aoe_safe(ctx, ability, target):
            continue
        if env.legal(ability, target):
            logger.info(f"[{env.policy_name}] Combo: {ability.display_name} -> {target.display_name} (score {score})")
            return ActionDecision.use_ability(ability, target, f"Combo {ability.display_name} on {target.display_name}")

    for setup in special_abilities.find_setup_abilities(env.host, ctx.available_abilities, target):
        if not env.safety.passes(ctx, setup):
            continue
        if not env.safety.is_aoe_safe(ctx, setup, target):
            continue
        if env.legal(setup, target):
            logger.info(f"[{env.policy_name}] Combo setup: {setup.display_name} -> {target.display_name}")
            return ActionDecision.use_ability(setup, target, f"Set up combo on {target.display_name}")

    return None


def try_finisher(ctx: ActionContext, env: DecisionEnv, target: Unit) -> Optional[ActionDecision]:
    """Finishers fire only at or below their target HP threshold."""
    for ability in ctx.available_abilities:
        if not env.classifier.is_finisher(ability):
            continue
        threshold = env.classifier.get_target_hp_threshold(ability, env.tuning.finisher_threshold)
        if target.hp_percent > threshold:
            continue
        if not env.safety.passes(ctx, ability):
            continue
        if not env.safety.is_aoe_safe(ctx, ability, target):
            continue
        if env.legal(ability, target):
            logger.info(
                f"[{env.policy_name}] Finisher: {ability.display_name} -> {target.display_name} "
                f"({target.hp_percent:.0f}% <= {threshold:.0f}%)"
            )
            return ActionDecision.use_ability(ability, target, f"Finish {target.display_name}")
    return None


def try_attack_on(
    ctx: ActionContext,
    env: DecisionEnv,
    target: Unit,
    abilities: Optional[Sequence[Ability]] = None,
    reason: Optional[str] = None,
) -> Optional[ActionDecision]:
    """
    Rank candidates against target and use the first one that passes every gate.

    Args:
        ctx: Current snapshot
        env: Decision environment
        target: Enemy to attack
        abilities: Candidate pool, defaults to the offensive abilities after
            the hard range filter
        reason: Decision reason, defaults to "Attack <target>"

    Returns:
        UseAbility decision, or None when no candidate is usable
    """
    if abilities is None:
        abilities = filter_by_range(get_offensive_abilities(ctx, env), ctx.settings.range_preference)

    ranked = sorted(
        abilities,
        key=lambda a: (attack_priority(ctx, env, a, target), range_penalty(ctx, a)),
    )
    for ability in ranked:
        if not env.safety.is_aoe_safe(ctx, ability, target):
            continue
        if not env.safety.is_grenade_efficient(ctx, ability, target):
            continue
        if not env.safety.passes(ctx, ability):
            continue
        if env.legal(ability, target):
            logger.info(
                f"[{env.policy_name}] Attack ({ability.attack_type.value}): "
                f"{ability.display_name} -> {target.display_name}"
            )
            return ActionDecision.use_ability(ability, target, reason or f"Attack {target.display_name}")
    return None


def try_full_attack(ctx: ActionContext, env: DecisionEnv, target: Optional[Unit]) -> Optional[ActionDecision]:
    """Combos, then finisher, then ranked attacks, all against one target."""
    if target is None:
        return None
    return (
        try_special_abilities(ctx, env, target)
        or try_finisher(ctx, env, target)
        or try_attack_on(ctx, env, target)
    )


def try_self_ability(
    ctx: ActionContext,
    env: DecisionEnv,
    abilities: Sequence[Ability],
    reason: str,
    reserve_ap: bool = False,
) -> Optional[ActionDecision]:
    """First ability in abilities that passes the gates and is legal on self."""
    for ability in abilities:
        if reserve_ap and not can_afford_with_reserve(ctx, ability, host=env.host):
            logger.debug(f"[{env.policy_name}] {ability.display_name} skipped - AP reserved for attack")
            continue
        if not env.safety.passes(ctx, ability):
            continue
        if env.legal(ability, ctx.unit):
            logger.info(f"[{env.policy_name}] {reason}: {ability.display_name}")
            return ActionDecision.use_ability(ability, ctx.unit, reason)
    return None


# ============================================================================
# Shared phases
# ============================================================================

def emergency_heal(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    threshold = ctx.settings.heal_threshold * env.tuning.emergency_heal_factor
    if ctx.hp_percent >= threshold:
        return None

    heals = [
        a for a in ctx.available_abilities
        if a.can_target_self and env.classifier.is_healing(a)
    ]
    return try_self_ability(
        ctx, env, heals, f"Emergency self-heal (HP {ctx.hp_percent:.0f}% < {threshold:.0f}%)"
    )


def reload(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """
    Reload when any ranged weapon set is empty, active or not.

    A set that is only running low is topped up when nothing can be
    attacked this step anyway.
    """
    empty = weapon_sets_needing_reload(env.host, ctx.unit)
    if empty:
        sets = ", ".join(str(ws.index) for ws in empty)
        reason = f"Reload (weapon set {sets} empty)"
    else:
        low = [ws for ws in env.host.get_weapon_sets(ctx.unit) if should_top_up(ws, env.tuning)]
        if not low or has_any_valid_attack(ctx, env):
            return None
        sets = ", ".join(str(ws.index) for ws in low)
        reason = f"Top up (weapon set {sets} low)"

    for ability in ctx.available_abilities:
        if not env.classifier.is_reload(ability) or not env.safety.passes(ctx, ability):
            continue
        if env.legal(ability, ctx.unit):
            logger.info(f"[{env.policy_name}] {reason}: {ability.display_name}")
            return ActionDecision.use_ability(ability, ctx.unit, reason)
    return None


def retreat(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """
    Ranged roles only. Never produces a decision: when the plan asks for a
    retreat or an enemy is inside the minimum safe distance, approaching is
    suppressed for the rest of this decision and the unit fights from where
    it stands.
    """
    if not ctx.settings.range_preference.favors_ranged:
        return None

    planned = ctx.turn_plan is not None and ctx.turn_plan.should_retreat
    too_close = ctx.nearest_enemy_distance < ctx.settings.min_safe_distance
    if planned or too_close:
        env.suppress_approach = True
        logger.info(
            f"[{env.policy_name}] Holding range: nearest enemy {ctx.nearest_enemy_distance:.1f} "
            f"(min safe {ctx.settings.min_safe_distance:.1f}){' - planned retreat' if planned else ''}"
        )
    return None


def proactive_buffs(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """Self buffs before the first action, keeping AP for the planned attack."""
    if ctx.has_performed_first_action:
        return None
    if ctx.turn_plan is not None and not ctx.turn_plan.should_buff_first:
        return None

    classifier = env.classifier
    unit_id = ctx.unit.unit_id
    desperate = env.host.is_desperate_measures()

    for ability in ctx.available_abilities:
        if not classifier.is_proactive_buff(ability) or not ability.can_target_self:
            continue
        if classifier.is_post_first_action(ability) or classifier.is_run_and_gun(ability):
            continue
        if classifier.is_desperate_measure(ability) and not desperate:
            continue
        if env.host.has_active_buff(ctx.unit, ability):
            continue
        if env.tracker.was_used_recently(unit_id, ability.ability_id):
            continue
        if env.tracker.was_used_on_target_recently(unit_id, ability.ability_id, unit_id):
            continue
        if not can_afford_with_reserve(ctx, ability, host=env.host):
            logger.debug(f"[{env.policy_name}] {ability.display_name} skipped - AP reserved for attack")
            continue
        if not env.safety.passes(ctx, ability):
            continue
        if env.legal(ability, ctx.unit):
            env.tracker.mark_used(unit_id, ability.ability_id)
            logger.info(f"[{env.policy_name}] Proactive buff: {ability.display_name}")
            return ActionDecision.use_ability(ability, ctx.unit, "Proactive buff")
    return None


def debuffs(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    target = env.primary_target(ctx)
    if target is None:
        return None

    for ability in ctx.available_abilities:
        if not env.classifier.is_debuff(ability):
            continue
        if env.host.has_active_buff_on_target(target, ability):
            continue
        if not can_afford_with_reserve(ctx, ability, host=env.host):
            continue
        if not env.safety.passes(ctx, ability):
            continue
        if not env.safety.is_aoe_safe(ctx, ability, target):
            continue
        if env.legal(ability, target):
            logger.info(f"[{env.policy_name}] Debuff: {ability.display_name} -> {target.display_name}")
            return ActionDecision.use_ability(ability, target, f"Debuff on {target.display_name}")
    return None


def attack(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    return try_full_attack(ctx, env, env.primary_target(ctx))


def post_first_action(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """Skills that only pay off once the unit has acted (Run and Gun and friends)."""
    if not ctx.has_performed_first_action:
        return None
    bonus = [
        a for a in ctx.available_abilities
        if env.classifier.is_post_first_action(a) or env.classifier.is_run_and_gun(a)
    ]
    return try_self_ability(ctx, env, bonus, "Post-action ability")


def _secondary_attack(ctx: ActionContext, env: DecisionEnv, enemies: Sequence[Unit]) -> Optional[ActionDecision]:
    if not ctx.has_performed_first_action:
        return None
    for enemy in enemies:
        if enemy.current_hp <= 0:
            continue
        decision = try_attack_on(ctx, env, enemy, reason=f"Follow-up attack on {enemy.display_name}")
        if decision:
            return decision
    return None


def secondary_attack_nearest(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    enemies = sorted(ctx.enemies, key=lambda e: env.host.distance(ctx.unit, e))
    return _secondary_attack(ctx, env, enemies)


def secondary_attack_weakest(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    enemies = sorted(ctx.enemies, key=lambda e: (e.hp_percent, e.current_hp))
    return _secondary_attack(ctx, env, enemies)


def turn_ending(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """Turn-ending utility only when no normal attack exists anywhere."""
    enders = [a for a in ctx.available_abilities if env.classifier.is_turn_ending(a)]
    if not enders:
        return None
    if has_any_valid_attack(ctx, env):
        return None
    return try_self_ability(ctx, env, enders, "Turn ending ability")


def forced_basic_attack(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """Basic weapon attacks against the nearest enemies, strictly range-filtered."""
    if not ctx.enemies:
        return None

    basic = filter_basic_by_range(get_basic_attacks(ctx, env), ctx.settings.range_preference)
    if not basic:
        logger.debug(
            f"[{env.policy_name}] No basic attack for {ctx.settings.range_preference.value} "
            f"({len(ctx.available_abilities)} abilities available)"
        )
        return None

    enemies = sorted(ctx.enemies, key=lambda e: env.host.distance(ctx.unit, e))
    failures: List[str] = []
    for ability in basic:
        if not env.safety.passes(ctx, ability):
            failures.append(f"{ability.display_name}:unsafe")
            continue
        for enemy in enemies:
            if not env.safety.is_aoe_safe(ctx, ability, enemy):
                failures.append(f"{enemy.display_name}:allies in blast")
                continue
            ok, reason = env.check(ability, enemy)
            if ok:
                logger.info(f"[{env.policy_name}] Force basic attack: {ability.display_name} -> {enemy.display_name}")
                return ActionDecision.use_ability(ability, enemy, f"Force basic attack on {enemy.display_name}")
            failures.append(f"{enemy.display_name}:{reason}")

    logger.debug(f"[{env.policy_name}] Force basic attack failed - {', '.join(failures[:3])}")
    return None


def _is_los_issue(reason: str) -> bool:
    reason = (reason or "").lower()
    return any(k in reason for k in LOS_KEYWORDS)


def attack_with_approach(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """
    Opt-in: attack an out-of-range enemy and let the host close the distance.

    Enemies whose denial is a line-of-sight problem are skipped; only range
    denials beyond a short distance qualify.
    """
    if not env.tuning.attack_with_approach:
        return None
    if not ctx.can_move or env.suppress_approach or not ctx.enemies:
        return None

    basic = [
        a for a in filter_basic_by_range(get_basic_attacks(ctx, env), ctx.settings.range_preference)
        if env.safety.passes(ctx, a)
    ]
    enemies = sorted(ctx.enemies, key=lambda e: env.host.distance(ctx.unit, e))
    for enemy in enemies:
        distance = env.host.distance(ctx.unit, enemy)
        for ability in basic:
            if not env.safety.is_aoe_safe(ctx, ability, enemy):
                continue
            ok, reason = env.host.can_use(ability, enemy)
            if ok:
                return ActionDecision.use_ability(ability, enemy, f"Attack {enemy.display_name}")
            if _is_los_issue(reason):
                logger.debug(f"[{env.policy_name}] {enemy.display_name} has LoS issue - trying others first")
                break
            if distance > APPROACH_MIN_DISTANCE:
                logger.info(
                    f"[{env.policy_name}] Attack with approach: {ability.display_name} -> "
                    f"{enemy.display_name} (dist={distance:.1f}, reason={reason})"
                )
                return ActionDecision.use_ability(ability, enemy, f"Attack with move on {enemy.display_name}")
    return None


def move_fallback(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """Terminal phase: approach the enemy, or end the turn when that is not possible."""
    if not ctx.enemies:
        return ActionDecision.end_turn("No enemies remaining")
    if env.suppress_approach:
        return ActionDecision.end_turn(
            f"Holding range (nearest enemy {ctx.nearest_enemy_distance:.1f})"
        )
    if not ctx.can_move:
        return ActionDecision.end_turn("No valid action and cannot move")

    target = ctx.nearest_enemy
    name = target.display_name if target else "enemy"
    logger.info(f"[{env.policy_name}] Moving toward {name}")
    return ActionDecision.move(f"Move toward {name}")
