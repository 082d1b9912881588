"""
Role Decision Policies.

A policy is data: an ordered tuple of phase functions plus a target
selector. DecisionPolicy.decide walks the phases and returns the first
decision; if none produces one, the turn ends.

Roles:
- Balanced: the canonical pipeline, best-scored target
- Tank: taunt and defensive stance up front, always hits the nearest enemy
- DPS: righteous fury, heroic acts and finisher sweeps ahead of buffing
- Support: ally heals and buffs first, then momentum, then safe attacks
- Sniper: holds range and picks off the weakest enemy in reach
- Hybrid: melee target while engaged, ranged target otherwise
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Union

from party_ai.core.behavior_config import AIRole, EngineTuning
from party_ai.core.errors import InvalidSnapshotError
from . import phases
from .classification import AbilityClassifier, get_default_classifier
from .models import Ability, ActionContext, ActionDecision, Unit
from .phases import DecisionEnv, TargetSelector
from .resources import can_afford_with_reserve
from .usage_tracker import UsageTracker, get_usage_tracker

logger = logging.getLogger(__name__)

Phase = Callable[[ActionContext, DecisionEnv], Optional[ActionDecision]]

# Role thresholds
TANK_STANCE_HP = 60.0
TANK_STANCE_MIN_ENEMIES = 3
TANK_TAUNT_MIN_ENEMIES = 2
TANK_DEFENSIVE_BUFF_HP = 80.0
SUPPORT_HEAL_HP = 70.0

DEFENSIVE_BUFF_KEYWORDS = ("defend", "protect", "shield", "armor", "armour")


@dataclass(frozen=True)
class DecisionPolicy:
    """An ordered phase pipeline with a target-selection strategy."""
    name: str
    phases: Tuple[Phase, ...]
    target_selector: Optional[TargetSelector] = None
    fallback_reason: str = "No valid action"

    def decide(
        self,
        ctx: ActionContext,
        host,
        classifier: Optional[AbilityClassifier] = None,
        tracker: Optional[UsageTracker] = None,
        tuning: Optional[EngineTuning] = None,
    ) -> ActionDecision:
        """
        Run the pipeline for one decision.

        Args:
            ctx: Snapshot of the acting unit's situation
            host: CombatHost answering legality, distance and state queries
            classifier: Ability classifier, defaults to the shared one
            tracker: Usage tracker, defaults to the process-wide one
            tuning: Engine thresholds, defaults to the environment settings

        Returns:
            Exactly one decision; EndTurn when every phase passes

        Raises:
            InvalidSnapshotError: If the snapshot has no acting unit
        """
        if ctx is None or ctx.unit is None:
            raise InvalidSnapshotError("Snapshot has no acting unit", details={"policy": self.name})

        tracker = tracker if tracker is not None else get_usage_tracker()
        tracker.sync_turn(ctx.turn_id)
        env = DecisionEnv(
            host=host,
            classifier=classifier or get_default_classifier(),
            tracker=tracker,
            tuning=tuning or EngineTuning.from_settings(),
            policy_name=self.name,
            target_selector=self.target_selector,
        )

        for phase in self.phases:
            decision = phase(ctx, env)
            if decision is not None:
                logger.debug(f"[{self.name}] {phase.__name__} -> {decision.decision_type.value}")
                return decision

        return ActionDecision.end_turn(f"{self.name}: {self.fallback_reason}")


# ============================================================================
# Target selectors
# ============================================================================

def select_nearest(ctx: ActionContext, env: DecisionEnv) -> Optional[Unit]:
    return ctx.nearest_enemy


def select_best(ctx: ActionContext, env: DecisionEnv) -> Optional[Unit]:
    return ctx.best_target


def select_best_or_weakest(ctx: ActionContext, env: DecisionEnv) -> Optional[Unit]:
    return ctx.best_target or ctx.weakest_enemy


def select_weakest_in_reach(ctx: ActionContext, env: DecisionEnv) -> Optional[Unit]:
    return ctx.best_ranged_target or ctx.weakest_enemy


def select_safe_ranged(ctx: ActionContext, env: DecisionEnv) -> Optional[Unit]:
    """First candidate with no ally close enough to be caught by splash."""
    candidates = [t for t in (ctx.best_ranged_target, ctx.best_target) if t is not None]
    candidates += sorted(ctx.enemies, key=lambda e: env.host.distance(ctx.unit, e))
    for target in candidates:
        if env.safety.count_allies_near(ctx, target, env.tuning.grenade_radius) == 0:
            return target
    return ctx.best_ranged_target or ctx.best_target


def select_by_engagement(ctx: ActionContext, env: DecisionEnv) -> Optional[Unit]:
    if ctx.is_in_melee_range and ctx.best_melee_target:
        return ctx.best_melee_target
    return ctx.best_ranged_target or ctx.best_target


# ============================================================================
# Tank phases
# ============================================================================

def _once_per_turn(ctx: ActionContext, env: DecisionEnv, ability: Ability, target_id: str = "self") -> bool:
    return not env.tracker.dedup.contains(ctx.unit.unit_id, ctx.turn_id, ability.ability_id, target_id)


def _keeps_attack_ap(ctx: ActionContext, env: DecisionEnv, ability: Ability) -> bool:
    if can_afford_with_reserve(ctx, ability, host=env.host):
        return True
    logger.debug(f"[{env.policy_name}] {ability.display_name} skipped - AP reserved for attack")
    return False


def _use_once(
    ctx: ActionContext,
    env: DecisionEnv,
    ability: Ability,
    target: Unit,
    reason: str,
) -> ActionDecision:
    target_id = "self" if target.unit_id == ctx.unit.unit_id else target.unit_id
    env.tracker.dedup.add(ctx.unit.unit_id, ctx.turn_id, ability.ability_id, target_id)
    logger.info(f"[{env.policy_name}] {reason}: {ability.display_name} -> {target.display_name}")
    return ActionDecision.use_ability(ability, target, reason)


def tank_taunt(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    if ctx.enemies_in_melee_range < TANK_TAUNT_MIN_ENEMIES:
        return None

    for ability in ctx.available_abilities:
        if not env.classifier.is_taunt(ability) or not ability.can_target_self:
            continue
        if not _once_per_turn(ctx, env, ability):
            continue
        if not env.safety.passes(ctx, ability):
            continue
        if env.legal(ability, ctx.unit):
            return _use_once(ctx, env, ability, ctx.unit, f"Taunt ({ctx.enemies_in_melee_range} enemies nearby)")
    return None


def tank_defensive_stance(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """Open the turn in stance, or take it when hurt or surrounded."""
    if ctx.hp_percent <= TANK_STANCE_HP:
        why = f"HP low ({ctx.hp_percent:.0f}%)"
    elif ctx.enemies_in_melee_range >= TANK_STANCE_MIN_ENEMIES:
        why = f"{ctx.enemies_in_melee_range} enemies nearby"
    elif not ctx.has_performed_first_action:
        why = "opening stance"
    else:
        return None

    for ability in ctx.available_abilities:
        if not env.classifier.is_defensive_stance(ability) or not ability.can_target_self:
            continue
        if env.host.has_active_buff(ctx.unit, ability):
            continue
        if not _once_per_turn(ctx, env, ability):
            continue
        if not _keeps_attack_ap(ctx, env, ability):
            continue
        if not env.safety.passes(ctx, ability):
            continue
        if env.legal(ability, ctx.unit):
            return _use_once(ctx, env, ability, ctx.unit, f"Defensive stance - {why}")
    return None


def _is_defensive_buff(env: DecisionEnv, ability: Ability) -> bool:
    if ability.has_weapon_binding or not ability.can_target_self or ability.can_target_enemies:
        return False
    names = f"{ability.name} {ability.blueprint_name}".lower()
    return env.classifier.is_defensive_stance(ability) or any(k in names for k in DEFENSIVE_BUFF_KEYWORDS)


def tank_defensive_buff(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    if ctx.hp_percent > TANK_DEFENSIVE_BUFF_HP:
        return None

    for ability in ctx.available_abilities:
        if not _is_defensive_buff(env, ability):
            continue
        if env.host.has_active_buff(ctx.unit, ability) or not _once_per_turn(ctx, env, ability):
            continue
        if not _keeps_attack_ap(ctx, env, ability):
            continue
        if not env.safety.passes(ctx, ability):
            continue
        if env.legal(ability, ctx.unit):
            return _use_once(ctx, env, ability, ctx.unit, f"Defensive buff (HP {ctx.hp_percent:.0f}%)")
    return None


def tank_advance(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    if ctx.is_in_melee_range or not ctx.can_move or not ctx.enemies:
        return None
    logger.info(f"[{env.policy_name}] No enemy in melee range, advancing")
    return ActionDecision.move("No enemy in melee range, advancing")


def tank_self_buff(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """Nothing to hit: spend AP above the attack reserve on any inactive self buff."""
    for ability in ctx.available_abilities:
        if not env.classifier.is_proactive_buff(ability) or not ability.can_target_self:
            continue
        if env.classifier.is_post_first_action(ability):
            continue
        if env.host.has_active_buff(ctx.unit, ability) or not _once_per_turn(ctx, env, ability):
            continue
        if not _keeps_attack_ap(ctx, env, ability):
            continue
        if not env.safety.passes(ctx, ability):
            continue
        if env.legal(ability, ctx.unit):
            return _use_once(ctx, env, ability, ctx.unit, "Self buff")
    return None


# ============================================================================
# DPS phases
# ============================================================================

def dps_righteous_fury(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    for ability in ctx.available_abilities:
        if not env.classifier.is_righteous_fury(ability) or not ability.can_target_self:
            continue
        if env.host.has_active_buff(ctx.unit, ability) or not _once_per_turn(ctx, env, ability):
            continue
        if not _keeps_attack_ap(ctx, env, ability):
            continue
        if not env.safety.passes(ctx, ability):
            continue
        if env.legal(ability, ctx.unit):
            return _use_once(ctx, env, ability, ctx.unit, "Righteous fury")
    return None


def dps_heroic_act(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    if not env.host.is_heroic_act_available():
        return None

    unit_id = ctx.unit.unit_id
    for ability in ctx.available_abilities:
        if not env.classifier.is_heroic_act(ability):
            continue
        if env.tracker.was_used_recently(unit_id, ability.ability_id):
            continue
        if not env.safety.passes(ctx, ability):
            continue

        target = ctx.unit if ability.is_self_only else env.primary_target(ctx)
        if target is None:
            continue
        if target is not ctx.unit and not env.safety.is_aoe_safe(ctx, ability, target):
            continue
        if env.legal(ability, target):
            env.tracker.mark_used(unit_id, ability.ability_id)
            logger.info(
                f"[{env.policy_name}] Heroic act: {ability.display_name} -> {target.display_name} "
                f"(momentum {env.host.get_momentum()})"
            )
            return ActionDecision.use_ability(ability, target, "Heroic act")
    return None


def dps_finisher_sweep(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """Go after the lowest-HP enemy under the finisher threshold."""
    wounded = sorted(
        (e for e in ctx.enemies if e.hp_percent <= env.tuning.finisher_threshold),
        key=lambda e: (e.hp_percent, e.current_hp),
    )
    for enemy in wounded:
        decision = (
            phases.try_finisher(ctx, env, enemy)
            or phases.try_attack_on(ctx, env, enemy, reason=f"Finish off {enemy.display_name}")
        )
        if decision:
            return decision
    return None


def gap_closer(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    if ctx.is_in_melee_range or ctx.nearest_enemy is None:
        return None

    target = ctx.nearest_enemy
    for ability in ctx.available_abilities:
        if not env.classifier.is_gap_closer(ability):
            continue
        if not env.safety.passes(ctx, ability):
            continue
        if not env.safety.is_aoe_safe(ctx, ability, target):
            continue
        if env.legal(ability, target):
            logger.info(f"[{env.policy_name}] Gap closer: {ability.display_name} -> {target.display_name}")
            return ActionDecision.use_ability(ability, target, f"Close in on {target.display_name}")
    return None


# ============================================================================
# Support phases
# ============================================================================

def _momentum_target(ctx: ActionContext, ability: Ability) -> Optional[Unit]:
    if ability.is_self_only:
        return ctx.unit
    if ability.can_target_enemies:
        return ctx.nearest_enemy
    if ability.can_target_allies and ctx.allies:
        return max(ctx.allies, key=lambda a: a.hp_percent)
    if ability.can_target_self:
        return ctx.unit
    return None


def support_momentum(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    for ability in ctx.available_abilities:
        if not env.classifier.is_momentum_generating(ability):
            continue
        target = _momentum_target(ctx, ability)
        if target is None:
            continue
        target_id = "self" if target.unit_id == ctx.unit.unit_id else target.unit_id
        if not _once_per_turn(ctx, env, ability, target_id):
            continue
        # An enemy-targeted momentum skill is the attack itself
        if not ability.can_target_enemies and not _keeps_attack_ap(ctx, env, ability):
            continue
        if not env.safety.passes(ctx, ability):
            continue
        if ability.can_target_enemies and not env.safety.is_aoe_safe(ctx, ability, target):
            continue
        if env.legal(ability, target):
            prefix = "Desperate - " if env.host.is_desperate_measures() else ""
            return _use_once(ctx, env, ability, target, f"{prefix}Momentum boost")
    return None


def support_momentum_desperate(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    if not env.host.is_desperate_measures():
        return None
    return support_momentum(ctx, env)


def support_ally_heal(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """Heal the most wounded party member under the heal line, self included."""
    wounded = sorted(
        (u for u in (ctx.unit,) + tuple(ctx.allies) if u.hp_percent < SUPPORT_HEAL_HP),
        key=lambda u: u.hp_percent,
    )
    if not wounded:
        return None

    heals = [
        a for a in ctx.available_abilities
        if env.classifier.is_healing(a) and not a.has_weapon_binding
    ]
    for target in wounded:
        is_self = target.unit_id == ctx.unit.unit_id
        for ability in heals:
            if is_self and not ability.can_target_self:
                continue
            if not is_self and not ability.can_target_allies:
                continue
            if not env.safety.passes(ctx, ability):
                continue
            if env.legal(ability, target):
                logger.info(
                    f"[{env.policy_name}] Heal: {ability.display_name} -> {target.display_name} "
                    f"({target.hp_percent:.0f}%)"
                )
                return ActionDecision.use_ability(ability, target, f"Heal {target.display_name}")
    return None


def _is_ally_buff(env: DecisionEnv, ability: Ability) -> bool:
    if ability.has_weapon_binding or ability.can_target_enemies or not ability.can_target_allies:
        return False
    classifier = env.classifier
    return not (
        classifier.is_healing(ability)
        or classifier.is_momentum_generating(ability)
        or classifier.is_post_first_action(ability)
        or classifier.is_turn_ending(ability)
    )


def support_ally_buff(ctx: ActionContext, env: DecisionEnv) -> Optional[ActionDecision]:
    """Buff party members, each (ability, target) pair at most once per window."""
    unit_id = ctx.unit.unit_id
    targets = (ctx.unit,) + tuple(ctx.allies)

    for ability in ctx.available_abilities:
        if not _is_ally_buff(env, ability):
            continue
        if not can_afford_with_reserve(ctx, ability, host=env.host):
            continue
        if not env.safety.passes(ctx, ability):
            continue
        for target in targets:
            if target.unit_id == unit_id and not ability.can_target_self:
                continue
            if env.tracker.was_used_on_target_recently(unit_id, ability.ability_id, target.unit_id):
                continue
            if env.host.has_active_buff_on_target(target, ability):
                continue
            if env.legal(ability, target):
                env.tracker.mark_used_on_target(unit_id, ability.ability_id, target.unit_id)
                logger.info(f"[{env.policy_name}] Buff: {ability.display_name} -> {target.display_name}")
                return ActionDecision.use_ability(ability, target, f"Buff {target.display_name}")
    return None


# ============================================================================
# Policies
# ============================================================================

BALANCED = DecisionPolicy(
    name="Balanced",
    phases=(
        phases.emergency_heal,
        phases.reload,
        phases.retreat,
        phases.proactive_buffs,
        phases.debuffs,
        phases.attack,
        phases.post_first_action,
        phases.secondary_attack_nearest,
        phases.turn_ending,
        phases.forced_basic_attack,
        phases.attack_with_approach,
        phases.move_fallback,
    ),
    target_selector=select_best,
)

TANK = DecisionPolicy(
    name="Tank",
    phases=(
        phases.emergency_heal,
        tank_defensive_stance,
        tank_taunt,
        phases.reload,
        tank_defensive_buff,
        phases.proactive_buffs,
        phases.debuffs,
        phases.attack,
        gap_closer,
        phases.post_first_action,
        phases.secondary_attack_nearest,
        tank_advance,
        phases.turn_ending,
        phases.forced_basic_attack,
        tank_self_buff,
        phases.move_fallback,
    ),
    target_selector=select_nearest,
    fallback_reason="No valid action available",
)

DPS = DecisionPolicy(
    name="DPS",
    phases=(
        phases.emergency_heal,
        phases.reload,
        dps_righteous_fury,
        dps_heroic_act,
        dps_finisher_sweep,
        phases.proactive_buffs,
        phases.debuffs,
        phases.attack,
        gap_closer,
        phases.post_first_action,
        phases.secondary_attack_weakest,
        phases.turn_ending,
        phases.forced_basic_attack,
        phases.attack_with_approach,
        phases.move_fallback,
    ),
    target_selector=select_best_or_weakest,
)

SUPPORT = DecisionPolicy(
    name="Support",
    phases=(
        phases.emergency_heal,
        phases.reload,
        phases.retreat,
        support_momentum_desperate,
        support_ally_heal,
        support_ally_buff,
        support_momentum,
        phases.proactive_buffs,
        phases.debuffs,
        phases.attack,
        phases.post_first_action,
        phases.secondary_attack_nearest,
        phases.turn_ending,
        phases.forced_basic_attack,
        phases.attack_with_approach,
        phases.move_fallback,
    ),
    target_selector=select_safe_ranged,
)

SNIPER = DecisionPolicy(
    name="Sniper",
    phases=(
        phases.emergency_heal,
        phases.reload,
        phases.retreat,
        phases.proactive_buffs,
        phases.debuffs,
        phases.attack,
        phases.post_first_action,
        phases.secondary_attack_weakest,
        phases.turn_ending,
        phases.forced_basic_attack,
        phases.attack_with_approach,
        phases.move_fallback,
    ),
    target_selector=select_weakest_in_reach,
)

HYBRID = DecisionPolicy(
    name="Hybrid",
    phases=(
        phases.emergency_heal,
        phases.reload,
        phases.retreat,
        phases.proactive_buffs,
        phases.debuffs,
        phases.attack,
        gap_closer,
        phases.post_first_action,
        phases.secondary_attack_nearest,
        phases.turn_ending,
        phases.forced_basic_attack,
        phases.attack_with_approach,
        phases.move_fallback,
    ),
    target_selector=select_by_engagement,
)

POLICIES: Dict[AIRole, DecisionPolicy] = {
    AIRole.BALANCED: BALANCED,
    AIRole.TANK: TANK,
    AIRole.DPS: DPS,
    AIRole.SUPPORT: SUPPORT,
    AIRole.SNIPER: SNIPER,
    AIRole.HYBRID: HYBRID,
}


def get_policy(role: Union[AIRole, str, None] = None) -> DecisionPolicy:
    """Policy for role; unknown or unset roles get Balanced."""
    if isinstance(role, str) and not isinstance(role, AIRole):
        try:
            role = AIRole(role.lower())
        except ValueError:
            logger.warning(f"Unknown role '{role}', using Balanced")
            return BALANCED
    return POLICIES.get(role, BALANCED)
