"""
Decision Orchestrator.

Single entry point the host calls once per unit per decision step:
resolve the unit's policy, run it, and guard against handing a low-HP unit
back to the host's own fallback AI while it still holds HP-costing skills.
"""
import logging
from typing import Optional, TYPE_CHECKING

from party_ai.core.behavior_config import EngineTuning
from party_ai.core.errors import InvalidSnapshotError
from .classification import AbilityClassifier, get_default_classifier
from .models import ActionContext, ActionDecision
from .phases import filter_by_range
from .policies import get_policy
from .resources import momentum_status
from .safety import SafetyEvaluator
from .usage_tracker import UsageTracker

if TYPE_CHECKING:
    from .host import CombatHost

logger = logging.getLogger(__name__)


def prevent_unsafe_delegation(
    ctx: ActionContext,
    host: "CombatHost",
    classifier: AbilityClassifier,
    tuning: EngineTuning,
) -> Optional[ActionDecision]:
    """
    Replace a Move/EndTurn with a safe attack when HP is low and HP-cost skills exist.

    A unit whose turn is handed back may have an HP-costing skill (Blood
    Oath and the like) used for it by the host. Below the HP-cost threshold
    this picks the first offensive ability that does not cost HP, clears the
    risk and friendly-fire gates, suits the unit's range preference and is
    legal on the nearest enemy.
    """
    if ctx.hp_percent > tuning.hp_cost_threshold:
        return None
    if not any(classifier.is_hp_cost(a) for a in ctx.available_abilities):
        return None

    target = ctx.nearest_enemy
    if target is not None:
        safety = SafetyEvaluator(host, classifier, tuning)
        candidates = [
            a for a in ctx.available_abilities
            if classifier.is_offensive(a) and not classifier.is_hp_cost(a)
        ]
        for ability in filter_by_range(candidates, ctx.settings.range_preference, strict=True):
            if not safety.passes(ctx, ability) or not safety.is_aoe_safe(ctx, ability, target):
                continue
            if host.can_use(ability, target)[0]:
                logger.info(
                    f"[Orchestrator] HP low ({ctx.hp_percent:.0f}%), using {ability.display_name} "
                    f"instead of leaving HP cost abilities to the host"
                )
                return ActionDecision.use_ability(
                    ability, target, f"Safe attack on {target.display_name} (HP too low for HP cost abilities)"
                )

    logger.warning(
        f"[Orchestrator] HP low ({ctx.hp_percent:.0f}%) for {ctx.unit.display_name}, "
        f"no safe alternative to HP cost abilities"
    )
    return None


def decide_action(
    ctx: ActionContext,
    host: "CombatHost",
    classifier: Optional[AbilityClassifier] = None,
    tracker: Optional[UsageTracker] = None,
    tuning: Optional[EngineTuning] = None,
) -> ActionDecision:
    """
    Decide one action for the acting unit.

    Args:
        ctx: Snapshot built by targeting.build_action_context
        host: CombatHost for legality and state queries
        classifier: Ability classifier, defaults to the shared one
        tracker: Usage tracker, defaults to the process-wide one
        tuning: Engine thresholds, defaults to the environment settings

    Returns:
        The chosen ActionDecision

    Raises:
        InvalidSnapshotError: If the snapshot has no acting unit
    """
    if ctx is None or ctx.unit is None:
        raise InvalidSnapshotError("Snapshot has no acting unit")

    classifier = classifier or get_default_classifier()
    tuning = tuning or EngineTuning.from_settings()
    name = ctx.unit.display_name
    policy = get_policy(ctx.settings.role)

    logger.debug(
        f"[Orchestrator] {name}: HP={ctx.hp_percent:.0f}%, AP={ctx.current_ap:g}/{ctx.max_ap:g}, "
        f"{host.describe_risk()}, {momentum_status(host, tuning)}, "
        f"Enemies={len(ctx.enemies)}, Allies={len(ctx.allies)}"
    )

    decision = policy.decide(ctx, host, classifier=classifier, tracker=tracker, tuning=tuning)

    if not decision.is_ability:
        safe = prevent_unsafe_delegation(ctx, host, classifier, tuning)
        if safe is not None:
            decision = safe

    logger.info(
        f"[Orchestrator] {name}: Role={ctx.settings.role.value}, Policy={policy.name}, "
        f"Decision={decision.decision_type.value}, Reason={decision.reason}"
    )
    return decision
