"""
Ability Safety Evaluation.

Gates every phase applies before committing to an ability: the HP-cost
gate, the risk-level gate, AoE friendly-fire exposure and grenade
efficiency. All gates are side-effect free and evaluated on every call;
risk in particular depends on live state and is never cached.
"""
import logging
from typing import TYPE_CHECKING

from party_ai.core.behavior_config import EngineTuning
from .classification import AbilityClassifier
from .models import Ability, ActionContext, RiskLevel, Unit

if TYPE_CHECKING:
    from .host import CombatHost

logger = logging.getLogger(__name__)

USABLE_RISK_LEVELS = (RiskLevel.SAFE, RiskLevel.CAUTION)

# The caster standing on the target point is the target, not a bystander
SELF_EXCLUSION_DISTANCE = 0.5


class SafetyEvaluator:
    """
    Answers whether an ability's cost and side-risk are acceptable now.

    Uses:
    - the classifier for HP-cost thresholds and AoE shape
    - the host for risk levels and distances
    - the tuning for default thresholds and radii
    """

    def __init__(
        self,
        host: "CombatHost",
        classifier: AbilityClassifier,
        tuning: EngineTuning,
    ):
        self.host = host
        self.classifier = classifier
        self.tuning = tuning

    def is_hp_cost_safe(self, ctx: ActionContext, ability: Ability) -> bool:
        """HP-costing abilities need caster HP at or above their threshold."""
        if not self.classifier.is_hp_cost(ability):
            return True

        threshold = self.classifier.get_hp_threshold(ability, self.tuning.hp_cost_threshold)
        if ctx.hp_percent < threshold:
            logger.debug(
                f"HP cost {ability.display_name} blocked - HP too low "
                f"({ctx.hp_percent:.0f}% < {threshold:.0f}%)"
            )
            return False
        return True

    def is_risk_acceptable(self, ctx: ActionContext, ability: Ability) -> bool:
        """Safe and Caution pass; Dangerous and Blocked do not."""
        level = self.host.get_risk_level(ability)
        if level in USABLE_RISK_LEVELS:
            return True
        logger.debug(f"{ability.display_name} blocked - risk {level.value}")
        return False

    def passes(self, ctx: ActionContext, ability: Ability) -> bool:
        """Both cost gates."""
        return self.is_hp_cost_safe(ctx, ability) and self.is_risk_acceptable(ctx, ability)

    def count_allies_near(self, ctx: ActionContext, target: Unit, radius: float) -> int:
        """Allies within radius of target; the caster counts unless it is the target."""
        count = 0
        for ally in ctx.allies:
            if ally.unit_id == target.unit_id:
                continue
            if self.host.distance(ally, target) <= radius:
                count += 1

        self_distance = self.host.distance(ctx.unit, target)
        if SELF_EXCLUSION_DISTANCE < self_distance <= radius:
            count += 1
        return count

    def count_enemies_near(self, ctx: ActionContext, target: Unit, radius: float) -> int:
        """Enemies within radius of target, the target included."""
        return sum(
            1 for enemy in ctx.enemies
            if enemy.unit_id == target.unit_id or self.host.distance(enemy, target) <= radius
        )

    def is_aoe_safe(self, ctx: ActionContext, ability: Ability, target: Unit) -> bool:
        """An area ability is blocked when any ally stands near the target."""
        if not self.classifier.is_aoe(ability):
            return True

        allies_near = self.count_allies_near(ctx, target, self.tuning.aoe_safety_radius)
        if allies_near > 0:
            logger.debug(
                f"AoE {ability.display_name} blocked: {allies_near} allies near {target.display_name}"
            )
            return False
        return True

    def is_grenade_efficient(self, ctx: ActionContext, ability: Ability, target: Unit) -> bool:
        """Grenades need a cluster of enemies around the target."""
        if not self.classifier.is_grenade(ability):
            return True

        clustered = self.count_enemies_near(ctx, target, self.tuning.grenade_radius)
        if clustered < self.tuning.grenade_min_enemies:
            logger.debug(
                f"Grenade {ability.display_name} skipped - only {clustered} enemies near "
                f"{target.display_name}"
            )
            return False
        return True
