"""
Host Collaborator Contracts.

The engine never computes legality, line of sight or buff state itself. It
asks a CombatHost. The game integration layer implements the protocol;
StaticCombatHost answers from declared state and backs the HTTP preview
and the tests.
"""
import math
from typing import Dict, Iterable, Optional, Protocol, Sequence, Tuple

from party_ai.core.behavior_config import EngineTuning
from .models import Ability, DotType, RiskLevel, Unit, WeaponSet


class CombatHost(Protocol):
    """Queries the engine makes against the live game state."""

    def can_use(self, ability: Ability, target: Unit) -> Tuple[bool, str]:
        """Whether ability may be used on target now, with a reason if not."""
        ...

    def distance(self, a: Unit, b: Unit) -> float:
        ...

    def has_active_buff(self, unit: Unit, ability: Ability) -> bool:
        ...

    def has_active_buff_on_target(self, target: Unit, ability: Ability) -> bool:
        ...

    def get_ap_cost(self, ability: Ability) -> float:
        ...

    def get_weapon_sets(self, unit: Unit) -> Sequence[WeaponSet]:
        ...

    def get_risk_level(self, ability: Ability) -> RiskLevel:
        ...

    def describe_risk(self) -> str:
        """Global risk status string, for logging only."""
        ...

    def get_momentum(self) -> int:
        ...

    def is_heroic_act_available(self) -> bool:
        ...

    def is_desperate_measures(self) -> bool:
        ...

    def get_dot_stacks(self, target: Unit, dot_type: DotType) -> int:
        ...

    def count_debuffs(self, target: Unit) -> int:
        ...


ANY_TARGET = "*"


class StaticCombatHost:
    """
    CombatHost answering from declared state.

    Legality is derived from the ability's targeting flags, the caster's
    faction and the ability range, then overridden by explicit denials.
    Denials are keyed by (ability_id, target_id); a target_id of "*" denies
    the ability on every target.
    """

    def __init__(
        self,
        units: Iterable[Unit] = (),
        weapon_sets: Optional[Dict[str, Sequence[WeaponSet]]] = None,
        active_buffs: Optional[Dict[str, Iterable[str]]] = None,
        denied: Optional[Dict[Tuple[str, str], str]] = None,
        risk_levels: Optional[Dict[str, RiskLevel]] = None,
        momentum: int = 100,
        dot_stacks: Optional[Dict[str, Dict[DotType, int]]] = None,
        debuff_counts: Optional[Dict[str, int]] = None,
        tuning: Optional[EngineTuning] = None,
    ):
        self.units: Dict[str, Unit] = {u.unit_id: u for u in units}
        self.weapon_sets = dict(weapon_sets or {})
        self.active_buffs = {k: set(v) for k, v in (active_buffs or {}).items()}
        self.denied = dict(denied or {})
        self.risk_levels = dict(risk_levels or {})
        self.momentum = momentum
        self.dot_stacks = dict(dot_stacks or {})
        self.debuff_counts = dict(debuff_counts or {})
        self.tuning = tuning or EngineTuning()

    def register(self, unit: Unit) -> None:
        """Add or replace a unit."""
        self.units[unit.unit_id] = unit

    def can_use(self, ability: Ability, target: Unit) -> Tuple[bool, str]:
        reason = self.denied.get((ability.ability_id, target.unit_id))
        if reason is None:
            reason = self.denied.get((ability.ability_id, ANY_TARGET))
        if reason is not None:
            return False, reason

        caster = self.units.get(ability.caster_id)
        if caster is None:
            if ability.can_target_self or ability.can_target_allies or ability.can_target_enemies:
                return True, ""
            return False, "Ability has no unit targets"

        if target.unit_id == caster.unit_id:
            if not ability.can_target_self:
                return False, "Cannot target self"
            return True, ""

        if target.faction == caster.faction:
            if not ability.can_target_allies:
                return False, "Cannot target allies"
        elif not ability.can_target_enemies:
            return False, "Cannot target enemies"

        if ability.range is not None and self.distance(caster, target) > ability.range:
            return False, "Target is out of range"

        return True, ""

    def distance(self, a: Unit, b: Unit) -> float:
        return math.dist(a.position, b.position)

    def has_active_buff(self, unit: Unit, ability: Ability) -> bool:
        return ability.ability_id in self.active_buffs.get(unit.unit_id, ())

    def has_active_buff_on_target(self, target: Unit, ability: Ability) -> bool:
        return ability.ability_id in self.active_buffs.get(target.unit_id, ())

    def get_ap_cost(self, ability: Ability) -> float:
        return ability.ap_cost

    def get_weapon_sets(self, unit: Unit) -> Sequence[WeaponSet]:
        return tuple(self.weapon_sets.get(unit.unit_id, ()))

    def get_risk_level(self, ability: Ability) -> RiskLevel:
        return self.risk_levels.get(ability.ability_id, RiskLevel.SAFE)

    def describe_risk(self) -> str:
        order = list(RiskLevel)
        worst = max(self.risk_levels.values(), key=order.index, default=RiskLevel.SAFE)
        return f"Risk={worst.value.upper()}"

    def get_momentum(self) -> int:
        return self.momentum

    def is_heroic_act_available(self) -> bool:
        return self.momentum >= self.tuning.heroic_momentum

    def is_desperate_measures(self) -> bool:
        return self.momentum <= self.tuning.desperate_momentum

    def get_dot_stacks(self, target: Unit, dot_type: DotType) -> int:
        return self.dot_stacks.get(target.unit_id, {}).get(dot_type, 0)

    def count_debuffs(self, target: Unit) -> int:
        return self.debuff_counts.get(target.unit_id, 0)
