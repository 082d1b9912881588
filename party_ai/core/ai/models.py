"""
Decision Engine Data Model.

Value types shared by every part of the engine: units, abilities, weapon
sets, the per-decision situation snapshot and the decision it produces.
All of them are frozen; a decision never mutates its snapshot.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, Tuple

from party_ai.core.behavior_config import BehaviorSettings


class TimingTag(str, Enum):
    """Semantic moment an ability is meant to be used at."""
    PRE_COMBAT_BUFF = "pre_combat_buff"
    PRE_ATTACK_BUFF = "pre_attack_buff"
    DEBUFF = "debuff"
    OFFENSIVE = "offensive"
    POST_FIRST_ACTION = "post_first_action"
    TURN_ENDING = "turn_ending"
    FINISHER = "finisher"
    RELOAD = "reload"
    DEFENSIVE_STANCE = "defensive_stance"
    TAUNT = "taunt"
    GAP_CLOSER = "gap_closer"
    HEROIC_ACT = "heroic_act"
    MOMENTUM_GENERATING = "momentum_generating"
    HEAL = "heal"
    NONE = "none"


class WeaponAttackType(str, Enum):
    """Weapon binding of an ability."""
    NONE = "none"
    MELEE = "melee"
    SINGLE_SHOT = "single_shot"
    BURST = "burst"
    SCATTER = "scatter"
    GRENADE = "grenade"


class AoEShape(str, Enum):
    """Area-damage shape of an ability."""
    NONE = "none"
    CIRCLE = "circle"
    CONE = "cone"
    LINE = "line"


class RiskLevel(str, Enum):
    """Environmental side-risk of using an ability right now."""
    SAFE = "safe"
    CAUTION = "caution"
    DANGEROUS = "dangerous"
    BLOCKED = "blocked"


class DotType(str, Enum):
    """Damage-over-time families used by combo abilities."""
    BURNING = "burning"
    BLEEDING = "bleeding"
    TOXIC = "toxic"


class DecisionType(str, Enum):
    """Kinds of decision the engine can return."""
    USE_ABILITY = "use_ability"
    MOVE = "move"
    END_TURN = "end_turn"


RANGED_ATTACK_TYPES = (
    WeaponAttackType.SINGLE_SHOT,
    WeaponAttackType.BURST,
    WeaponAttackType.SCATTER,
)


@dataclass(frozen=True)
class Unit:
    """A combatant as seen by the engine."""
    unit_id: str
    name: str = ""
    current_hp: int = 1
    max_hp: int = 1
    position: Tuple[float, float] = (0.0, 0.0)
    faction: str = "party"

    @property
    def hp_percent(self) -> float:
        if self.max_hp <= 0:
            return 0.0
        return self.current_hp / self.max_hp * 100.0

    @property
    def display_name(self) -> str:
        return self.name or self.unit_id


@dataclass(frozen=True)
class Ability:
    """
    An ability instance bound to its caster.

    ability_id is the stable blueprint key; name and blueprint_name feed the
    keyword fallback when no identifier rule exists. Targeting flags mirror
    what the host allows in principle; actual legality always comes from
    CombatHost.can_use.
    """
    ability_id: str
    name: str = ""
    blueprint_name: str = ""
    caster_id: str = ""
    ap_cost: float = 1.0
    can_target_self: bool = False
    can_target_allies: bool = False
    can_target_enemies: bool = False
    can_target_point: bool = False
    attack_type: WeaponAttackType = WeaponAttackType.NONE
    aoe_shape: AoEShape = AoEShape.NONE
    range: Optional[float] = None
    weapon_set: Optional[int] = None

    @property
    def has_weapon_binding(self) -> bool:
        return self.attack_type not in (WeaponAttackType.NONE, WeaponAttackType.GRENADE)

    @property
    def is_melee(self) -> bool:
        return self.attack_type == WeaponAttackType.MELEE

    @property
    def is_ranged(self) -> bool:
        return self.attack_type in RANGED_ATTACK_TYPES

    @property
    def is_self_only(self) -> bool:
        return self.can_target_self and not (
            self.can_target_allies or self.can_target_enemies or self.can_target_point
        )

    @property
    def display_name(self) -> str:
        return self.name or self.blueprint_name or self.ability_id


@dataclass(frozen=True)
class WeaponSet:
    """Ammunition state of one weapon set. max_ammo of -1 marks a melee set."""
    index: int
    is_ranged: bool = False
    current_ammo: int = -1
    max_ammo: int = -1

    @property
    def needs_reload(self) -> bool:
        return self.is_ranged and self.max_ammo > 0 and self.current_ammo <= 0

    @property
    def ammo_percent(self) -> float:
        if self.max_ammo <= 0:
            return 100.0
        return max(0, self.current_ammo) / self.max_ammo * 100.0


@dataclass(frozen=True)
class TurnPlanHint:
    """Advisory plan from the turn planner. Never binding."""
    should_buff_first: bool = False
    should_retreat: bool = False
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "should_buff_first": self.should_buff_first,
            "should_retreat": self.should_retreat,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ActionContext:
    """
    Read-only snapshot of the acting unit's situation for one decision.

    Target candidates and the melee/ranged booleans are precomputed by the
    snapshot builder (see targeting.build_action_context).
    """
    unit: Unit
    hp_percent: float
    current_ap: float
    max_ap: float
    settings: BehaviorSettings = field(default_factory=BehaviorSettings)
    reserved_ap_for_attack: float = 0.0
    has_performed_first_action: bool = False
    allies: Tuple[Unit, ...] = ()
    enemies: Tuple[Unit, ...] = ()
    available_abilities: Tuple[Ability, ...] = ()
    nearest_enemy: Optional[Unit] = None
    weakest_enemy: Optional[Unit] = None
    best_melee_target: Optional[Unit] = None
    best_ranged_target: Optional[Unit] = None
    best_target: Optional[Unit] = None
    most_wounded_ally: Optional[Unit] = None
    nearest_enemy_distance: float = float("inf")
    is_in_melee_range: bool = False
    has_melee_weapon: bool = False
    has_ranged_weapon: bool = False
    enemies_in_melee_range: int = 0
    can_move: bool = True
    turn_plan: Optional[TurnPlanHint] = None
    turn_id: int = 0


@dataclass(frozen=True)
class ActionDecision:
    """The single action chosen for one decision step."""
    decision_type: DecisionType
    reason: str = ""
    ability: Optional[Ability] = None
    target: Optional[Unit] = None

    @classmethod
    def use_ability(cls, ability: Ability, target: Unit, reason: str) -> "ActionDecision":
        return cls(DecisionType.USE_ABILITY, reason=reason, ability=ability, target=target)

    @classmethod
    def move(cls, reason: str) -> "ActionDecision":
        return cls(DecisionType.MOVE, reason=reason)

    @classmethod
    def end_turn(cls, reason: str) -> "ActionDecision":
        return cls(DecisionType.END_TURN, reason=reason)

    @property
    def is_ability(self) -> bool:
        return self.decision_type == DecisionType.USE_ABILITY

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "type": self.decision_type.value,
            "ability_id": self.ability.ability_id if self.ability else None,
            "ability_name": self.ability.display_name if self.ability else None,
            "target_id": self.target.unit_id if self.target else None,
            "reason": self.reason,
        }
