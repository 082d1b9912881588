"""
Decision Preview API Routes.

Endpoints for exercising the decision engine over HTTP:
- Decide one action for a declared situation
- Preview the advisory turn plan
- Classify abilities
- List roles and presets, configure per-unit settings
- Reset encounter memory
"""
from fastapi import APIRouter
from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any, Tuple

from party_ai.core.ai import (
    Ability,
    AoEShape,
    DotType,
    RiskLevel,
    StaticCombatHost,
    TurnPlanHint,
    Unit,
    WeaponAttackType,
    WeaponSet,
    build_action_context,
    decide_action,
    get_default_classifier,
    get_policy,
    get_special_type,
    plan_turn,
    start_encounter,
)
from party_ai.core.ai.classification import AbilityFlag
from party_ai.core.ai.models import ActionContext
from party_ai.core.behavior_config import (
    AIRole,
    BehaviorSettings,
    EngineTuning,
    RangePreference,
    ROLE_PRESETS,
    apply_role_preset,
    get_unit_settings,
)
from party_ai.core.errors import UnknownUnitError, ValidationError

router = APIRouter()

ENEMY_FACTION = "enemy"


# =============================================================================
# Request/Response Models
# =============================================================================

class UnitData(BaseModel):
    """A combatant in the declared situation."""
    id: str
    name: str = ""
    hp: int = 1
    max_hp: Optional[int] = None
    position: List[float] = Field(default_factory=lambda: [0.0, 0.0], min_length=2, max_length=2)
    faction: Optional[str] = None


class AbilityData(BaseModel):
    """An ability available to the acting unit."""
    id: str
    name: str = ""
    blueprint_name: str = ""
    ap_cost: float = 1.0
    can_target_self: bool = False
    can_target_allies: bool = False
    can_target_enemies: bool = False
    can_target_point: bool = False
    attack_type: WeaponAttackType = WeaponAttackType.NONE
    aoe_shape: AoEShape = AoEShape.NONE
    range: Optional[float] = None
    weapon_set: Optional[int] = None


class WeaponSetData(BaseModel):
    """Ammunition state of one of the acting unit's weapon sets."""
    index: int
    is_ranged: bool = False
    current_ammo: int = -1
    max_ammo: int = -1


class DenialData(BaseModel):
    """An ability the host refuses on a target ("*" for every target)."""
    ability_id: str
    target_id: str = "*"
    reason: str = "Not allowed"


class SettingsData(BaseModel):
    """Behavior settings for the acting unit."""
    role: AIRole = AIRole.BALANCED
    range_preference: RangePreference = RangePreference.ADAPTIVE
    heal_threshold: float = Field(default=50.0, ge=0, le=100)
    min_safe_distance: float = Field(default=5.0, ge=0)


class TurnPlanData(BaseModel):
    """Advisory plan supplied by the caller."""
    should_buff_first: bool = False
    should_retreat: bool = False
    reason: str = ""


class HostStateData(BaseModel):
    """Live game state the host would answer queries from."""
    active_buffs: Dict[str, List[str]] = Field(default_factory=dict)
    denied: List[DenialData] = Field(default_factory=list)
    risk_levels: Dict[str, RiskLevel] = Field(default_factory=dict)
    momentum: int = 100
    dot_stacks: Dict[str, Dict[DotType, int]] = Field(default_factory=dict)
    debuff_counts: Dict[str, int] = Field(default_factory=dict)
    weapon_sets: List[WeaponSetData] = Field(default_factory=list)


class DecideRequest(BaseModel):
    """Situation for one decision step."""
    unit: UnitData
    allies: List[UnitData] = Field(default_factory=list)
    enemies: List[UnitData] = Field(default_factory=list)
    abilities: List[AbilityData] = Field(default_factory=list)
    current_ap: float = 0.0
    max_ap: Optional[float] = None
    reserved_ap_for_attack: Optional[float] = None
    has_performed_first_action: bool = False
    can_move: bool = True
    turn_id: int = 0
    settings: Optional[SettingsData] = None
    turn_plan: Optional[TurnPlanData] = None
    plan: bool = False
    host: HostStateData = Field(default_factory=HostStateData)


class DecideResponse(BaseModel):
    """The chosen action."""
    unit_id: str
    role: str
    policy: str
    decision: Dict[str, Any]
    turn_plan: Optional[Dict[str, Any]] = None


class PlanResponse(BaseModel):
    """Advisory plan for the turn."""
    unit_id: str
    turn_plan: Dict[str, Any]


class ClassifyRequest(BaseModel):
    """Abilities to classify."""
    abilities: List[AbilityData]


class PresetRequest(BaseModel):
    """Role preset to assign to a unit."""
    role: str


# =============================================================================
# Helpers
# =============================================================================

def _to_unit(data: UnitData, default_faction: str) -> Unit:
    return Unit(
        unit_id=data.id,
        name=data.name,
        current_hp=data.hp,
        max_hp=data.max_hp if data.max_hp is not None else max(1, data.hp),
        position=(data.position[0], data.position[1]),
        faction=data.faction or default_faction,
    )


def _to_ability(data: AbilityData, caster_id: str) -> Ability:
    return Ability(
        ability_id=data.id,
        name=data.name,
        blueprint_name=data.blueprint_name,
        caster_id=caster_id,
        ap_cost=data.ap_cost,
        can_target_self=data.can_target_self,
        can_target_allies=data.can_target_allies,
        can_target_enemies=data.can_target_enemies,
        can_target_point=data.can_target_point,
        attack_type=data.attack_type,
        aoe_shape=data.aoe_shape,
        range=data.range,
        weapon_set=data.weapon_set,
    )


def _build_situation(request: DecideRequest) -> Tuple[StaticCombatHost, ActionContext]:
    """Turn a request into a host and a snapshot."""
    actor = _to_unit(request.unit, "party")
    allies = [_to_unit(a, actor.faction) for a in request.allies]
    enemies = [_to_unit(e, ENEMY_FACTION) for e in request.enemies]

    units = [actor] + allies + enemies
    ids = [u.unit_id for u in units]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValidationError("Unit ids must be unique", field="units", errors=duplicates)

    known = set(ids)
    for denial in request.host.denied:
        if denial.target_id != "*" and denial.target_id not in known:
            raise UnknownUnitError(denial.target_id)

    tuning = EngineTuning.from_settings()
    host = StaticCombatHost(
        units=units,
        weapon_sets={actor.unit_id: [WeaponSet(**ws.model_dump()) for ws in request.host.weapon_sets]},
        active_buffs=request.host.active_buffs,
        denied={(d.ability_id, d.target_id): d.reason for d in request.host.denied},
        risk_levels=request.host.risk_levels,
        momentum=request.host.momentum,
        dot_stacks=request.host.dot_stacks,
        debuff_counts=request.host.debuff_counts,
        tuning=tuning,
    )

    if request.settings is not None:
        settings = BehaviorSettings.from_dict(request.settings.model_dump(mode="json"))
    else:
        settings = get_unit_settings(actor.unit_id)

    turn_plan = TurnPlanHint(**request.turn_plan.model_dump()) if request.turn_plan else None

    ctx = build_action_context(
        host,
        actor,
        allies=allies,
        enemies=enemies,
        abilities=[_to_ability(a, actor.unit_id) for a in request.abilities],
        current_ap=request.current_ap,
        max_ap=request.max_ap,
        settings=settings,
        reserved_ap_for_attack=request.reserved_ap_for_attack,
        has_performed_first_action=request.has_performed_first_action,
        can_move=request.can_move,
        turn_id=request.turn_id,
        turn_plan=turn_plan,
        plan=request.plan,
    )
    return host, ctx


def _classify(ability: Ability) -> Dict[str, Any]:
    classifier = get_default_classifier()
    rule = classifier.get_rule(ability)
    return {
        "id": ability.ability_id,
        "name": ability.display_name,
        "timing": classifier.classify_timing(ability).value,
        "special": get_special_type(ability).value,
        "flags": sorted(f.value for f in rule.flags) if rule else [],
        "hp_threshold": rule.hp_threshold if rule else 0.0,
        "target_hp_threshold": rule.target_hp_threshold if rule else 0.0,
        "traits": {
            "offensive": classifier.is_offensive(ability),
            "healing": classifier.is_healing(ability),
            "reload": classifier.is_reload(ability),
            "gap_closer": classifier.is_gap_closer(ability),
            "run_and_gun": classifier.is_run_and_gun(ability),
            "hp_cost": classifier.is_hp_cost(ability),
            "grenade": classifier.is_grenade(ability),
            "aoe": classifier.is_aoe(ability),
            "dangerous_aoe": classifier.has_flag(ability, AbilityFlag.DANGEROUS_AOE),
        },
    }


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/decide", response_model=DecideResponse)
async def decide(request: DecideRequest):
    """
    Decide one action for the declared situation.

    Usage memory is shared across calls, so repeated calls within a turn
    see earlier buffs and one-per-turn skills as already used.
    """
    host, ctx = _build_situation(request)
    decision = decide_action(ctx, host, tuning=host.tuning)

    return DecideResponse(
        unit_id=ctx.unit.unit_id,
        role=ctx.settings.role.value,
        policy=get_policy(ctx.settings.role).name,
        decision=decision.to_dict(),
        turn_plan=ctx.turn_plan.to_dict() if ctx.turn_plan else None,
    )


@router.post("/plan", response_model=PlanResponse)
async def preview_plan(request: DecideRequest):
    """Advisory turn plan for the declared situation."""
    host, ctx = _build_situation(request)
    hint = plan_turn(ctx, host)
    return PlanResponse(unit_id=ctx.unit.unit_id, turn_plan=hint.to_dict())


@router.post("/classify")
async def classify(request: ClassifyRequest):
    """Timing tag, combo type and traits for each ability."""
    return {
        "abilities": [_classify(_to_ability(a, "")) for a in request.abilities],
    }


@router.get("/roles")
async def list_roles():
    """Available roles with the policy and preset each one uses."""
    return {
        "roles": [
            {
                "role": role.value,
                "policy": get_policy(role).name,
                "preset": ROLE_PRESETS[role].to_dict(),
            }
            for role in AIRole
        ]
    }


@router.get("/settings/{unit_id}")
async def get_settings_for_unit(unit_id: str):
    """Settings registered for a unit (Balanced if none)."""
    return {"unit_id": unit_id, "settings": get_unit_settings(unit_id).to_dict()}


@router.post("/settings/{unit_id}/preset")
async def assign_preset(unit_id: str, request: PresetRequest):
    """Register a role preset for a unit."""
    settings = apply_role_preset(unit_id, request.role)
    return {"unit_id": unit_id, "settings": settings.to_dict()}


@router.post("/encounter/reset")
async def reset_encounter():
    """Clear usage memory and turn dedup for a new encounter."""
    start_encounter()
    return {"status": "reset"}
