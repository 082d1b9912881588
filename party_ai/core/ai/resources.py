"""
Action point, ammunition and momentum helpers.

AP reservation, ammunition state across every weapon set, and momentum
status strings.
"""
from typing import List, Optional, TYPE_CHECKING

from party_ai.core.behavior_config import EngineTuning
from .models import Ability, ActionContext, Unit, WeaponSet

if TYPE_CHECKING:
    from .host import CombatHost


def can_afford_with_reserve(
    ctx: ActionContext,
    ability: Ability,
    reserve: Optional[float] = None,
    host: Optional["CombatHost"] = None,
) -> bool:
    """
    Check that spending ability still leaves the reserved AP.

    Args:
        ctx: Current snapshot
        ability: Ability about to be spent
        reserve: AP that must remain; defaults to ctx.reserved_ap_for_attack
        host: Optional host for the live AP cost; falls back to ability.ap_cost

    Returns:
        True iff current AP minus the ability's cost is at least the reserve
    """
    cost = host.get_ap_cost(ability) if host is not None else ability.ap_cost
    if reserve is None:
        reserve = ctx.reserved_ap_for_attack
    return ctx.current_ap - cost >= reserve


def weapon_sets_needing_reload(host: "CombatHost", unit: Unit) -> List[WeaponSet]:
    """All ranged weapon sets that are out of ammunition, not just the active one."""
    return [ws for ws in host.get_weapon_sets(unit) if ws.needs_reload]


def should_top_up(weapon_set: WeaponSet, tuning: EngineTuning) -> bool:
    """Ranged sets at or below the low-ammo percentage."""
    if not weapon_set.is_ranged or weapon_set.max_ammo <= 0:
        return False
    return weapon_set.ammo_percent <= tuning.reload_ammo_percent


def momentum_status(host: "CombatHost", tuning: EngineTuning) -> str:
    momentum = host.get_momentum()
    if momentum >= tuning.heroic_momentum:
        status = "HEROIC"
    elif momentum <= tuning.desperate_momentum:
        status = "DESPERATE"
    else:
        status = "NORMAL"
    return f"Momentum={momentum} ({status})"
