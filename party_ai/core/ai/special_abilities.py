"""
Special Combo Abilities.

Some abilities only pay off against a particular target state:

1. DoT intensify (Shape Flames, Fan the Flames) - needs the matching DoT
   already on the target; otherwise a DoT setup ability (Inferno, Fire
   Storm) should be used first.
2. Chain effects (Chain Lightning) - need at least two enemies within
   jumping distance of each other.
3. Debuff enhancers - need at least one debuff already on the target.

The attack phase asks this module which combos are effective right now and
how they rank against each other.
"""
import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple, TYPE_CHECKING

from party_ai.core.behavior_config import EngineTuning
from .classification import normalize_identifier, normalize_name
from .models import Ability, DotType, Unit

if TYPE_CHECKING:
    from .host import CombatHost

logger = logging.getLogger(__name__)


class SpecialAbilityType(str, Enum):
    """Combo categories that need target-state checks."""
    NONE = "none"
    DOT_INTENSIFY = "dot_intensify"
    CHAIN_EFFECT = "chain_effect"
    DEBUFF_ENHANCER = "debuff_enhancer"


# ============================================================================
# Registries
# ============================================================================

DOT_INTENSIFY_IDS: FrozenSet[str] = frozenset({
    "7720d74e51f94184bb43b97ce9c9e53f",  # Shape Flames
    "24f1e49a2294434da2dc17edb6808517",  # Fan the Flames
    "cb3a7a2b865d424183d290b4ff8d3f34",  # Fan the Flames (enemies only)
})

CHAIN_EFFECT_IDS: FrozenSet[str] = frozenset({
    "7b68b4aa3c024f348a20dce3ef172e40",  # Chain Lightning
    "635161f3087c4294bf39c5fefe3d01af",  # Chain Lightning (heroic)
    "3c48374cbe244fc2bb8b6293230a6829",  # Chain Lightning (desperate)
})

DEBUFF_ENHANCER_IDS: FrozenSet[str] = frozenset()

BURNING_SETUP_IDS: FrozenSet[str] = frozenset({
    "8a759cdc2b754309b1fb75397798fbf1",  # Inferno
    "c4ea2ad9fe1e4509916cb5f1787b1530",  # Inferno (desperate)
    "84ddefd28f224d5fb3f5e176375c1f05",  # Inferno (heroic)
    "321a9274e3454d69ada142f4ce540b12",  # Fire Storm
})

DOT_KEYWORDS: Dict[DotType, Tuple[str, ...]] = {
    DotType.BURNING: ("burn", "flame", "fire", "inferno", "immolat", "pyro", "화염", "불꽃", "연소"),
    DotType.BLEEDING: ("bleed", "haemorrhage", "hemorrhage", "blood", "wound", "출혈"),
    DotType.TOXIC: ("toxic", "poison", "venom", "blight", "중독"),
}

INTENSIFY_KEYWORDS = ("symphony", "intensify", "shapeflames", "fantheflames", "교향곡")
CHAIN_KEYWORDS = ("chain", "arc", "연쇄")
DEBUFF_ENHANCER_KEYWORDS = ("exploit", "capitalise", "capitalize", "opportunist")
BURNING_SETUP_KEYWORDS = ("inferno", "firestorm", "인페르노")


def _names(ability: Ability) -> List[str]:
    return [normalize_name(n) for n in (ability.name, ability.blueprint_name) if n]


def _matches(ability: Ability, keywords: Sequence[str]) -> bool:
    return any(k in name for name in _names(ability) for k in keywords)


# ============================================================================
# Type detection
# ============================================================================

def get_special_type(ability: Ability) -> SpecialAbilityType:
    """Identifier registry first, then name patterns."""
    guid = normalize_identifier(ability.ability_id or "")
    if guid in DOT_INTENSIFY_IDS:
        return SpecialAbilityType.DOT_INTENSIFY
    if guid in CHAIN_EFFECT_IDS:
        return SpecialAbilityType.CHAIN_EFFECT
    if guid in DEBUFF_ENHANCER_IDS:
        return SpecialAbilityType.DEBUFF_ENHANCER

    # Weapon attacks (chainswords, burst fire) are never matched by name
    if ability.has_weapon_binding:
        return SpecialAbilityType.NONE

    if _matches(ability, INTENSIFY_KEYWORDS) and infer_dot_type(ability) is not None:
        return SpecialAbilityType.DOT_INTENSIFY
    if _matches(ability, CHAIN_KEYWORDS):
        return SpecialAbilityType.CHAIN_EFFECT
    if _matches(ability, DEBUFF_ENHANCER_KEYWORDS):
        return SpecialAbilityType.DEBUFF_ENHANCER
    return SpecialAbilityType.NONE


def infer_dot_type(ability: Ability) -> Optional[DotType]:
    """DoT family named by the ability. Registered intensifiers are burning."""
    for dot_type, keywords in DOT_KEYWORDS.items():
        if _matches(ability, keywords):
            return dot_type
    if normalize_identifier(ability.ability_id or "") in DOT_INTENSIFY_IDS:
        return DotType.BURNING
    return None


def applies_dot(ability: Ability, dot_type: DotType) -> bool:
    """Whether ability puts dot_type on its target (a combo setup)."""
    if not ability.can_target_enemies:
        return False
    if get_special_type(ability) == SpecialAbilityType.DOT_INTENSIFY:
        return False
    burning = dot_type == DotType.BURNING
    if burning and normalize_identifier(ability.ability_id or "") in BURNING_SETUP_IDS:
        return True
    if ability.has_weapon_binding:
        return False
    if burning and _matches(ability, BURNING_SETUP_KEYWORDS):
        return True
    return _matches(ability, DOT_KEYWORDS[dot_type])


# ============================================================================
# Target state
# ============================================================================

def count_chain_targets(
    host: "CombatHost",
    initial_target: Unit,
    enemies: Sequence[Unit],
    radius: float,
    max_targets: int,
) -> int:
    """
    Greedy chain walk: from the current link, jump to the nearest unused
    enemy within radius, up to max_targets links including the first.
    """
    used = {initial_target.unit_id}
    current = initial_target
    count = 1

    while count < max_targets:
        candidates = [
            e for e in enemies
            if e.unit_id not in used and e.current_hp > 0 and host.distance(current, e) <= radius
        ]
        if not candidates:
            break
        current = min(candidates, key=lambda e: host.distance(current, e))
        used.add(current.unit_id)
        count += 1

    return count


def is_effective(
    host: "CombatHost",
    ability: Ability,
    target: Unit,
    enemies: Sequence[Unit],
    tuning: EngineTuning,
) -> bool:
    """Whether ability gets its bonus against target right now."""
    special_type = get_special_type(ability)

    if special_type == SpecialAbilityType.DOT_INTENSIFY:
        dot_type = infer_dot_type(ability)
        stacks = host.get_dot_stacks(target, dot_type) if dot_type else 0
        if stacks <= 0:
            logger.debug(f"{ability.display_name} skipped - {target.display_name} has no {dot_type} DoT")
            return False
        return True

    if special_type == SpecialAbilityType.CHAIN_EFFECT:
        links = count_chain_targets(host, target, enemies, tuning.chain_radius, tuning.chain_max_targets)
        if links < 2:
            logger.debug(f"{ability.display_name} skipped - only {links} chain target(s)")
            return False
        return True

    if special_type == SpecialAbilityType.DEBUFF_ENHANCER:
        if host.count_debuffs(target) < 1:
            logger.debug(f"{ability.display_name} skipped - {target.display_name} has no debuff")
            return False
        return True

    return True


def effectiveness_score(
    host: "CombatHost",
    ability: Ability,
    target: Unit,
    enemies: Sequence[Unit],
    tuning: EngineTuning,
) -> int:
    """Score 0-100, higher means more worth using now."""
    special_type = get_special_type(ability)

    if special_type == SpecialAbilityType.DOT_INTENSIFY:
        dot_type = infer_dot_type(ability)
        stacks = host.get_dot_stacks(target, dot_type) if dot_type else 0
        if stacks <= 0:
            return 0
        return min(100, 50 + stacks * 10)

    if special_type == SpecialAbilityType.CHAIN_EFFECT:
        links = count_chain_targets(host, target, enemies, tuning.chain_radius, tuning.chain_max_targets)
        if links < 2:
            return 20
        return min(100, links * 25)

    if special_type == SpecialAbilityType.DEBUFF_ENHANCER:
        return min(100, 40 + host.count_debuffs(target) * 15)

    return 50


def rank_effective(
    host: "CombatHost",
    abilities: Sequence[Ability],
    target: Unit,
    enemies: Sequence[Unit],
    tuning: EngineTuning,
) -> List[Tuple[int, Ability]]:
    """Effective special abilities against target, best score first."""
    ranked = []
    for ability in abilities:
        if not ability.can_target_enemies:
            continue
        if get_special_type(ability) == SpecialAbilityType.NONE:
            continue
        if not is_effective(host, ability, target, enemies, tuning):
            continue
        ranked.append((effectiveness_score(host, ability, target, enemies, tuning), ability))

    ranked.sort(key=lambda pair: pair[0], reverse=True)
    return ranked


def find_setup_abilities(
    host: "CombatHost",
    abilities: Sequence[Ability],
    target: Unit,
) -> List[Ability]:
    """
    Setup abilities for intensifiers that are waiting on a DoT.

    For every intensifier whose DoT is missing on target, the abilities that
    would apply that DoT, in availability order and without duplicates.
    """
    setups: List[Ability] = []
    for ability in abilities:
        if get_special_type(ability) != SpecialAbilityType.DOT_INTENSIFY:
            continue
        dot_type = infer_dot_type(ability)
        if dot_type is None or host.get_dot_stacks(target, dot_type) > 0:
            continue
        for candidate in abilities:
            if candidate is ability or candidate in setups:
                continue
            if applies_dot(candidate, dot_type):
                setups.append(candidate)
    return setups
