"""
Ability Classification.

Maps an ability to a semantic timing tag and a handful of boolean traits.
Resolution is two-tier: a table keyed by the stable blueprint identifier,
then a keyword table over the normalised display/blueprint names, then a
structural fallback that looks only at targeting flags. Unknown abilities
classify as TimingTag.NONE; nothing here raises for an unrecognised ability.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from .models import Ability, AoEShape, TimingTag, WeaponAttackType


class AbilityFlag(str, Enum):
    """Extra traits a rule can carry on top of its timing."""
    HP_COST = "hp_cost"
    DANGEROUS_AOE = "dangerous_aoe"
    SINGLE_USE = "single_use"
    RIGHTEOUS_FURY = "righteous_fury"
    DESPERATE_MEASURE = "desperate_measure"


@dataclass(frozen=True)
class AbilityRule:
    """
    Classification result for one ability.

    hp_threshold: caster HP percent required before an HP-costing ability
        may be used (0 = not HP-gated)
    target_hp_threshold: target HP percent at or below which a finisher
        becomes eligible (0 = use the engine default)
    """
    timing: TimingTag
    hp_threshold: float = 0.0
    target_hp_threshold: float = 0.0
    flags: FrozenSet[AbilityFlag] = frozenset()
    description: str = ""

    def has_flag(self, flag: AbilityFlag) -> bool:
        return flag in self.flags


def _rule(
    timing: TimingTag,
    hp: float = 0.0,
    target_hp: float = 0.0,
    flags: Iterable[AbilityFlag] = (),
    description: str = "",
) -> AbilityRule:
    return AbilityRule(timing, hp, target_hp, frozenset(flags), description)


RUN_AND_GUN_ID = "22a25a3e418246ccbe95f2cc81c17473"

# Blueprint identifiers of abilities with known semantics
KNOWN_ABILITIES: Dict[str, AbilityRule] = {
    RUN_AND_GUN_ID: _rule(TimingTag.POST_FIRST_ACTION, description="Run and Gun"),
    "51366be5481b4ca7b348d9ac69a79f46": _rule(TimingTag.POST_FIRST_ACTION, hp=30, description="Daring Breach"),
    "cd42292391e74ba7809d0600ddb43a8d": _rule(TimingTag.DEFENSIVE_STANCE, description="Defensive Stance"),
    "98f4a31b68e446ad9c63411c7b349146": _rule(TimingTag.RELOAD, description="Reload"),
    "742ab23861c544b38f26e17175d17183": _rule(TimingTag.TAUNT, description="Taunt"),
    "6a4c3b65dff840e0aab5966ffe8aa7ba": _rule(TimingTag.FINISHER, target_hp=30, description="Dispatch"),
    "ed10346264414140936abd17d6c5b445": _rule(TimingTag.FINISHER, target_hp=25, description="Deathblow"),
    "635161f3087c4294bf39c5fefe3d01af": _rule(
        TimingTag.HEROIC_ACT, flags=[AbilityFlag.SINGLE_USE], description="Chain Lightning (Heroic)"
    ),
    "083d5280759b4ed3a2d0b61254653273": _rule(TimingTag.HEAL, description="Medikit"),
    "590c990c1d684fd09ae883754d28a8ac": _rule(
        TimingTag.PRE_ATTACK_BUFF, hp=60, flags=[AbilityFlag.HP_COST], description="Blood Oath"
    ),
    "197b8a8a12b0442db7ffee1067cf3d97": _rule(TimingTag.DEBUFF, description="Expose Weakness"),
    "c78506dd0e14f7c45a599990e4e65038": _rule(TimingTag.PRE_ATTACK_BUFF, description="Charge"),
    "f6a60b4556214528b0ce295c4f69306e": _rule(TimingTag.TURN_ENDING, description="Stalwart Defense"),
}


# Normalised-name keyword rules. Exact matches win, then the longest
# contained key.
KEYWORD_RULES: Dict[str, AbilityRule] = {
    # Mobility extensions that only pay off after acting
    "runandgun": _rule(TimingTag.POST_FIRST_ACTION),
    "daringbreach": _rule(TimingTag.POST_FIRST_ACTION, hp=30),

    # Stances
    "defensivestance": _rule(TimingTag.DEFENSIVE_STANCE),
    "bulwark": _rule(TimingTag.DEFENSIVE_STANCE),
    "braceforimpact": _rule(TimingTag.DEFENSIVE_STANCE),
    "shieldwall": _rule(TimingTag.DEFENSIVE_STANCE),
    "holdtheline": _rule(TimingTag.DEFENSIVE_STANCE),
    "guardstance": _rule(TimingTag.DEFENSIVE_STANCE),
    "fortify": _rule(TimingTag.DEFENSIVE_STANCE),
    "hunkerdown": _rule(TimingTag.DEFENSIVE_STANCE),
    "entrench": _rule(TimingTag.DEFENSIVE_STANCE),
    "ironguard": _rule(TimingTag.DEFENSIVE_STANCE),

    # Pre-attack buffs
    "concentratedfire": _rule(TimingTag.PRE_ATTACK_BUFF),
    "voiceofcommand": _rule(TimingTag.PRE_ATTACK_BUFF),
    "finesthour": _rule(TimingTag.PRE_ATTACK_BUFF),
    "bringitdown": _rule(TimingTag.PRE_ATTACK_BUFF),
    "analyseenemy": _rule(TimingTag.PRE_ATTACK_BUFF),
    "markprey": _rule(TimingTag.PRE_ATTACK_BUFF),
    "fightercharge": _rule(TimingTag.PRE_ATTACK_BUFF),

    # Turn enders
    "veilofblades": _rule(TimingTag.TURN_ENDING, hp=50),
    "stalwartdefense": _rule(TimingTag.TURN_ENDING),
    "shieldriposte": _rule(TimingTag.TURN_ENDING),

    # Finishers
    "dispatch": _rule(TimingTag.FINISHER, target_hp=30),
    "deathblow": _rule(TimingTag.FINISHER, target_hp=25),
    "execute": _rule(TimingTag.FINISHER, target_hp=30),

    # Paid in the caster's own HP
    "bloodoath": _rule(TimingTag.PRE_ATTACK_BUFF, hp=60, flags=[AbilityFlag.HP_COST]),
    "ensanguinate": _rule(TimingTag.OFFENSIVE, hp=50, flags=[AbilityFlag.HP_COST]),
    "recklessabandon": _rule(TimingTag.PRE_ATTACK_BUFF, hp=70, flags=[AbilityFlag.HP_COST]),
    "metabolicovercharge": _rule(TimingTag.PRE_ATTACK_BUFF, hp=80, flags=[AbilityFlag.HP_COST]),

    # Area attacks that also hit allies
    "lidlessstare": _rule(TimingTag.OFFENSIVE, flags=[AbilityFlag.DANGEROUS_AOE]),
    "bladedance": _rule(TimingTag.OFFENSIVE, flags=[AbilityFlag.DANGEROUS_AOE]),

    # Debuffs
    "exposeweakness": _rule(TimingTag.DEBUFF),
    "dismantlingattack": _rule(TimingTag.DEBUFF),

    # Righteous fury family
    "revelinslaughter": _rule(TimingTag.PRE_ATTACK_BUFF, flags=[AbilityFlag.RIGHTEOUS_FURY]),
    "holyrage": _rule(TimingTag.PRE_ATTACK_BUFF, flags=[AbilityFlag.RIGHTEOUS_FURY]),
    "righteousfury": _rule(TimingTag.PRE_ATTACK_BUFF, flags=[AbilityFlag.RIGHTEOUS_FURY]),

    # Momentum
    "heroicact": _rule(TimingTag.HEROIC_ACT, flags=[AbilityFlag.SINGLE_USE]),
    "heroicstrike": _rule(TimingTag.HEROIC_ACT, flags=[AbilityFlag.SINGLE_USE]),
    "desperatemeasure": _rule(TimingTag.PRE_ATTACK_BUFF, flags=[AbilityFlag.DESPERATE_MEASURE]),
    "laststand": _rule(TimingTag.PRE_ATTACK_BUFF, flags=[AbilityFlag.DESPERATE_MEASURE]),
    "warhymn": _rule(TimingTag.MOMENTUM_GENERATING),
    "assignobjective": _rule(TimingTag.MOMENTUM_GENERATING),
    "inspire": _rule(TimingTag.MOMENTUM_GENERATING),

    # Aggro
    "taunt": _rule(TimingTag.TAUNT),
    "provoke": _rule(TimingTag.TAUNT),
    "challengingroar": _rule(TimingTag.TAUNT),
    "drawfire": _rule(TimingTag.TAUNT),
    "도발": _rule(TimingTag.TAUNT),

    # Gap closers
    "deathfromabove": _rule(TimingTag.GAP_CLOSER),
    "leapattack": _rule(TimingTag.GAP_CLOSER),
    "pounce": _rule(TimingTag.GAP_CLOSER),

    # Resources
    "reload": _rule(TimingTag.RELOAD),
    "재장전": _rule(TimingTag.RELOAD),

    # Healing
    "medikit": _rule(TimingTag.HEAL),
    "heal": _rule(TimingTag.HEAL),
    "mend": _rule(TimingTag.HEAL),
    "치유": _rule(TimingTag.HEAL),
    "회복": _rule(TimingTag.HEAL),
}

HEAL_KEYWORDS = ("heal", "mend", "cure", "restore", "medikit", "치유", "회복")

GRENADE_KEYWORDS = (
    "grenade", "bomb", "explosive", "molotov", "incendiary",
    "flashbang", "frag", "krak", "throwable", "thrown", "수류탄",
)

AOE_KEYWORDS = (
    "aoe", "area", "cone", "wave", "blast", "scream", "stare",
    "explod", "lidless", "warpfire", "폭발", "광역",
)

STANCE_KEYWORDS = ("stance", "guard", "defend")
HP_COST_KEYWORDS = ("blood", "oath", "sacrifice", "wound")
FINISHER_KEYWORDS = ("dispatch", "execute", "finish", "deathblow")

PROACTIVE_BUFF_TAGS = (
    TimingTag.PRE_COMBAT_BUFF,
    TimingTag.PRE_ATTACK_BUFF,
    TimingTag.DEFENSIVE_STANCE,
)


def normalize_name(text: str) -> str:
    """Lowercase and strip separators and a trailing 'ability'."""
    normalized = text.lower()
    for ch in (" ", "_", "-", "'", "’"):
        normalized = normalized.replace(ch, "")
    if normalized.endswith("ability") and len(normalized) > len("ability"):
        normalized = normalized[:-len("ability")]
    return normalized


def normalize_identifier(text: str) -> str:
    return text.lower().replace("-", "").strip("{}")


def _names(ability: Ability) -> List[str]:
    names = [normalize_name(n) for n in (ability.name, ability.blueprint_name) if n]
    return [n for n in names if n]


def _contains_any(ability: Ability, keywords: Sequence[str]) -> bool:
    return any(k in name for name in _names(ability) for k in keywords)


class AbilityClassifier(ABC):
    """
    Classifier interface.

    Subclasses only implement lookup(); every predicate the decision phases
    use is derived from the rule it returns.
    """

    @abstractmethod
    def lookup(self, ability: Ability) -> Optional[AbilityRule]:
        """Return the rule for ability, or None when this tier has none."""

    def get_rule(self, ability: Ability) -> Optional[AbilityRule]:
        return self.lookup(ability)

    def classify_timing(self, ability: Ability) -> TimingTag:
        rule = self.get_rule(ability)
        return rule.timing if rule else TimingTag.NONE

    def has_flag(self, ability: Ability, flag: AbilityFlag) -> bool:
        rule = self.get_rule(ability)
        return rule is not None and rule.has_flag(flag)

    # -- timing predicates -------------------------------------------------

    def is_non_attack_timing(self, ability: Ability) -> bool:
        return self.classify_timing(ability) not in (TimingTag.OFFENSIVE, TimingTag.NONE)

    def is_run_and_gun(self, ability: Ability) -> bool:
        if normalize_identifier(ability.ability_id) == RUN_AND_GUN_ID:
            return True
        return _contains_any(ability, ("runandgun",))

    def is_post_first_action(self, ability: Ability) -> bool:
        return self.classify_timing(ability) == TimingTag.POST_FIRST_ACTION

    def is_turn_ending(self, ability: Ability) -> bool:
        return self.classify_timing(ability) == TimingTag.TURN_ENDING

    def is_finisher(self, ability: Ability) -> bool:
        return self.classify_timing(ability) == TimingTag.FINISHER

    def is_reload(self, ability: Ability) -> bool:
        return self.classify_timing(ability) == TimingTag.RELOAD

    def is_healing(self, ability: Ability) -> bool:
        if self.classify_timing(ability) == TimingTag.HEAL:
            return True
        return _contains_any(ability, HEAL_KEYWORDS)

    def is_gap_closer(self, ability: Ability) -> bool:
        return self.classify_timing(ability) == TimingTag.GAP_CLOSER

    def is_debuff(self, ability: Ability) -> bool:
        return self.classify_timing(ability) == TimingTag.DEBUFF

    def is_taunt(self, ability: Ability) -> bool:
        return self.classify_timing(ability) == TimingTag.TAUNT

    def is_defensive_stance(self, ability: Ability) -> bool:
        return self.classify_timing(ability) == TimingTag.DEFENSIVE_STANCE

    def is_heroic_act(self, ability: Ability) -> bool:
        return self.classify_timing(ability) == TimingTag.HEROIC_ACT

    def is_momentum_generating(self, ability: Ability) -> bool:
        return self.classify_timing(ability) == TimingTag.MOMENTUM_GENERATING

    def is_proactive_buff(self, ability: Ability) -> bool:
        return self.classify_timing(ability) in PROACTIVE_BUFF_TAGS

    def is_righteous_fury(self, ability: Ability) -> bool:
        return self.has_flag(ability, AbilityFlag.RIGHTEOUS_FURY)

    def is_desperate_measure(self, ability: Ability) -> bool:
        return self.has_flag(ability, AbilityFlag.DESPERATE_MEASURE)

    # -- cost and shape traits --------------------------------------------

    def is_hp_cost(self, ability: Ability) -> bool:
        rule = self.get_rule(ability)
        return rule is not None and (rule.has_flag(AbilityFlag.HP_COST) or rule.hp_threshold > 0)

    def get_hp_threshold(self, ability: Ability, default: float) -> float:
        rule = self.get_rule(ability)
        if rule is None or rule.hp_threshold <= 0:
            return default
        return rule.hp_threshold

    def get_target_hp_threshold(self, ability: Ability, default: float) -> float:
        rule = self.get_rule(ability)
        if rule is None or rule.target_hp_threshold <= 0:
            return default
        return rule.target_hp_threshold

    def is_grenade(self, ability: Ability) -> bool:
        if ability.attack_type == WeaponAttackType.GRENADE:
            return True
        return _contains_any(ability, GRENADE_KEYWORDS)

    def is_aoe(self, ability: Ability) -> bool:
        """Area abilities. Single-target weapon fire and bursts are not."""
        if ability.attack_type in (
            WeaponAttackType.MELEE,
            WeaponAttackType.SINGLE_SHOT,
            WeaponAttackType.BURST,
        ):
            return False
        if ability.attack_type == WeaponAttackType.SCATTER:
            return True
        if ability.aoe_shape != AoEShape.NONE or ability.can_target_point:
            return True
        if self.has_flag(ability, AbilityFlag.DANGEROUS_AOE) or self.is_grenade(ability):
            return True
        return _contains_any(ability, AOE_KEYWORDS)

    def is_offensive(self, ability: Ability) -> bool:
        """
        Eligible for generic offensive use: enemy-targetable and not tagged
        with a non-attack timing. Unknown abilities qualify.
        """
        if not ability.can_target_enemies:
            return False
        if self.is_non_attack_timing(ability):
            return False
        return not self.is_healing(ability)


class IdentifierClassifier(AbilityClassifier):
    """Lookup by stable blueprint identifier."""

    def __init__(self, table: Dict[str, AbilityRule]):
        self.table = {normalize_identifier(k): v for k, v in table.items()}

    def lookup(self, ability: Ability) -> Optional[AbilityRule]:
        if not ability.ability_id:
            return None
        return self.table.get(normalize_identifier(ability.ability_id))


class KeywordClassifier(AbilityClassifier):
    """Case-insensitive keyword lookup over display and blueprint names."""

    def __init__(self, table: Dict[str, AbilityRule]):
        self.table = {normalize_name(k): v for k, v in table.items()}
        self._by_length = sorted(self.table, key=len, reverse=True)

    def lookup(self, ability: Ability) -> Optional[AbilityRule]:
        names = _names(ability)
        for name in names:
            if name in self.table:
                return self.table[name]
        for name in names:
            for key in self._by_length:
                if key in name:
                    return self.table[key]
        return None


class StructuralClassifier(AbilityClassifier):
    """Last-resort guesses from targeting flags for unregistered abilities."""

    def lookup(self, ability: Ability) -> Optional[AbilityRule]:
        if ability.has_weapon_binding:
            return None

        flags = []
        hp = 0.0
        if _contains_any(ability, HP_COST_KEYWORDS):
            flags.append(AbilityFlag.HP_COST)
            hp = 50.0

        if ability.can_target_enemies and ability.can_target_allies:
            return _rule(TimingTag.OFFENSIVE, hp=hp, flags=flags + [AbilityFlag.DANGEROUS_AOE])

        if ability.can_target_enemies and _contains_any(ability, FINISHER_KEYWORDS):
            return _rule(TimingTag.FINISHER, hp=hp, target_hp=30, flags=flags)

        if ability.is_self_only:
            if _contains_any(ability, HEAL_KEYWORDS):
                return _rule(TimingTag.HEAL)
            if _contains_any(ability, ("veil",)):
                return _rule(TimingTag.TURN_ENDING, hp=hp, flags=flags)
            if _contains_any(ability, STANCE_KEYWORDS):
                return _rule(TimingTag.DEFENSIVE_STANCE, hp=hp, flags=flags)
            return _rule(TimingTag.PRE_ATTACK_BUFF, hp=hp, flags=flags)

        if flags:
            return _rule(TimingTag.OFFENSIVE, hp=hp, flags=flags)
        return None


class CompositeClassifier(AbilityClassifier):
    """Tries each classifier in priority order; first rule wins."""

    def __init__(self, classifiers: Sequence[AbilityClassifier]):
        self.classifiers = list(classifiers)

    def lookup(self, ability: Ability) -> Optional[AbilityRule]:
        for classifier in self.classifiers:
            rule = classifier.lookup(ability)
            if rule is not None:
                return rule
        return None


@lru_cache()
def get_default_classifier() -> CompositeClassifier:
    """Identifier table, then keywords, then structural guesses."""
    return CompositeClassifier([
        IdentifierClassifier(KNOWN_ABILITIES),
        KeywordClassifier(KEYWORD_RULES),
        StructuralClassifier(),
    ])
