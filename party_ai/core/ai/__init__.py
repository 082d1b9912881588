"""
Party Member Decision Engine.

Picks exactly one action per decision step for an AI-controlled party
member by walking a role-specific, ordered pipeline of decision phases.

Modules:
- models: Units, abilities, snapshot and decision value types
- host: Collaborator contracts and the in-memory StaticCombatHost
- classification: Ability timing tags and traits
- safety: HP-cost, risk, friendly-fire and grenade gates
- resources: AP reservation, ammunition and momentum helpers
- usage_tracker: Recency memory and turn-scoped dedup
- targeting: Target scoring and snapshot building
- special_abilities: DoT, chain and debuff combos
- phases: Shared decision phases
- policies: Role policies and get_policy
- turn_planner: Advisory turn plan
- orchestrator: decide_action entry point
"""
from .models import (
    TimingTag,
    WeaponAttackType,
    AoEShape,
    RiskLevel,
    DotType,
    DecisionType,
    Unit,
    Ability,
    WeaponSet,
    TurnPlanHint,
    ActionContext,
    ActionDecision,
)
from .host import CombatHost, StaticCombatHost
from .classification import (
    AbilityFlag,
    AbilityRule,
    AbilityClassifier,
    IdentifierClassifier,
    KeywordClassifier,
    StructuralClassifier,
    CompositeClassifier,
    get_default_classifier,
)
from .safety import SafetyEvaluator
from .resources import can_afford_with_reserve, should_top_up, weapon_sets_needing_reload
from .usage_tracker import (
    UsageTracker,
    TurnDedupStore,
    get_usage_tracker,
    start_encounter,
    end_encounter,
)
from .targeting import TargetPriority, TargetScore, score_targets, build_action_context
from .special_abilities import SpecialAbilityType, get_special_type
from .phases import DecisionEnv
from .policies import DecisionPolicy, get_policy
from .turn_planner import TurnPriority, plan_turn
from .orchestrator import decide_action

__all__ = [
    # Models
    'TimingTag',
    'WeaponAttackType',
    'AoEShape',
    'RiskLevel',
    'DotType',
    'DecisionType',
    'Unit',
    'Ability',
    'WeaponSet',
    'TurnPlanHint',
    'ActionContext',
    'ActionDecision',
    # Host
    'CombatHost',
    'StaticCombatHost',
    # Classification
    'AbilityFlag',
    'AbilityRule',
    'AbilityClassifier',
    'IdentifierClassifier',
    'KeywordClassifier',
    'StructuralClassifier',
    'CompositeClassifier',
    'get_default_classifier',
    # Gates and resources
    'SafetyEvaluator',
    'can_afford_with_reserve',
    'weapon_sets_needing_reload',
    'should_top_up',
    # Usage tracking
    'UsageTracker',
    'TurnDedupStore',
    'get_usage_tracker',
    'start_encounter',
    'end_encounter',
    # Targeting
    'TargetPriority',
    'TargetScore',
    'score_targets',
    'build_action_context',
    # Combos
    'SpecialAbilityType',
    'get_special_type',
    # Pipeline
    'DecisionEnv',
    'DecisionPolicy',
    'get_policy',
    'TurnPriority',
    'plan_turn',
    # Main entry point
    'decide_action',
]
