"""Tests for the decision orchestrator."""
from unittest.mock import MagicMock, patch

import pytest

from party_ai.core.ai import ActionDecision, DecisionType, RiskLevel, WeaponAttackType, decide_action
from party_ai.core.ai.orchestrator import prevent_unsafe_delegation
from party_ai.core.behavior_config import AIRole, RangePreference
from party_ai.core.errors import InvalidSnapshotError


@pytest.fixture
def blood_oath(make_ability):
    """Self buff paid in HP."""
    return make_ability("oath", "Blood Oath", can_target_self=True)


@pytest.fixture
def stub_policy():
    """Policy stand-in that always hands the turn back with a move."""
    policy = MagicMock()
    policy.name = "Stub"
    policy.decide.return_value = ActionDecision.move("Stub move")
    return policy


class TestDecideAction:
    """Tests for decide_action."""

    def test_requires_snapshot(self, hero, make_host):
        with pytest.raises(InvalidSnapshotError):
            decide_action(None, make_host([hero]))

    def test_emergency_heal_end_to_end(self, make_unit, goblin, slash, medikit, make_host, make_context, tracker, tuning):
        hero = make_unit("hero", hp=25)
        host = make_host([hero, goblin])
        ctx = make_context(host, hero, enemies=[goblin], abilities=[slash, medikit])

        decision = decide_action(ctx, host, tracker=tracker, tuning=tuning)

        assert decision.decision_type == DecisionType.USE_ABILITY
        assert decision.ability == medikit
        assert decision.target == hero

    def test_policy_from_role(self, hero, make_host, make_context, settings_for, stub_policy, tracker, tuning):
        host = make_host([hero])
        ctx = make_context(host, hero, settings=settings_for(role=AIRole.TANK))

        with patch("party_ai.core.ai.orchestrator.get_policy", return_value=stub_policy) as get_policy:
            decision = decide_action(ctx, host, tracker=tracker, tuning=tuning)

        get_policy.assert_called_once_with(AIRole.TANK)
        assert decision.reason == "Stub move"

    def test_low_hp_move_replaced(
        self, make_unit, goblin, slash, blood_oath, make_host, make_context, stub_policy, tracker, tuning,
    ):
        """A low-HP unit holding Blood Oath never gets a bare move back."""
        hero = make_unit("hero", hp=30)
        host = make_host([hero, goblin])
        ctx = make_context(host, hero, enemies=[goblin], abilities=[blood_oath, slash])

        with patch("party_ai.core.ai.orchestrator.get_policy", return_value=stub_policy):
            decision = decide_action(ctx, host, tracker=tracker, tuning=tuning)

        assert decision.ability == slash
        assert decision.target == goblin
        assert decision.reason == "Safe attack on Goblin (HP too low for HP cost abilities)"

    def test_healthy_unit_untouched(
        self, make_unit, goblin, slash, blood_oath, make_host, make_context, stub_policy, tracker, tuning,
    ):
        hero = make_unit("hero", hp=80)
        host = make_host([hero, goblin])
        ctx = make_context(host, hero, enemies=[goblin], abilities=[blood_oath, slash])

        with patch("party_ai.core.ai.orchestrator.get_policy", return_value=stub_policy):
            decision = decide_action(ctx, host, tracker=tracker, tuning=tuning)

        assert decision.decision_type == DecisionType.MOVE


class TestPreventUnsafeDelegation:
    """Tests for the low-HP guard."""

    def test_no_hp_cost_abilities(self, make_unit, goblin, slash, make_host, make_context, classifier, tuning):
        hero = make_unit("hero", hp=30)
        host = make_host([hero, goblin])
        ctx = make_context(host, hero, enemies=[goblin], abilities=[slash])

        assert prevent_unsafe_delegation(ctx, host, classifier, tuning) is None

    def test_risky_attack_not_used(self, make_unit, goblin, slash, blood_oath, make_host, make_context, classifier, tuning):
        hero = make_unit("hero", hp=30)
        host = make_host([hero, goblin], risk_levels={"slash": RiskLevel.DANGEROUS})
        ctx = make_context(host, hero, enemies=[goblin], abilities=[blood_oath, slash])

        assert prevent_unsafe_delegation(ctx, host, classifier, tuning) is None

    def test_caution_is_acceptable(self, make_unit, goblin, slash, blood_oath, make_host, make_context, classifier, tuning):
        hero = make_unit("hero", hp=30)
        host = make_host([hero, goblin], risk_levels={"slash": RiskLevel.CAUTION})
        ctx = make_context(host, hero, enemies=[goblin], abilities=[blood_oath, slash])

        assert prevent_unsafe_delegation(ctx, host, classifier, tuning).ability == slash

    def test_no_enemy_in_reach(self, make_unit, slash, blood_oath, make_host, make_context, classifier, tuning):
        hero = make_unit("hero", hp=30)
        orc = make_unit("orc", position=(8.0, 0.0), faction="enemy")
        host = make_host([hero, orc])
        ctx = make_context(host, hero, enemies=[orc], abilities=[blood_oath, slash])

        assert prevent_unsafe_delegation(ctx, host, classifier, tuning) is None

    def test_ranged_unit_not_sent_into_melee(
        self, make_unit, goblin, slash, pistol, blood_oath, make_host, make_context, settings_for, classifier, tuning,
    ):
        hero = make_unit("hero", hp=30)
        host = make_host([hero, goblin])
        ranged = settings_for(range_preference=RangePreference.PREFER_RANGED)

        melee_only = make_context(host, hero, enemies=[goblin], abilities=[blood_oath, slash], settings=ranged)
        assert prevent_unsafe_delegation(melee_only, host, classifier, tuning) is None

        both = make_context(host, hero, enemies=[goblin], abilities=[blood_oath, slash, pistol], settings=ranged)
        assert prevent_unsafe_delegation(both, host, classifier, tuning).ability == pistol

    def test_area_attack_near_ally_not_used(
        self, make_unit, make_ability, blood_oath, make_host, make_context, classifier, tuning,
    ):
        hero = make_unit("hero", hp=30)
        orc = make_unit("orc", position=(15.0, 0.0), faction="enemy")
        ally = make_unit("ally", position=(14.0, 0.0))
        shotgun = make_ability(
            "shotgun", "Shotgun", can_target_enemies=True, attack_type=WeaponAttackType.SCATTER,
        )
        host = make_host([hero, ally, orc])
        ctx = make_context(host, hero, allies=[ally], enemies=[orc], abilities=[blood_oath, shotgun])

        assert prevent_unsafe_delegation(ctx, host, classifier, tuning) is None
