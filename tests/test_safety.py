"""Tests for the ability safety gates."""
import pytest

from party_ai.core.ai import RiskLevel, SafetyEvaluator, WeaponAttackType


@pytest.fixture
def scatter(make_ability):
    return make_ability(
        "shotgun", "Shotgun", can_target_enemies=True, attack_type=WeaponAttackType.SCATTER,
    )


@pytest.fixture
def grenade(make_ability):
    return make_ability(
        "frag", "Frag Grenade", can_target_enemies=True, can_target_point=True,
        attack_type=WeaponAttackType.GRENADE,
    )


class TestHpCostGate:
    """Tests for the HP-cost gate."""

    def test_blocks_below_threshold(self, make_unit, make_ability, make_host, make_context, classifier, tuning):
        """Blood Oath needs 60% HP."""
        hero = make_unit("hero", hp=50)
        host = make_host([hero])
        oath = make_ability("oath", "Blood Oath", can_target_self=True)
        ctx = make_context(host, hero, abilities=[oath])

        safety = SafetyEvaluator(host, classifier, tuning)
        assert safety.is_hp_cost_safe(ctx, oath) is False

    def test_allows_above_threshold(self, make_unit, make_ability, make_host, make_context, classifier, tuning):
        hero = make_unit("hero", hp=70)
        host = make_host([hero])
        oath = make_ability("oath", "Blood Oath", can_target_self=True)
        ctx = make_context(host, hero, abilities=[oath])

        assert SafetyEvaluator(host, classifier, tuning).is_hp_cost_safe(ctx, oath) is True

    def test_ignores_free_abilities(self, hero, slash, make_host, make_context, classifier, tuning):
        """Abilities without an HP cost always pass."""
        host = make_host([hero])
        ctx = make_context(host, hero, abilities=[slash])
        assert SafetyEvaluator(host, classifier, tuning).is_hp_cost_safe(ctx, slash)


class TestRiskGate:
    """Tests for the risk-level gate."""

    @pytest.mark.parametrize("level,expected", [
        (RiskLevel.SAFE, True),
        (RiskLevel.CAUTION, True),
        (RiskLevel.DANGEROUS, False),
        (RiskLevel.BLOCKED, False),
    ])
    def test_risk_levels(self, hero, slash, make_host, make_context, classifier, tuning, level, expected):
        """Only Safe and Caution are usable."""
        host = make_host([hero], risk_levels={"slash": level})
        ctx = make_context(host, hero, abilities=[slash])
        safety = SafetyEvaluator(host, classifier, tuning)

        assert safety.is_risk_acceptable(ctx, slash) is expected
        assert safety.passes(ctx, slash) is expected

    def test_risk_read_every_call(self, hero, slash, make_host, make_context, classifier, tuning):
        """Risk is live state and must not be cached."""
        host = make_host([hero])
        ctx = make_context(host, hero, abilities=[slash])
        safety = SafetyEvaluator(host, classifier, tuning)

        assert safety.is_risk_acceptable(ctx, slash)
        host.risk_levels["slash"] = RiskLevel.BLOCKED
        assert not safety.is_risk_acceptable(ctx, slash)


class TestAoESafety:
    """Tests for friendly-fire exposure."""

    def test_blocked_by_ally_near_target(self, hero, make_unit, scatter, make_host, make_context, classifier, tuning):
        """An ally standing next to the target blocks the AoE."""
        enemy = make_unit("orc", position=(15.0, 0.0), faction="enemy")
        ally = make_unit("ally", position=(16.0, 0.0))
        host = make_host([hero, ally, enemy])
        ctx = make_context(host, hero, allies=[ally], enemies=[enemy], abilities=[scatter])

        assert not SafetyEvaluator(host, classifier, tuning).is_aoe_safe(ctx, scatter, enemy)

    def test_safe_when_party_far(self, hero, make_unit, scatter, make_host, make_context, classifier, tuning):
        enemy = make_unit("orc", position=(15.0, 0.0), faction="enemy")
        ally = make_unit("ally", position=(30.0, 0.0))
        host = make_host([hero, ally, enemy])
        ctx = make_context(host, hero, allies=[ally], enemies=[enemy], abilities=[scatter])

        assert SafetyEvaluator(host, classifier, tuning).is_aoe_safe(ctx, scatter, enemy)

    def test_caster_counts_as_exposed(self, hero, goblin, scatter, make_host, make_context, classifier, tuning):
        """The caster itself is caught when the target is close."""
        host = make_host([hero, goblin])
        ctx = make_context(host, hero, enemies=[goblin], abilities=[scatter])
        safety = SafetyEvaluator(host, classifier, tuning)

        assert safety.count_allies_near(ctx, goblin, tuning.aoe_safety_radius) == 1
        assert not safety.is_aoe_safe(ctx, scatter, goblin)

    def test_single_target_not_checked(self, hero, goblin, slash, make_unit, make_host, make_context, classifier, tuning):
        """Single-target attacks ignore friendly exposure."""
        ally = make_unit("ally", position=(1.0, 1.0))
        host = make_host([hero, ally, goblin])
        ctx = make_context(host, hero, allies=[ally], enemies=[goblin], abilities=[slash])

        assert SafetyEvaluator(host, classifier, tuning).is_aoe_safe(ctx, slash, goblin)


class TestGrenadeEfficiency:
    """Tests for the grenade cluster requirement."""

    def test_lone_target_rejected(self, hero, make_unit, grenade, make_host, make_context, classifier, tuning):
        enemy = make_unit("orc", position=(15.0, 0.0), faction="enemy")
        host = make_host([hero, enemy])
        ctx = make_context(host, hero, enemies=[enemy], abilities=[grenade])

        assert not SafetyEvaluator(host, classifier, tuning).is_grenade_efficient(ctx, grenade, enemy)

    def test_cluster_accepted(self, hero, make_unit, grenade, make_host, make_context, classifier, tuning):
        """Two enemies within the blast radius justify a grenade."""
        orc = make_unit("orc", position=(15.0, 0.0), faction="enemy")
        troll = make_unit("troll", position=(17.0, 0.0), faction="enemy")
        host = make_host([hero, orc, troll])
        ctx = make_context(host, hero, enemies=[orc, troll], abilities=[grenade])
        safety = SafetyEvaluator(host, classifier, tuning)

        assert safety.count_enemies_near(ctx, orc, tuning.grenade_radius) == 2
        assert safety.is_grenade_efficient(ctx, grenade, orc)
