"""Tests for AP, ammunition and momentum helpers."""
from unittest.mock import MagicMock

from party_ai.core.ai import WeaponSet, can_afford_with_reserve, should_top_up, weapon_sets_needing_reload
from party_ai.core.ai.resources import momentum_status
from party_ai.core.behavior_config import EngineTuning


class TestApReservation:
    """Tests for can_afford_with_reserve."""

    def test_uses_snapshot_reserve(self, hero, goblin, slash, make_ability, make_host, make_context):
        """The default reserve is the cheapest attack's cost."""
        host = make_host([hero, goblin])
        buff = make_ability("focus", "Focus", can_target_self=True, ap_cost=2)
        ctx = make_context(host, hero, enemies=[goblin], abilities=[slash, buff], current_ap=3)

        assert ctx.reserved_ap_for_attack == 1
        assert can_afford_with_reserve(ctx, buff) is True

    def test_rejects_when_reserve_broken(self, hero, goblin, slash, make_ability, make_host, make_context):
        host = make_host([hero, goblin])
        buff = make_ability("focus", "Focus", can_target_self=True, ap_cost=3)
        ctx = make_context(host, hero, enemies=[goblin], abilities=[slash, buff], current_ap=3)

        assert can_afford_with_reserve(ctx, buff) is False

    def test_explicit_reserve(self, hero, make_ability, make_host, make_context):
        host = make_host([hero])
        buff = make_ability("focus", "Focus", can_target_self=True, ap_cost=1)
        ctx = make_context(host, hero, abilities=[buff], current_ap=2)

        assert can_afford_with_reserve(ctx, buff, reserve=1)
        assert not can_afford_with_reserve(ctx, buff, reserve=2)

    def test_host_cost_wins(self, hero, make_ability, make_host, make_context):
        """The host's live AP cost overrides the declared one."""
        host = make_host([hero])
        buff = make_ability("focus", "Focus", can_target_self=True, ap_cost=1)
        ctx = make_context(host, hero, abilities=[buff], current_ap=2)
        live = MagicMock()
        live.get_ap_cost.return_value = 2

        assert not can_afford_with_reserve(ctx, buff, reserve=1, host=live)
        live.get_ap_cost.assert_called_once_with(buff)


class TestAmmunition:
    """Tests for reload detection across weapon sets."""

    def test_inactive_empty_set_detected(self, hero, make_host):
        """An empty ranged set counts even when a melee set is active."""
        host = make_host([hero], weapon_sets={"hero": [
            WeaponSet(0),
            WeaponSet(1, is_ranged=True, current_ammo=0, max_ammo=6),
        ]})

        assert [ws.index for ws in weapon_sets_needing_reload(host, hero)] == [1]

    def test_loaded_sets(self, hero, make_host):
        host = make_host([hero], weapon_sets={"hero": [
            WeaponSet(0, is_ranged=True, current_ammo=3, max_ammo=6),
        ]})
        assert weapon_sets_needing_reload(host, hero) == []

    def test_no_weapon_sets(self, hero, make_host):
        assert weapon_sets_needing_reload(make_host([hero]), hero) == []

    def test_top_up(self):
        """Low magazines are topped up, melee sets never."""
        tuning = EngineTuning()
        assert should_top_up(WeaponSet(1, is_ranged=True, current_ammo=1, max_ammo=6), tuning)
        assert not should_top_up(WeaponSet(1, is_ranged=True, current_ammo=5, max_ammo=6), tuning)
        assert not should_top_up(WeaponSet(0), tuning)


class TestMomentumStatus:
    """Tests for momentum_status."""

    def test_status_bands(self):
        tuning = EngineTuning()
        host = MagicMock()

        host.get_momentum.return_value = 180
        assert momentum_status(host, tuning) == "Momentum=180 (HEROIC)"

        host.get_momentum.return_value = 40
        assert momentum_status(host, tuning) == "Momentum=40 (DESPERATE)"

        host.get_momentum.return_value = 100
        assert momentum_status(host, tuning) == "Momentum=100 (NORMAL)"
