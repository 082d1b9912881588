"""
Party AI - Test Configuration and Fixtures
Shared test utilities and fixtures for pytest.
"""
import pytest
from typing import Optional, Sequence
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from party_ai.core.ai import (
    Ability,
    DecisionEnv,
    StaticCombatHost,
    UsageTracker,
    Unit,
    WeaponAttackType,
    build_action_context,
    end_encounter,
    get_default_classifier,
)
from party_ai.core.behavior_config import (
    AIRole,
    BehaviorSettings,
    EngineTuning,
    RangePreference,
    reset_unit_settings,
)


# ==================== Unit Fixtures ====================

@pytest.fixture
def make_unit():
    """Factory for units. Party faction unless told otherwise."""
    def _make(
        unit_id: str,
        hp: int = 100,
        max_hp: int = 100,
        position=(0.0, 0.0),
        faction: str = "party",
        name: str = "",
    ) -> Unit:
        return Unit(
            unit_id=unit_id,
            name=name or unit_id.capitalize(),
            current_hp=hp,
            max_hp=max_hp,
            position=position,
            faction=faction,
        )
    return _make


@pytest.fixture
def hero(make_unit) -> Unit:
    """The acting unit, standing at the origin."""
    return make_unit("hero")


@pytest.fixture
def goblin(make_unit) -> Unit:
    """An enemy in melee reach of the hero."""
    return make_unit("goblin", position=(1.0, 0.0), faction="enemy")


# ==================== Ability Fixtures ====================

@pytest.fixture
def make_ability():
    """Factory for abilities cast by the hero."""
    def _make(ability_id: str, name: str = "", caster: str = "hero", **kwargs) -> Ability:
        return Ability(ability_id=ability_id, name=name, caster_id=caster, **kwargs)
    return _make


@pytest.fixture
def slash(make_ability) -> Ability:
    """Melee basic attack with a short reach."""
    return make_ability(
        "slash", "Slash", can_target_enemies=True,
        attack_type=WeaponAttackType.MELEE, range=2.0,
    )


@pytest.fixture
def pistol(make_ability) -> Ability:
    """Ranged basic attack."""
    return make_ability(
        "pistol", "Pistol Shot", can_target_enemies=True,
        attack_type=WeaponAttackType.SINGLE_SHOT, range=12.0,
    )


@pytest.fixture
def medikit(make_ability) -> Ability:
    """Self heal."""
    return make_ability("medikit", "Medikit", can_target_self=True, can_target_allies=True)


# ==================== Engine Fixtures ====================

@pytest.fixture
def tuning() -> EngineTuning:
    """Default engine tuning, independent of the environment."""
    return EngineTuning()


@pytest.fixture
def tracker() -> UsageTracker:
    """A fresh usage tracker per test."""
    return UsageTracker(recency_window=1)


@pytest.fixture
def classifier():
    return get_default_classifier()


@pytest.fixture
def make_host(tuning):
    """Factory for a StaticCombatHost over the given units."""
    def _make(units: Sequence[Unit], **kwargs) -> StaticCombatHost:
        kwargs.setdefault("tuning", tuning)
        return StaticCombatHost(units=units, **kwargs)
    return _make


@pytest.fixture
def settings_for():
    """Factory for behavior settings."""
    def _make(
        role: AIRole = AIRole.BALANCED,
        range_preference: RangePreference = RangePreference.ADAPTIVE,
        heal_threshold: float = 50.0,
        min_safe_distance: float = 5.0,
    ) -> BehaviorSettings:
        return BehaviorSettings(role, range_preference, heal_threshold, min_safe_distance)
    return _make


@pytest.fixture
def make_context():
    """Factory for snapshots; the host must already know every unit."""
    def _make(
        host: StaticCombatHost,
        unit: Unit,
        allies: Sequence[Unit] = (),
        enemies: Sequence[Unit] = (),
        abilities: Sequence[Ability] = (),
        current_ap: float = 3.0,
        settings: Optional[BehaviorSettings] = None,
        **kwargs,
    ):
        return build_action_context(
            host,
            unit,
            allies=allies,
            enemies=enemies,
            abilities=abilities,
            current_ap=current_ap,
            settings=settings or BehaviorSettings(),
            **kwargs,
        )
    return _make


@pytest.fixture
def make_env(tracker, tuning, classifier):
    """Factory for a phase-level decision environment."""
    def _make(host: StaticCombatHost, tuning_override: Optional[EngineTuning] = None, **kwargs) -> DecisionEnv:
        return DecisionEnv(
            host=host,
            classifier=classifier,
            tracker=tracker,
            tuning=tuning_override or tuning,
            **kwargs,
        )
    return _make


# ==================== Cleanup Fixtures ====================

@pytest.fixture(autouse=True)
def reset_shared_state():
    """Clear the settings registry and the shared usage tracker around each test."""
    reset_unit_settings()
    end_encounter()
    yield
    reset_unit_settings()
    end_encounter()


# ==================== Test Categories ====================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP route tests")
