"""
Behavior Configuration System.

Per-unit behavior settings (role, range preference, heal threshold, safe
distance) plus the engine tuning numbers the decision phases read.

Settings are kept in a process-wide registry keyed by unit id so the host
can configure a party once and look the settings up every decision.
"""
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Any, Optional
import json
from pathlib import Path

from party_ai.config import Settings, get_settings
from party_ai.core.errors import SettingsError


class AIRole(str, Enum):
    """Combat roles that select a decision policy."""
    BALANCED = "balanced"
    TANK = "tank"
    DPS = "dps"
    SUPPORT = "support"
    SNIPER = "sniper"
    HYBRID = "hybrid"


class RangePreference(str, Enum):
    """Per-unit bias toward melee or ranged weapon choice."""
    ADAPTIVE = "adaptive"
    PREFER_MELEE = "prefer_melee"
    PREFER_RANGED = "prefer_ranged"
    MAINTAIN_RANGE = "maintain_range"

    @property
    def favors_ranged(self) -> bool:
        return self in (RangePreference.PREFER_RANGED, RangePreference.MAINTAIN_RANGE)


@dataclass(frozen=True)
class BehaviorSettings:
    """
    Configured behavior for a single unit.

    heal_threshold is a HP percent; emergency self-heal fires below
    heal_threshold * emergency factor. min_safe_distance is in the host's
    distance units.
    """
    role: AIRole = AIRole.BALANCED
    range_preference: RangePreference = RangePreference.ADAPTIVE
    heal_threshold: float = 50.0
    min_safe_distance: float = 5.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for serialization."""
        return {
            "role": self.role.value,
            "range_preference": self.range_preference.value,
            "heal_threshold": self.heal_threshold,
            "min_safe_distance": self.min_safe_distance,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BehaviorSettings":
        """Create settings from dictionary, defaulting missing values."""
        try:
            return cls(
                role=AIRole(data.get("role", AIRole.BALANCED.value)),
                range_preference=RangePreference(
                    data.get("range_preference", RangePreference.ADAPTIVE.value)
                ),
                heal_threshold=float(data.get("heal_threshold", 50.0)),
                min_safe_distance=float(data.get("min_safe_distance", 5.0)),
            )
        except (ValueError, TypeError) as e:
            raise SettingsError(f"Invalid behavior settings: {e}", details={"data": data})

    def save_to_file(self, filepath: Path) -> None:
        """Save settings to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_from_file(cls, filepath: Path) -> "BehaviorSettings":
        """Load settings from JSON file."""
        try:
            with open(filepath, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SettingsError(f"Settings file is not valid JSON: {e}", details={"path": str(filepath)})
        return cls.from_dict(data)


@dataclass(frozen=True)
class EngineTuning:
    """Thresholds and radii used by the decision phases."""
    recency_window: int = 1
    emergency_heal_factor: float = 0.6
    hp_cost_threshold: float = 40.0
    finisher_threshold: float = 30.0
    aoe_safety_radius: float = 10.0
    grenade_radius: float = 3.0
    grenade_min_enemies: int = 2
    chain_radius: float = 7.0
    chain_max_targets: int = 5
    heroic_momentum: int = 175
    desperate_momentum: int = 50
    reload_ammo_percent: float = 25.0
    attack_with_approach: bool = False

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "EngineTuning":
        """Build tuning from environment settings."""
        settings = settings or get_settings()
        return cls(
            recency_window=settings.AI_RECENCY_WINDOW,
            emergency_heal_factor=settings.AI_EMERGENCY_HEAL_FACTOR,
            hp_cost_threshold=settings.AI_HP_COST_THRESHOLD,
            finisher_threshold=settings.AI_FINISHER_THRESHOLD,
            aoe_safety_radius=settings.AI_AOE_SAFETY_RADIUS,
            grenade_radius=settings.AI_GRENADE_RADIUS,
            grenade_min_enemies=settings.AI_GRENADE_MIN_ENEMIES,
            chain_radius=settings.AI_CHAIN_RADIUS,
            chain_max_targets=settings.AI_CHAIN_MAX_TARGETS,
            heroic_momentum=settings.AI_HEROIC_MOMENTUM,
            desperate_momentum=settings.AI_DESPERATE_MOMENTUM,
            reload_ammo_percent=settings.AI_RELOAD_AMMO_PERCENT,
            attack_with_approach=settings.AI_ATTACK_WITH_APPROACH,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Preset behavior per role, applied when a unit is assigned a role without
# explicit settings
ROLE_PRESETS: Dict[AIRole, BehaviorSettings] = {
    AIRole.BALANCED: BehaviorSettings(),
    AIRole.TANK: BehaviorSettings(
        role=AIRole.TANK,
        range_preference=RangePreference.PREFER_MELEE,
        heal_threshold=40.0,
        min_safe_distance=0.0,
    ),
    AIRole.DPS: BehaviorSettings(
        role=AIRole.DPS,
        range_preference=RangePreference.ADAPTIVE,
        heal_threshold=45.0,
    ),
    AIRole.SUPPORT: BehaviorSettings(
        role=AIRole.SUPPORT,
        range_preference=RangePreference.PREFER_RANGED,
        heal_threshold=60.0,
        min_safe_distance=6.0,
    ),
    AIRole.SNIPER: BehaviorSettings(
        role=AIRole.SNIPER,
        range_preference=RangePreference.MAINTAIN_RANGE,
        heal_threshold=50.0,
        min_safe_distance=8.0,
    ),
    AIRole.HYBRID: BehaviorSettings(
        role=AIRole.HYBRID,
        range_preference=RangePreference.ADAPTIVE,
        heal_threshold=50.0,
        min_safe_distance=3.0,
    ),
}


# Per-unit settings registry
_unit_settings: Dict[str, BehaviorSettings] = {}


def get_unit_settings(unit_id: str) -> BehaviorSettings:
    """Get the configured settings for a unit, defaulting to Balanced."""
    return _unit_settings.get(unit_id, ROLE_PRESETS[AIRole.BALANCED])


def set_unit_settings(unit_id: str, settings: BehaviorSettings) -> None:
    """Set the settings for a unit."""
    _unit_settings[unit_id] = settings


def reset_unit_settings() -> None:
    """Forget all per-unit settings."""
    _unit_settings.clear()


def apply_role_preset(unit_id: str, role_name: str) -> BehaviorSettings:
    """
    Assign a role preset to a unit.

    Args:
        unit_id: The unit to configure
        role_name: One of the AIRole values ("tank", "sniper", ...)

    Returns:
        The settings now registered for the unit

    Raises:
        SettingsError: If role_name is not a known role
    """
    try:
        role = AIRole(role_name.lower())
    except ValueError:
        raise SettingsError(
            f"Unknown role preset: {role_name}",
            details={"available": [r.value for r in AIRole]},
        )

    settings = ROLE_PRESETS[role]
    set_unit_settings(unit_id, settings)
    return settings
