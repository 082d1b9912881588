"""Application configuration using environment variables."""
import os
from functools import lru_cache
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Server
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8000"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # CORS - Frontend URL
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # Decision engine tuning
    AI_RECENCY_WINDOW: int = int(os.getenv("AI_RECENCY_WINDOW", "1"))  # turns
    AI_EMERGENCY_HEAL_FACTOR: float = float(os.getenv("AI_EMERGENCY_HEAL_FACTOR", "0.6"))
    AI_HP_COST_THRESHOLD: float = float(os.getenv("AI_HP_COST_THRESHOLD", "40"))
    AI_FINISHER_THRESHOLD: float = float(os.getenv("AI_FINISHER_THRESHOLD", "30"))
    AI_AOE_SAFETY_RADIUS: float = float(os.getenv("AI_AOE_SAFETY_RADIUS", "10"))
    AI_GRENADE_RADIUS: float = float(os.getenv("AI_GRENADE_RADIUS", "3"))
    AI_GRENADE_MIN_ENEMIES: int = int(os.getenv("AI_GRENADE_MIN_ENEMIES", "2"))
    AI_CHAIN_RADIUS: float = float(os.getenv("AI_CHAIN_RADIUS", "7"))
    AI_CHAIN_MAX_TARGETS: int = int(os.getenv("AI_CHAIN_MAX_TARGETS", "5"))
    AI_HEROIC_MOMENTUM: int = int(os.getenv("AI_HEROIC_MOMENTUM", "175"))
    AI_DESPERATE_MOMENTUM: int = int(os.getenv("AI_DESPERATE_MOMENTUM", "50"))
    AI_RELOAD_AMMO_PERCENT: float = float(os.getenv("AI_RELOAD_AMMO_PERCENT", "25"))
    AI_ATTACK_WITH_APPROACH: bool = os.getenv("AI_ATTACK_WITH_APPROACH", "false").lower() == "true"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
