import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Verification
    GPS_DEFAULT_RADIUS_METERS: float = 100.0
    QUIZ_DEFAULT_PASSING_SCORE: float = 0.8

    # Leaderboard
    LEADERBOARD_DEFAULT_LIMIT: int = 20

    # Scheduling
    ROTATION_INTERVAL_MINUTES: int = 60
    STREAK_REMINDER_HOUR_UTC: int = 19

    # Repeat policy for on_demand tasks (0 = freely repeatable)
    ON_DEMAND_COOLDOWN_MINUTES: int = 0

    # Notifications
    NOTIFICATIONS_ENABLED: bool = True

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("ecoquest")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    missing = [key for key in ("DATABASE_URL",) if not getattr(cfg, key, None)]
    if missing:
        problems.append(f"Missing required configuration: {', '.join(missing)}")
    if cfg.GPS_DEFAULT_RADIUS_METERS <= 0:
        problems.append("GPS_DEFAULT_RADIUS_METERS must be positive")
    if not 0 < cfg.QUIZ_DEFAULT_PASSING_SCORE <= 1:
        problems.append("QUIZ_DEFAULT_PASSING_SCORE must be within (0, 1]")

    for message in problems:
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)
    return not problems
