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

    # Auth (bearer tokens issued by the identity provider)
    AUTH_JWT_SECRET: Optional[str] = None
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: Optional[str] = None

    # Daily accept quotas per tier and lane (0 or negative = unlimited)
    FREE_ROMANTIC_DAILY_LIKES: int = 7
    FREE_FRIENDSHIP_DAILY_LIKES: int = 15
    PLUS_ROMANTIC_DAILY_LIKES: int = 20
    PLUS_FRIENDSHIP_DAILY_LIKES: int = 40

    # Cross-lane pending connections
    CROSS_LANE_TTL_HOURS: int = 72
    CROSS_LANE_CHOOSER_LANE: str = "friendship"  # lane whose acceptor picks the outcome
    CROSS_LANE_DEFAULT_LANE: str = "friendship"  # lane applied by the expiry sweep
    AUTO_RESOLVE_BATCH_LIMIT: int = 200

    # Boosts
    BOOST_DURATION_MINUTES: int = 60

    # Feed
    PASS_COOLDOWN_HOURS: int = 24
    FEED_DEFAULT_PAGE_SIZE: int = 20
    FEED_MAX_PAGE_SIZE: int = 50

    # Plus subscription allowances
    PLUS_WEEKLY_BOOSTS: int = 2
    PLUS_WEEKLY_COMPLIMENTS: int = 5
    PLUS_MONTHLY_RESET_DISLIKES: int = 1

    # CORS
    ALLOWED_ORIGINS: str = "http://localhost:8081"  # comma-separated

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
    log = logger or logging.getLogger("pawmatch")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "AUTH_JWT_SECRET",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    lanes = {"friendship", "romantic"}
    for key in ("CROSS_LANE_CHOOSER_LANE", "CROSS_LANE_DEFAULT_LANE"):
        value = getattr(cfg, key, None)
        if value not in lanes:
            message = f"{key} must be one of {sorted(lanes)}, got {value!r}"
            if strict_mode:
                raise RuntimeError(message)
            log.warning(message)

    return True
