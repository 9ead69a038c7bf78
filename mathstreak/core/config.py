import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False
    LOG_LEVEL: str = "INFO"

    # Balancing profile ("production" | "dev"). Also namespaces storage keys.
    PROFILE: str = "production"

    # Persistence
    STORAGE_BACKEND: str = "memory"  # memory | sql
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Randomness (None = seeded from the OS)
    RNG_SEED: Optional[int] = None

    # App URLs
    BACKEND_URL: str = "http://localhost:8000"
    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_prefix="MATHSTREAK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


KNOWN_PROFILES = ("production", "dev")
KNOWN_BACKENDS = ("memory", "sql")


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate configuration consistency.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("mathstreak")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    if cfg.PROFILE not in KNOWN_PROFILES:
        problems.append(f"Unknown PROFILE '{cfg.PROFILE}' (expected one of {', '.join(KNOWN_PROFILES)})")
    if cfg.STORAGE_BACKEND not in KNOWN_BACKENDS:
        problems.append(f"Unknown STORAGE_BACKEND '{cfg.STORAGE_BACKEND}'")
    if cfg.STORAGE_BACKEND == "sql" and not cfg.DATABASE_URL:
        problems.append("STORAGE_BACKEND=sql without DATABASE_URL, falling back to local SQLite file")

    if problems:
        message = "; ".join(problems)
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
