"""Runtime settings loaded from the environment."""

import os
from pathlib import Path
from typing import Callable, Optional, TypeVar

from pydantic import BaseModel, Field

from .utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

STATE_DIR = Path.home() / ".stackpilot"


def default_database_url() -> str:
    """SQLite file under the state directory. Its parent is created on connect."""
    return f"sqlite:///{STATE_DIR / 'deployments.db'}"


def _env_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value}")


def _positive_int(value: str) -> int:
    parsed = int(value)
    if parsed <= 0:
        raise ValueError(f"must be positive: {value}")
    return parsed


def _positive_float(value: str) -> float:
    parsed = float(value)
    if parsed <= 0:
        raise ValueError(f"must be positive: {value}")
    return parsed


def _read_env(name: str, parser: Callable[[str], T], default: T) -> T:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return parser(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default!r}")
        return default


class Settings(BaseModel):
    """Deployment engine settings."""

    database_url: str = Field(default_factory=default_database_url)
    registry_url: str = "https://artifacthub.io"
    registry_timeout: float = 30.0
    max_candidates: int = 3
    step_timeout: int = 600
    helm_version: str = "v3.15.0"
    helm_bin_dir: Path = STATE_DIR / "bin"
    release_namespace: str = "default"
    fetch_defaults: bool = True
    probe_workers: int = 8

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``STACKPILOT_*`` environment variables."""
        defaults = cls()
        return cls(
            database_url=_read_env("STACKPILOT_DATABASE_URL", str, defaults.database_url),
            registry_url=_read_env("STACKPILOT_REGISTRY_URL", str, defaults.registry_url),
            registry_timeout=_read_env(
                "STACKPILOT_REGISTRY_TIMEOUT", _positive_float, defaults.registry_timeout
            ),
            max_candidates=_read_env(
                "STACKPILOT_MAX_CANDIDATES", _positive_int, defaults.max_candidates
            ),
            step_timeout=_read_env("STACKPILOT_STEP_TIMEOUT", _positive_int, defaults.step_timeout),
            helm_version=_read_env("STACKPILOT_HELM_VERSION", str, defaults.helm_version),
            helm_bin_dir=_read_env("STACKPILOT_HELM_BIN_DIR", Path, defaults.helm_bin_dir),
            release_namespace=_read_env(
                "STACKPILOT_RELEASE_NAMESPACE", str, defaults.release_namespace
            ),
            fetch_defaults=_read_env("STACKPILOT_FETCH_DEFAULTS", _env_bool, defaults.fetch_defaults),
            probe_workers=_read_env("STACKPILOT_PROBE_WORKERS", _positive_int, defaults.probe_workers),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
