"""qakit configuration.

Centralized defaults for the resource guard, health scorer and evidence
collector. Values can be overridden through environment variables or a
``.env`` file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from qakit.utils import get_logger

logger = get_logger("config")

# =============================================================================
# RUNTIME LIMITS
# =============================================================================

# Maximum wall-clock runtime per suite type (seconds)
SUITE_MAX_RUNTIME_S = {
    "smoke": 10 * 60,
    "full": 30 * 60,
}

DEFAULT_SUITE = "smoke"
MAX_MEMORY_MB = 512
MAX_RETRIES = 3
MAX_HEALING_ATTEMPTS = 2

# Per-operation timeouts (ms)
TEST_TIMEOUT_MS = 60_000
PAGE_TIMEOUT_MS = 30_000
CAPTURE_TIMEOUT_MS = 5_000

# Minimum available host memory for validate_environment (deliberately low for CI)
MIN_AVAILABLE_MEMORY_MB = 32

# =============================================================================
# CIRCUIT BREAKER & MONITOR
# =============================================================================

BREAKER_THRESHOLD = 5
BREAKER_COOLDOWN_S = 60.0
MONITOR_INTERVAL_S = 5.0
MAX_MEMORY_WARNINGS = 3

# =============================================================================
# PAGE HEALTH
# =============================================================================

RECENCY_WINDOW_S = 5.0
SLOW_FCP_MS = 3000

# =============================================================================
# PATHS
# =============================================================================

DEFAULT_EVIDENCE_DIR = Path("artifacts") / "evidence"


# =============================================================================
# CONFIGURATION CLASS
# =============================================================================

def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("invalid_env_value", variable=name, value=raw, default=default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class QAKitConfig:
    """Runtime configuration for a qakit session."""

    suite: str = DEFAULT_SUITE
    max_memory_mb: int = MAX_MEMORY_MB
    max_retries: int = MAX_RETRIES
    max_healing_attempts: int = MAX_HEALING_ATTEMPTS

    evidence_dir: Path = DEFAULT_EVIDENCE_DIR
    base_url: str | None = None
    headless: bool = True
    log_level: int = logging.INFO

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "QAKitConfig":
        """Load config from ``.env`` and the process environment."""
        load_dotenv(dotenv_path)

        suite = os.environ.get("QAKIT_SUITE", DEFAULT_SUITE)
        if suite not in SUITE_MAX_RUNTIME_S:
            logger.warning("unknown_suite", suite=suite, default=DEFAULT_SUITE)
            suite = DEFAULT_SUITE

        level_name = os.environ.get("QAKIT_LOG_LEVEL", "INFO").upper()
        log_level = logging.getLevelName(level_name)
        if not isinstance(log_level, int):
            log_level = logging.INFO

        return cls(
            suite=suite,
            max_memory_mb=_env_int("QAKIT_MAX_MEMORY_MB", MAX_MEMORY_MB),
            max_retries=_env_int("QAKIT_MAX_RETRIES", MAX_RETRIES),
            max_healing_attempts=_env_int("QAKIT_MAX_HEALING_ATTEMPTS", MAX_HEALING_ATTEMPTS),
            evidence_dir=Path(os.environ.get("QAKIT_EVIDENCE_DIR", str(DEFAULT_EVIDENCE_DIR))),
            base_url=os.environ.get("APP_BASE_URL") or None,
            headless=_env_bool("QAKIT_HEADLESS", True),
            log_level=log_level,
        )

    def resource_limits(self) -> "ResourceLimits":
        """Build the immutable limits for the resource guard."""
        from qakit.models.resources import ResourceLimits
        return ResourceLimits.for_suite(
            self.suite,
            max_memory_mb=self.max_memory_mb,
            max_retries=self.max_retries,
            max_healing_attempts=self.max_healing_attempts,
        )


def get_config() -> QAKitConfig:
    """Get the current configuration."""
    return QAKitConfig.from_env()
