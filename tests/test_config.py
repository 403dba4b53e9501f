"""
Testes da configuracao (variaveis de ambiente e limites).
"""

import logging
from pathlib import Path

import pytest

from qakit.config import QAKitConfig
from qakit.models import ResourceLimits
from qakit.utils import ValidationError, sanitize_test_name, truncate_string

ENV = (
    "QAKIT_SUITE",
    "QAKIT_MAX_MEMORY_MB",
    "QAKIT_MAX_RETRIES",
    "QAKIT_MAX_HEALING_ATTEMPTS",
    "QAKIT_EVIDENCE_DIR",
    "QAKIT_LOG_LEVEL",
    "QAKIT_HEADLESS",
    "APP_BASE_URL",
)


@pytest.fixture
def env(monkeypatch, tmp_path):
    for name in ENV:
        # registra o valor atual para o teardown
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


def load(tmp_path):
    return QAKitConfig.from_env(str(tmp_path / "missing.env"))


def test_defaults(env, tmp_path):
    config = load(tmp_path)

    assert config.suite == "smoke"
    assert config.max_memory_mb == 512
    assert config.headless is True
    assert config.base_url is None
    assert config.evidence_dir == Path("artifacts") / "evidence"
    assert config.resource_limits().max_run_time_s == 600


def test_environment_overrides(env, tmp_path):
    env.setenv("QAKIT_SUITE", "full")
    env.setenv("QAKIT_MAX_MEMORY_MB", "1024")
    env.setenv("QAKIT_MAX_RETRIES", "5")
    env.setenv("QAKIT_EVIDENCE_DIR", str(tmp_path / "ev"))
    env.setenv("QAKIT_LOG_LEVEL", "debug")
    env.setenv("QAKIT_HEADLESS", "false")
    env.setenv("APP_BASE_URL", "http://localhost:3000")

    config = load(tmp_path)
    limits = config.resource_limits()

    assert limits.max_run_time_s == 1800
    assert limits.max_memory_mb == 1024
    assert limits.max_retries == 5
    assert config.evidence_dir == tmp_path / "ev"
    assert config.log_level == logging.DEBUG
    assert config.headless is False
    assert config.base_url == "http://localhost:3000"


def test_dotenv_file(env, tmp_path):
    dotenv = tmp_path / ".env"
    dotenv.write_text("QAKIT_MAX_RETRIES=7\n")

    config = QAKitConfig.from_env(str(dotenv))

    assert config.max_retries == 7


def test_invalid_values_fall_back(env, tmp_path):
    env.setenv("QAKIT_SUITE", "nightly")
    env.setenv("QAKIT_MAX_MEMORY_MB", "lots")

    config = load(tmp_path)

    assert config.suite == "smoke"
    assert config.max_memory_mb == 512


def test_limits_are_validated():
    with pytest.raises(ValidationError):
        ResourceLimits(max_memory_mb=0)
    with pytest.raises(ValidationError):
        ResourceLimits(max_retries=-1)
    assert ResourceLimits(max_healing_attempts=0).max_healing_attempts == 0


def test_sanitize_test_name():
    assert sanitize_test_name("Login: Happy Path #1") == "login--happy-path--1"


def test_truncate_string():
    assert truncate_string("short") == "short"
    assert truncate_string("x" * 20, 10) == "xxxxxxx..."
