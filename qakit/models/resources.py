"""
Modelos de dados do Resource Guard.

Contem os limites (imutaveis), os contadores de uso da sessao e o
estado do circuit breaker compartilhado por todas as operacoes
protegidas por um mesmo guard.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from qakit.config import (
    SUITE_MAX_RUNTIME_S,
    MAX_MEMORY_MB,
    MAX_RETRIES,
    MAX_HEALING_ATTEMPTS,
    TEST_TIMEOUT_MS,
    PAGE_TIMEOUT_MS,
    CAPTURE_TIMEOUT_MS,
    BREAKER_THRESHOLD,
    BREAKER_COOLDOWN_S,
)
from qakit.utils import validate_positive


class CircuitState(str, Enum):
    """Estados do circuit breaker."""
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class ResourceLimits:
    """
    Limites de recursos de uma sessao de testes.

    Tempos em segundos para runtime e milissegundos para timeouts de
    operacao, como nas APIs de automacao de browser.
    """
    max_run_time_s: float = SUITE_MAX_RUNTIME_S["smoke"]
    max_memory_mb: float = MAX_MEMORY_MB
    max_retries: int = MAX_RETRIES
    max_healing_attempts: int = MAX_HEALING_ATTEMPTS

    # Timeouts por operacao (ms)
    test_timeout_ms: int = TEST_TIMEOUT_MS
    page_timeout_ms: int = PAGE_TIMEOUT_MS
    screenshot_timeout_ms: int = CAPTURE_TIMEOUT_MS

    def __post_init__(self):
        validate_positive(self.max_run_time_s, "max_run_time_s")
        validate_positive(self.max_memory_mb, "max_memory_mb")
        validate_positive(self.max_retries, "max_retries")
        validate_positive(self.max_healing_attempts, "max_healing_attempts", allow_zero=True)
        for name in ("test_timeout_ms", "page_timeout_ms", "screenshot_timeout_ms"):
            validate_positive(getattr(self, name), name)

    @classmethod
    def for_suite(cls, suite: str = "smoke", **overrides) -> "ResourceLimits":
        """Limites padrao para o tipo de suite ("full" ganha 30min, o resto 10min)."""
        runtime = SUITE_MAX_RUNTIME_S["full"] if suite == "full" else SUITE_MAX_RUNTIME_S["smoke"]
        return replace(cls(max_run_time_s=runtime), **overrides)

    def to_dict(self) -> dict:
        """Converte para dicionario."""
        return {
            "max_run_time_s": self.max_run_time_s,
            "max_memory_mb": self.max_memory_mb,
            "max_retries": self.max_retries,
            "max_healing_attempts": self.max_healing_attempts,
            "test_timeout_ms": self.test_timeout_ms,
            "page_timeout_ms": self.page_timeout_ms,
            "screenshot_timeout_ms": self.screenshot_timeout_ms,
        }


@dataclass
class ResourceStats:
    """Contadores mutaveis da sessao. Zerados apenas na criacao do guard."""
    start_time: float
    start_memory_mb: float
    tests_run: int = 0
    retries_used: int = 0
    healing_attempts: int = 0
    resource_warnings: int = 0


@dataclass
class CircuitBreakerState:
    """
    Estado do circuit breaker.

    CLOSED -> OPEN (falhas >= threshold) -> HALF_OPEN (cooldown expirado)
    -> CLOSED (proximo sucesso). Nao ha estado terminal.
    """
    failures: int = 0
    threshold: int = BREAKER_THRESHOLD
    timeout_s: float = BREAKER_COOLDOWN_S
    state: CircuitState = CircuitState.CLOSED
    last_failure: Optional[float] = None

    def to_dict(self) -> dict:
        """Converte para dicionario."""
        return {
            "failures": self.failures,
            "threshold": self.threshold,
            "timeout_s": self.timeout_s,
            "state": self.state.value,
            "last_failure": self.last_failure,
        }


@dataclass
class ResourceUsage:
    """Foto do uso de recursos, exposta para runners e health checks."""
    runtime_s: int
    memory_mb: int
    tests_run: int
    retries_used: int
    healing_attempts: int
    circuit_breaker_state: CircuitState

    def to_dict(self) -> dict:
        """Converte para dicionario."""
        return {
            "runtime_s": self.runtime_s,
            "memory_mb": self.memory_mb,
            "tests_run": self.tests_run,
            "retries_used": self.retries_used,
            "healing_attempts": self.healing_attempts,
            "circuit_breaker_state": self.circuit_breaker_state.value,
        }


@dataclass
class EnvironmentChecks:
    """Resultado da validacao de ambiente (pre-flight)."""
    python_version: str
    platform: str
    arch: str
    memory_mb: int
    pid: int

    def to_dict(self) -> dict:
        """Converte para dicionario."""
        return {
            "python_version": self.python_version,
            "platform": self.platform,
            "arch": self.arch,
            "memory_mb": self.memory_mb,
            "pid": self.pid,
        }
