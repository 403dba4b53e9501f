"""
Resource Guard.

Timeout, retry com backoff exponencial, circuit breaker e monitor de
runtime/memoria para sessoes de testes de browser.
"""

from .resource_guard import (
    ResourceGuard,
    OperationTimeoutError,
    InsufficientResourcesError,
    GuardShutdown,
    backoff_ms,
)

__all__ = [
    "ResourceGuard",
    "OperationTimeoutError",
    "InsufficientResourcesError",
    "GuardShutdown",
    "backoff_ms",
]
