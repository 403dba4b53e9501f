"""
Resource Guard - supervisor de custo da sessao de testes.

Limita quanto uma operacao assincrona arbitraria pode custar (timeout,
retry com backoff, circuit breaker) e encerra a sessao quando limites
globais de runtime ou memoria sao ultrapassados.

Todo o estado mutavel (ResourceStats e CircuitBreakerState) e tocado
apenas no event loop do asyncio, entao nao ha locks.
"""

import asyncio
import gc
import os
import platform
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

import psutil

from qakit.config import (
    BREAKER_COOLDOWN_S,
    BREAKER_THRESHOLD,
    MAX_MEMORY_WARNINGS,
    MIN_AVAILABLE_MEMORY_MB,
    MONITOR_INTERVAL_S,
)
from qakit.models.resources import (
    CircuitBreakerState,
    CircuitState,
    EnvironmentChecks,
    ResourceLimits,
    ResourceStats,
    ResourceUsage,
)
from qakit.utils import error_message, get_logger, run_with_timeout

logger = get_logger("guard")

T = TypeVar("T")

MAX_BACKOFF_MS = 10_000


class OperationTimeoutError(TimeoutError):
    """Operacao protegida excedeu o timeout."""
    pass


class InsufficientResourcesError(RuntimeError):
    """Host sem recursos minimos para rodar a sessao."""
    pass


class GuardShutdown(SystemExit):
    """Encerramento do processo pedido pelo guard."""
    pass


def _exit_process(reason: str, exit_code: int) -> None:
    raise GuardShutdown(exit_code)


def _process_memory_mb() -> float:
    return psutil.Process().memory_info().rss / 1024 / 1024


def backoff_ms(attempt: int) -> int:
    """Backoff exponencial: 1s, 2s, 4s, 8s, limitado a 10s."""
    return min(1000 * 2 ** (attempt - 1), MAX_BACKOFF_MS)


class ResourceGuard:
    """
    Supervisor de recursos de uma sessao de testes.

    Uso:
        async with ResourceGuard(suite="smoke") as guard:
            if guard.can_proceed():
                await guard.with_retry(
                    lambda: guard.with_timeout(action, "login"), "login"
                )

    O circuit breaker e unico por guard e compartilhado por todas as
    operacoes protegidas. Estouro de limites de recursos e um caminho
    terminal: o guard registra as estatisticas finais e chama
    on_shutdown (por padrao levanta GuardShutdown, que encerra o
    processo com codigo 1). O guard nao registra handlers de sinal;
    o host roteia sinais para handle_signal.
    """

    def __init__(
        self,
        limits: Optional[ResourceLimits] = None,
        suite: str = "smoke",
        *,
        clock: Callable[[], float] = time.monotonic,
        memory_probe: Optional[Callable[[], float]] = None,
        on_shutdown: Optional[Callable[[str, int], None]] = None,
        breaker_threshold: int = BREAKER_THRESHOLD,
        breaker_timeout_s: float = BREAKER_COOLDOWN_S,
        monitor_interval_s: float = MONITOR_INTERVAL_S,
        min_available_memory_mb: float = MIN_AVAILABLE_MEMORY_MB,
    ):
        self.limits = limits or ResourceLimits.for_suite(suite)
        self._clock = clock
        self._memory_probe = memory_probe or _process_memory_mb
        self._on_shutdown = on_shutdown or _exit_process
        self.monitor_interval_s = monitor_interval_s
        self.min_available_memory_mb = min_available_memory_mb

        self.stats = ResourceStats(
            start_time=clock(),
            start_memory_mb=self._memory_probe(),
        )
        self.circuit_breaker = CircuitBreakerState(
            threshold=breaker_threshold,
            timeout_s=breaker_timeout_s,
        )

        self._monitor_task: Optional[asyncio.Task] = None
        self._terminated = False
        self.shutdown_reason: Optional[str] = None

    @property
    def is_terminated(self) -> bool:
        """True depois do encerramento; o guard nao aceita mais trabalho."""
        return self._terminated

    # -------------------------------------------------------------------------
    # Ciclo de vida
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "ResourceGuard":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.cleanup()
        return False

    def start(self) -> None:
        """Inicia o monitor periodico no event loop corrente."""
        if self._monitor_task is None or self._monitor_task.done():
            self._monitor_task = asyncio.get_running_loop().create_task(self._monitor_loop())
            logger.debug("monitor_started", interval_s=self.monitor_interval_s)

    async def _monitor_loop(self) -> None:
        while not self.is_terminated:
            await asyncio.sleep(self.monitor_interval_s)
            self.check_resource_limits()

    def _cancel_monitor(self) -> Optional[asyncio.Task]:
        task = self._monitor_task
        self._monitor_task = None
        if task is None or task.done():
            return None
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is current:
            return None
        task.cancel()
        return task

    async def cleanup(self) -> str:
        """Para o monitor, tenta liberar memoria e registra as estatisticas finais."""
        logger.info("cleaning_up")

        task = self._cancel_monitor()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

        gc.collect()
        return self._log_final_stats()

    def _log_final_stats(self) -> str:
        runtime = self._clock() - self.stats.start_time
        memory_delta = self._memory_probe() - self.stats.start_memory_mb

        block = (
            "QA Kit Session Stats:\n"
            f"    Runtime: {round(runtime)}s\n"
            f"    Tests run: {self.stats.tests_run}\n"
            f"    Retries used: {self.stats.retries_used}\n"
            f"    Healing attempts: {self.stats.healing_attempts}\n"
            f"    Memory delta: {round(memory_delta)}MB\n"
            f"    Resource warnings: {self.stats.resource_warnings}\n"
            f"    Circuit breaker: {self.circuit_breaker.state.value}"
        )
        print(block, flush=True)
        logger.info(
            "session_stats",
            runtime_s=round(runtime),
            tests_run=self.stats.tests_run,
            retries_used=self.stats.retries_used,
            healing_attempts=self.stats.healing_attempts,
            memory_delta_mb=round(memory_delta),
            resource_warnings=self.stats.resource_warnings,
            circuit_breaker=self.circuit_breaker.state.value,
        )
        return block

    # -------------------------------------------------------------------------
    # Monitor
    # -------------------------------------------------------------------------

    def check_resource_limits(self) -> None:
        """Uma rodada do monitor: runtime, memoria e cooldown do breaker."""
        if self._terminated:
            return

        now = self._clock()
        runtime = now - self.stats.start_time
        memory_mb = self._memory_probe()

        if runtime > self.limits.max_run_time_s:
            logger.error("max_runtime_exceeded", runtime_s=round(runtime))
            self._handle_resource_limit("MAX_RUNTIME")
            return

        if memory_mb > self.limits.max_memory_mb:
            self.stats.resource_warnings += 1
            logger.warning(
                "memory_limit_exceeded",
                memory_mb=round(memory_mb),
                warnings=self.stats.resource_warnings,
            )

            if self.stats.resource_warnings > MAX_MEMORY_WARNINGS:
                self._handle_resource_limit("MAX_MEMORY")
                return

            collected = gc.collect()
            logger.info("garbage_collected", objects=collected)

        breaker = self.circuit_breaker
        if breaker.state == CircuitState.OPEN:
            cooldown_expired = (
                breaker.last_failure is not None
                and now - breaker.last_failure >= breaker.timeout_s
            )
            if cooldown_expired:
                breaker.state = CircuitState.HALF_OPEN
                logger.info("circuit_breaker_half_open")

    def _handle_resource_limit(self, reason: str) -> None:
        logger.error("resource_limit_exceeded", reason=reason)
        self.emergency_shutdown(reason)

    def emergency_shutdown(self, reason: str, exit_code: int = 1) -> None:
        """
        Transicao terminal: para o monitor, registra estatisticas e
        entrega o encerramento ao host. Chamadas repetidas sao ignoradas.
        """
        if self._terminated:
            return
        self._terminated = True
        self.shutdown_reason = reason

        logger.critical("emergency_shutdown", reason=reason)
        self._cancel_monitor()
        self._log_final_stats()
        self._on_shutdown(reason, exit_code)

    def handle_signal(self, signame: str) -> None:
        """Encerramento gracioso pedido pelo host (SIGINT/SIGTERM)."""
        logger.warning("signal_received", signal=signame)
        self.emergency_shutdown(signame, exit_code=0)

    def loop_exception_handler(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        """
        Handler para loop.set_exception_handler.

        Excecoes nao tratadas no loop sao tratadas como estouro de
        limite: uma falha sem supervisao e em si um risco de recursos.
        """
        exception = context.get("exception")
        logger.critical(
            "unhandled_exception",
            message=context.get("message"),
            error=error_message(exception) if exception else None,
        )
        self.emergency_shutdown("UNHANDLED_EXCEPTION")

    # -------------------------------------------------------------------------
    # Operacoes protegidas
    # -------------------------------------------------------------------------

    async def with_timeout(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str,
        timeout_ms: Optional[int] = None,
    ) -> T:
        """
        Corre a operacao contra um timer.

        No timeout levanta OperationTimeoutError com o nome da operacao.
        A operacao nao e cancelada: o guard apenas para de esperar.
        """
        timeout = timeout_ms or self.limits.test_timeout_ms
        return await run_with_timeout(
            operation(),
            timeout / 1000,
            timeout_message=f'Operation "{name}" timed out after {timeout}ms',
            cancel_on_timeout=False,
            timeout_error=OperationTimeoutError,
        )

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str,
        max_retries: Optional[int] = None,
    ) -> T:
        """
        Executa a operacao ate max_retries vezes, em sequencia.

        Entre tentativas espera min(1000 * 2^(tentativa-1), 10000) ms.
        Esgotadas as tentativas, registra uma falha no circuit breaker e
        relanca o ultimo erro. Sucesso registra sucesso no breaker.
        """
        retries = max_retries or self.limits.max_retries

        for attempt in range(1, retries + 1):
            try:
                result = await operation()
            except Exception as e:
                self.stats.retries_used += 1

                if attempt == retries:
                    logger.error("operation_failed", operation=name, attempts=retries, error=error_message(e))
                    self.record_circuit_breaker_failure()
                    raise

                delay_ms = backoff_ms(attempt)
                logger.warning(
                    "operation_retry",
                    operation=name,
                    attempt=attempt,
                    max_retries=retries,
                    backoff_ms=delay_ms,
                    error=error_message(e),
                )
                await self._sleep(delay_ms / 1000)
                continue

            if attempt > 1:
                logger.info("operation_recovered", operation=name, attempt=attempt)
            self.record_circuit_breaker_success()
            return result

        raise RuntimeError(f'Operation "{name}" was never attempted')

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    # -------------------------------------------------------------------------
    # Circuit breaker
    # -------------------------------------------------------------------------

    def can_proceed(self) -> bool:
        """False enquanto o breaker estiver OPEN ou apos o encerramento."""
        if self.is_terminated:
            logger.warning("guard_terminated", reason=self.shutdown_reason)
            return False
        if self.circuit_breaker.state == CircuitState.OPEN:
            logger.warning("circuit_breaker_open")
            return False
        return True

    def record_circuit_breaker_failure(self) -> None:
        breaker = self.circuit_breaker
        breaker.failures += 1

        if breaker.failures >= breaker.threshold:
            breaker.state = CircuitState.OPEN
            breaker.last_failure = self._clock()
            logger.error("circuit_breaker_opened", failures=breaker.failures)

    def record_circuit_breaker_success(self) -> None:
        breaker = self.circuit_breaker
        breaker.failures = 0
        if breaker.state == CircuitState.HALF_OPEN:
            breaker.state = CircuitState.CLOSED
            logger.info("circuit_breaker_closed")

    # -------------------------------------------------------------------------
    # Healing e contadores
    # -------------------------------------------------------------------------

    def can_attempt_healing(self) -> bool:
        if self.stats.healing_attempts >= self.limits.max_healing_attempts:
            logger.warning("max_healing_attempts_reached", limit=self.limits.max_healing_attempts)
            return False
        return True

    def record_healing_attempt(self) -> None:
        self.stats.healing_attempts += 1

    def increment_test_count(self) -> None:
        self.stats.tests_run += 1

    # -------------------------------------------------------------------------
    # Consultas
    # -------------------------------------------------------------------------

    def get_resource_usage(self) -> ResourceUsage:
        return ResourceUsage(
            runtime_s=round(self._clock() - self.stats.start_time),
            memory_mb=round(self._memory_probe()),
            tests_run=self.stats.tests_run,
            retries_used=self.stats.retries_used,
            healing_attempts=self.stats.healing_attempts,
            circuit_breaker_state=self.circuit_breaker.state,
        )

    def is_within_limits(self) -> dict[str, bool]:
        """Mapa booleano para polling estilo health check."""
        usage = self.get_resource_usage()
        return {
            "runtime": usage.runtime_s < self.limits.max_run_time_s,
            "memory": usage.memory_mb < self.limits.max_memory_mb,
            # folga para retries espalhados por varios testes
            "retries": usage.retries_used < self.limits.max_retries * 10,
            "healing": usage.healing_attempts < self.limits.max_healing_attempts,
            "circuit_breaker": self.circuit_breaker.state != CircuitState.OPEN,
        }

    def validate_environment(self) -> EnvironmentChecks:
        """
        Checagem pre-flight do host.

        Raises:
            InsufficientResourcesError: Memoria disponivel abaixo do minimo
        """
        checks = EnvironmentChecks(
            python_version=platform.python_version(),
            platform=platform.system().lower(),
            arch=platform.machine(),
            memory_mb=round(psutil.virtual_memory().available / 1024 / 1024),
            pid=os.getpid(),
        )
        logger.info("environment_validation", **checks.to_dict())

        if checks.memory_mb < self.min_available_memory_mb:
            raise InsufficientResourcesError(
                f"Insufficient memory available (minimum {self.min_available_memory_mb}MB required)"
            )
        return checks

    def snapshot(self) -> dict[str, Any]:
        """Estado completo, para relatorios."""
        return {
            "limits": self.limits.to_dict(),
            "usage": self.get_resource_usage().to_dict(),
            "circuit_breaker": self.circuit_breaker.to_dict(),
            "resource_warnings": self.stats.resource_warnings,
            "terminated": self.is_terminated,
            "shutdown_reason": self.shutdown_reason,
        }
