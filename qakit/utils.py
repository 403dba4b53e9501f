"""
Utilitarios compartilhados pelo qakit.

Inclui:
- Logging configuravel (structlog)
- Validacao de dados
- Helpers para async operations
- Sanitizacao de nomes
"""

import asyncio
import logging
import re
import sys
import time
from typing import Any

import structlog


_LOGGING_CONFIGURED = False


# Configuracao de logging
def configure_logging(level: int = logging.INFO, force: bool = False) -> None:
    """
    Configura o structlog uma unica vez para o processo.

    Args:
        level: Nivel minimo de logging (default: INFO)
        force: Se True, reconfigura mesmo que ja tenha sido configurado
    """
    global _LOGGING_CONFIGURED

    if _LOGGING_CONFIGURED and not force:
        return

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    _LOGGING_CONFIGURED = True


def get_logger(name: str) -> Any:
    """
    Retorna um logger structlog ligado ao modulo.

    Args:
        name: Nome do logger (geralmente __name__)

    Returns:
        Logger configurado
    """
    return structlog.get_logger(f"qakit.{name}")


# Validacao de dados
class ValidationError(Exception):
    """Excecao para erros de validacao."""
    pass


def validate_positive(value: float, field_name: str, allow_zero: bool = False) -> float:
    """
    Valida que um numero e positivo.

    Raises:
        ValidationError: Se valor nao positivo
    """
    if value is None:
        raise ValidationError(f"{field_name} e obrigatorio")

    if allow_zero and value < 0:
        raise ValidationError(f"{field_name} deve ser >= 0, recebeu {value}")

    if not allow_zero and value <= 0:
        raise ValidationError(f"{field_name} deve ser > 0, recebeu {value}")

    return value


# Helpers para async
async def run_with_timeout(
    awaitable,
    timeout: float,
    timeout_message: str = "Operacao excedeu timeout",
    cancel_on_timeout: bool = True,
    timeout_error: type = TimeoutError,
) -> Any:
    """
    Espera uma coroutine/future com timeout.

    Um TimeoutError levantado pela propria operacao e propagado como
    esta; so o estouro do prazo vira timeout_error.

    Args:
        awaitable: Coroutine ou future a esperar
        timeout: Timeout em segundos
        timeout_message: Mensagem do erro de timeout
        cancel_on_timeout: Se False, o timeout apenas para de esperar e a
            operacao continua rodando em background
        timeout_error: Classe da excecao levantada no timeout

    Returns:
        Resultado da operacao

    Raises:
        TimeoutError: Se exceder timeout
    """
    task = asyncio.ensure_future(awaitable)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    if cancel_on_timeout:
        task.cancel()
    else:
        task.add_done_callback(_consume_exception)
    raise timeout_error(timeout_message)


def _consume_exception(task: asyncio.Future) -> None:
    # Operacoes abandonadas por timeout ainda podem falhar depois
    if not task.cancelled():
        task.exception()


async def gather_with_errors(
    *coros,
    return_exceptions: bool = True,
) -> list[Any]:
    """
    Executa multiplas coroutines e coleta erros.

    Similar a asyncio.gather, mas por padrao nunca aborta: cada posicao
    da lista recebe o resultado ou a excecao da coroutine correspondente.
    """
    return await asyncio.gather(*coros, return_exceptions=return_exceptions)


class AsyncTimingContext:
    """Context manager async para medir tempo de execucao."""

    def __init__(self, name: str = "operation", logger: Any = None):
        self.name = name
        self.logger = logger
        self.start_time = None
        self.end_time = None
        self.duration_ms = 0

    async def __aenter__(self):
        self.start_time = time.time()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.time()
        self.duration_ms = int((self.end_time - self.start_time) * 1000)

        if self.logger:
            self.logger.debug("timing", operation=self.name, duration_ms=self.duration_ms)

        return False


# Sanitizacao
def sanitize_test_name(name: str) -> str:
    """
    Converte o nome de um teste em algo seguro para nome de diretorio.

    Todo caractere nao alfanumerico vira '-', e o resultado fica em
    minusculas.
    """
    return re.sub(r"[^a-zA-Z0-9]", "-", name).lower()


def truncate_string(s: str, max_length: int = 100, suffix: str = "...") -> str:
    """Trunca uma string mantendo um sufixo."""
    if len(s) <= max_length:
        return s
    return s[:max_length - len(suffix)] + suffix


def error_message(error: BaseException) -> str:
    """Mensagem legivel de uma excecao (nome da classe se vazia)."""
    return str(error) or error.__class__.__name__
