"""
Orquestrador da rede de seguranca de testes.

Liga os quatro componentes: cada acao roda sob o ResourceGuard
(timeout + retry + circuit breaker); se falhar de vez, o
EvidenceCollector grava o bundle, o PageHealthScorer fornece o score
da pagina e o FailureClassifier da o palpite da causa.

Nunca decide se o teste passou: devolve o ActionOutcome e o runner de
testes do host faz o resto.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from qakit.config import QAKitConfig
from qakit.diagnosis.failure_classifier import FailureClassifier
from qakit.evidence.collector import EvidenceCollector
from qakit.guard.resource_guard import ResourceGuard
from qakit.health.page_health import PageHealthScorer
from qakit.models.classification import FullClassification
from qakit.models.evidence import ErrorEvidence, Evidence, EvidenceBundle, FailureInfo
from qakit.models.health import PageHealthReport
from qakit.utils import error_message, get_logger

logger = get_logger("runner")


class CircuitOpenError(RuntimeError):
    """Acao recusada: circuit breaker aberto ou guard encerrado."""
    pass


@dataclass
class ActionOutcome:
    """Resultado de uma acao protegida."""
    name: str
    succeeded: bool
    result: Any = None
    error: Optional[BaseException] = None
    bundle: Optional[EvidenceBundle] = None
    classification: Optional[FullClassification] = None
    health: Optional[PageHealthReport] = None

    def to_dict(self) -> dict:
        """Converte para dicionario (sem o resultado da acao)."""
        return {
            "name": self.name,
            "succeeded": self.succeeded,
            "error": error_message(self.error) if self.error else None,
            "evidence_dir": self.bundle.directory if self.bundle else None,
            "classification": self.classification.to_dict() if self.classification else None,
            "health": self.health.to_dict() if self.health else None,
        }


class SafetyNet:
    """
    Fachada que combina guard, coletor, scorer e classificador.

    Uso:
        async with SafetyNet() as net:
            net.attach(page)
            outcome = await net.run(page, "login", lambda: page.click("#login"))
            if not outcome.succeeded:
                print(outcome.classification.type)
    """

    def __init__(
        self,
        config: Optional[QAKitConfig] = None,
        guard: Optional[ResourceGuard] = None,
        collector: Optional[EvidenceCollector] = None,
        classifier: Optional[FailureClassifier] = None,
        scorer: Optional[PageHealthScorer] = None,
    ):
        self.config = config or QAKitConfig.from_env()
        self.guard = guard or ResourceGuard(self.config.resource_limits())
        self.scorer = scorer or PageHealthScorer()
        self.collector = collector or EvidenceCollector(
            self.config.evidence_dir,
            observer=self.scorer,
            capture_timeout_ms=self.guard.limits.screenshot_timeout_ms,
        )
        self.classifier = classifier or FailureClassifier()

    async def __aenter__(self) -> "SafetyNet":
        self.guard.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.guard.cleanup()
        return False

    def attach(self, page) -> None:
        """Comeca a observar console e rede da pagina."""
        self.scorer.attach_to_page(page)

    async def run(
        self,
        page,
        name: str,
        action: Callable[[], Awaitable[Any]],
        timeout_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
    ) -> ActionOutcome:
        """
        Executa uma acao protegida.

        Args:
            page: Pagina onde a acao roda (usada para evidencias)
            name: Nome da acao/teste
            action: Funcao que devolve a coroutine da acao
            timeout_ms: Timeout por tentativa (default: limite do guard)
            max_retries: Tentativas (default: limite do guard)

        Returns:
            ActionOutcome; em falha, com bundle, saude e classificacao
        """
        if not self.guard.can_proceed():
            error = CircuitOpenError(f'Action "{name}" refused: guard is not accepting work')
            logger.warning("action_refused", action=name)
            return ActionOutcome(name=name, succeeded=False, error=error)

        self.guard.increment_test_count()

        try:
            result = await self.guard.with_retry(
                lambda: self.guard.with_timeout(action, name, timeout_ms),
                name,
                max_retries,
            )
        except Exception as e:
            logger.warning("action_failed", action=name, error=error_message(e))
            return await self._diagnose(page, name, e)

        return ActionOutcome(name=name, succeeded=True, result=result)

    async def _diagnose(self, page, name: str, error: Exception) -> ActionOutcome:
        failure = FailureInfo(name=name, error=error_message(error), type=type(error).__name__)
        bundle = await self.collector.collect(page, failure)

        health = None
        try:
            health = await self.scorer.assess_page_health(page)
        except Exception as e:
            logger.warning("health_assessment_failed", action=name, error=error_message(e))

        evidence = Evidence.from_bundle(bundle, health_report=health)
        classification = self.classifier.classify(evidence)

        return ActionOutcome(
            name=name,
            succeeded=False,
            error=error,
            bundle=bundle,
            classification=classification,
            health=health,
        )

    async def capture_unexpected(self, page, error: BaseException) -> ErrorEvidence:
        """Registro leve de um erro fora de qualquer acao protegida."""
        return await self.collector.capture_error(page, error)
