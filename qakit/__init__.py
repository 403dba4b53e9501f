"""
qakit - rede de seguranca para testes de browser.

Quatro componentes independentes, ligados pelo SafetyNet:

- ResourceGuard: timeout, retry com backoff, circuit breaker e limites
  de runtime/memoria da sessao
- PageHealthScorer: score 0-100 da pagina a partir de console, rede,
  first contentful paint e acessibilidade
- EvidenceCollector: bundle de evidencias em disco no momento da falha
- FailureClassifier: palpite da causa (TestFlake, AppRegression,
  EnvironmentIssue, DataProblem) com confianca e motivos

## Uso Rapido

    from qakit import SafetyNet

    async with SafetyNet() as net:
        net.attach(page)
        outcome = await net.run(page, "login", lambda: page.click("#login"))
        if not outcome.succeeded:
            print(outcome.classification.type, outcome.bundle.directory)
"""

__version__ = "0.1.0"

# Orquestrador
from .runner import SafetyNet, ActionOutcome, CircuitOpenError

# Componentes
from .guard import (
    ResourceGuard,
    OperationTimeoutError,
    InsufficientResourcesError,
    GuardShutdown,
)
from .health import PageHealthScorer
from .evidence import EvidenceCollector
from .diagnosis import FailureClassifier

# Configuracao
from .config import QAKitConfig, get_config

# Modelos de dados
from .models import (
    Evidence,
    EvidenceBundle,
    FailureInfo,
    NetworkFailure,
    ConsoleError,
    PerformanceMetrics,
    ErrorEvidence,
    load_bundle,
    Classification,
    ClassificationType,
    FullClassification,
    PageHealthReport,
    AccessibilityIssue,
    ResourceLimits,
    ResourceUsage,
    CircuitState,
)

# Utilitarios
from .utils import (
    configure_logging,
    get_logger,
    ValidationError,
)

__all__ = [
    "__version__",

    # Orquestrador
    "SafetyNet",
    "ActionOutcome",
    "CircuitOpenError",

    # Componentes
    "ResourceGuard",
    "OperationTimeoutError",
    "InsufficientResourcesError",
    "GuardShutdown",
    "PageHealthScorer",
    "EvidenceCollector",
    "FailureClassifier",

    # Configuracao
    "QAKitConfig",
    "get_config",

    # Modelos de dados
    "Evidence",
    "EvidenceBundle",
    "FailureInfo",
    "NetworkFailure",
    "ConsoleError",
    "PerformanceMetrics",
    "ErrorEvidence",
    "load_bundle",
    "Classification",
    "ClassificationType",
    "FullClassification",
    "PageHealthReport",
    "AccessibilityIssue",
    "ResourceLimits",
    "ResourceUsage",
    "CircuitState",

    # Utilitarios
    "configure_logging",
    "get_logger",
    "ValidationError",
]
