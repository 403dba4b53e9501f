"""
Modelos de dados do Page Health Scorer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Severity(str, Enum):
    """Severidade de um problema de acessibilidade."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Pontos deduzidos por ocorrencia
SEVERITY_PENALTY = {
    Severity.HIGH: 10,
    Severity.MEDIUM: 5,
    Severity.LOW: 2,
}


@dataclass
class AccessibilityIssue:
    """Uma categoria de problema de acessibilidade encontrada na pagina."""
    type: str
    count: int
    severity: Severity
    elements: list[str] = field(default_factory=list)

    @property
    def penalty(self) -> int:
        return self.count * SEVERITY_PENALTY.get(self.severity, 5)

    @property
    def label(self) -> str:
        return self.type.replace("-", " ")

    @classmethod
    def from_dict(cls, data: dict) -> "AccessibilityIssue":
        """Cria a partir do resultado do script da pagina."""
        try:
            severity = Severity(data.get("severity", "medium"))
        except ValueError:
            severity = Severity.MEDIUM
        return cls(
            type=data.get("type", "unknown"),
            count=int(data.get("count", 0)),
            severity=severity,
            elements=list(data.get("elements") or []),
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "count": self.count,
            "severity": self.severity.value,
            "elements": self.elements,
        }


@dataclass
class ObservedConsoleMessage:
    type: str
    text: str
    timestamp: float
    location: Optional[str] = None


@dataclass
class ObservedNetworkFailure:
    url: str
    timestamp: float
    status: Optional[int] = None
    failure: Optional[str] = None


@dataclass
class PageHealthMetrics:
    """Contagens recentes e sub-scores por categoria."""
    console_errors: int = 0
    network_failures: int = 0
    first_contentful_paint: Optional[float] = None
    accessibility_issues: int = 0
    performance_score: int = 100
    error_score: int = 100
    network_score: int = 100
    accessibility_score: int = 100

    def to_dict(self) -> dict:
        return {
            "console_errors": self.console_errors,
            "network_failures": self.network_failures,
            "first_contentful_paint": self.first_contentful_paint,
            "accessibility_issues": self.accessibility_issues,
            "performance_score": self.performance_score,
            "error_score": self.error_score,
            "network_score": self.network_score,
            "accessibility_score": self.accessibility_score,
        }


@dataclass
class PageHealthReport:
    """
    Score 0-100 de uma pagina num instante.

    Derivado, nao persistido pelo scorer; quem chama decide o que fazer.
    """
    score: int
    url: str
    timestamp: str
    metrics: PageHealthMetrics = field(default_factory=PageHealthMetrics)
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def is_healthy(self) -> bool:
        return self.score >= 80

    def to_dict(self) -> dict:
        """Converte para dicionario."""
        return {
            "score": self.score,
            "issues": self.issues,
            "recommendations": self.recommendations,
            "metrics": self.metrics.to_dict(),
            "url": self.url,
            "timestamp": self.timestamp,
        }
