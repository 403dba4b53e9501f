"""
Modelos de dados da classificacao de falhas.
"""

from dataclasses import dataclass, field
from enum import Enum


# Heuristicas nunca afirmam certeza
MAX_CONFIDENCE = 0.95


class ClassificationType(str, Enum):
    """Categorias de causa provavel de uma falha."""
    TEST_FLAKE = "TestFlake"
    APP_REGRESSION = "AppRegression"
    ENVIRONMENT_ISSUE = "EnvironmentIssue"
    DATA_PROBLEM = "DataProblem"


@dataclass
class Classification:
    """
    Resultado de uma heuristica.

    Confianca 0 com lista de motivos vazia e um resultado valido:
    nenhum sinal da categoria foi encontrado.
    """
    type: ClassificationType
    confidence: float = 0.0
    reasons: list[str] = field(default_factory=list)
    recommendation: list[str] = field(default_factory=list)
    fixable: bool = False

    def to_dict(self) -> dict:
        """Converte para dicionario."""
        return {
            "type": self.type.value,
            "confidence": self.confidence,
            "reasons": self.reasons,
            "recommendation": self.recommendation,
            "fixable": self.fixable,
        }


@dataclass
class FullClassification:
    """
    Classificacao vencedora mais todos os candidatos avaliados.
    """
    best: Classification
    all_classifications: list[Classification]
    analysis_timestamp: str

    @property
    def type(self) -> ClassificationType:
        return self.best.type

    @property
    def confidence(self) -> float:
        return self.best.confidence

    @property
    def reasons(self) -> list[str]:
        return self.best.reasons

    @property
    def recommendation(self) -> list[str]:
        return self.best.recommendation

    @property
    def fixable(self) -> bool:
        return self.best.fixable

    def candidate(self, type_: ClassificationType) -> Classification:
        """Retorna o candidato de uma categoria."""
        for c in self.all_classifications:
            if c.type == type_:
                return c
        raise KeyError(type_)

    def to_dict(self) -> dict:
        """Converte para dicionario."""
        return {
            **self.best.to_dict(),
            "all_classifications": [c.to_dict() for c in self.all_classifications],
            "analysis_timestamp": self.analysis_timestamp,
        }
