"""
Classificador de falhas.

Mapeia um registro Evidence para a causa mais provavel da falha
(TestFlake, AppRegression, EnvironmentIssue, DataProblem), com um
valor de confianca e os motivos que o sustentam. Nunca acessa a pagina
e nunca levanta excecao: o resultado e sempre o "melhor palpite".
"""

import re
from typing import Callable, Iterable

from qakit.models.classification import (
    Classification,
    ClassificationType,
    FullClassification,
    MAX_CONFIDENCE,
)
from qakit.models.evidence import Evidence, now_iso
from qakit.utils import get_logger

logger = get_logger("diagnosis")


# Padroes de texto (case-insensitive)
# "runtime output" nao conta; "ERR_TIMED_OUT" do Chromium conta
TIMEOUT_PATTERN = re.compile(r"(?<![a-z])time(?:outs?|d[\s_]out)(?![a-z])", re.IGNORECASE)
ELEMENT_NOT_FOUND_PATTERN = re.compile(r"element\s+not\s+found", re.IGNORECASE)
VISIBILITY_PATTERN = re.compile(r"not\s+visible|not\s+attached", re.IGNORECASE)
ANIMATION_PATTERN = re.compile(r"animation|transition", re.IGNORECASE)
NOT_FOUND_PATTERN = re.compile(r"not\s+found", re.IGNORECASE)

JS_ERROR_PATTERN = re.compile(r"TypeError|ReferenceError|Cannot read propert(?:y|ies)")
NULL_ACCESS_PATTERN = re.compile(r"Cannot read propert(?:y|ies)")
FRAMEWORK_PATTERN = re.compile(r"React|Vue|component")

CONNECTION_REFUSED_PATTERN = re.compile(r"ECONNREFUSED|ERR_CONNECTION_REFUSED")
CONNECTION_RESET_PATTERN = re.compile(r"ECONNRESET|ERR_CONNECTION_RESET")
DNS_FAILURE_PATTERN = re.compile(r"ENOTFOUND|ERR_NAME_NOT_RESOLVED")
SESSION_CLOSED_PATTERN = re.compile(r"session closed|browser has been closed", re.IGNORECASE)

# Acima disso o heap do JS e considerado alto (bytes)
HIGH_HEAP_BYTES = 100_000_000


def _clamp(confidence: float) -> float:
    return round(min(max(confidence, 0.0), MAX_CONFIDENCE), 4)


def _any_matches(pattern: re.Pattern, texts: Iterable[str]) -> bool:
    return any(pattern.search(t) for t in texts if t)


class FailureClassifier:
    """
    Roda quatro heuristicas independentes sobre a evidencia e escolhe a
    de maior confianca.

    Cada heuristica soma confianca para cada condicao encontrada e o
    total e limitado a 0.95. Em caso de empate vence a primeira na
    ordem TestFlake, AppRegression, EnvironmentIssue, DataProblem; todos
    os candidatos ficam em all_classifications.
    """

    def __init__(self):
        self._heuristics: list[Callable[[Evidence], Classification]] = [
            self.classify_as_test_flake,
            self.classify_as_app_regression,
            self.classify_as_environment_issue,
            self.classify_as_data_problem,
        ]

    def classify(self, evidence: Evidence) -> FullClassification:
        """
        Classifica uma falha.

        Args:
            evidence: Sintomas observados da falha

        Returns:
            FullClassification com o vencedor e todos os candidatos
        """
        classifications = [heuristic(evidence) for heuristic in self._heuristics]

        best = classifications[0]
        for current in classifications[1:]:
            if current.confidence > best.confidence:
                best = current

        logger.info(
            "failure_classified",
            type=best.type.value,
            confidence=f"{best.confidence * 100:.1f}%",
            url=evidence.url,
        )

        return FullClassification(
            best=best,
            all_classifications=classifications,
            analysis_timestamp=now_iso(),
        )

    # -------------------------------------------------------------------------
    # Heuristicas
    # -------------------------------------------------------------------------

    def classify_as_test_flake(self, evidence: Evidence) -> Classification:
        confidence = 0.0
        reasons: list[str] = []
        message = evidence.error_message or ""

        if TIMEOUT_PATTERN.search(message):
            confidence += 0.6
            reasons.append("Contains timeout error")

        if ELEMENT_NOT_FOUND_PATTERN.search(message):
            confidence += 0.4
            reasons.append("Element not found - possibly race condition")

        if _any_matches(TIMEOUT_PATTERN, (f.failure_reason for f in evidence.network_failures)):
            confidence += 0.3
            reasons.append("Network timeout detected")

        if VISIBILITY_PATTERN.search(message):
            confidence += 0.5
            reasons.append("Element visibility/attachment issue")

        if _any_matches(ANIMATION_PATTERN, (e.text for e in evidence.console_errors)):
            confidence += 0.2
            reasons.append("Animation/transition interference detected")

        return Classification(
            type=ClassificationType.TEST_FLAKE,
            confidence=_clamp(confidence),
            reasons=reasons,
            recommendation=self._flake_recommendations(reasons),
            # Flakes sao do lado do teste: corrigiveis quando algum sinal apareceu
            fixable=bool(reasons),
        )

    def classify_as_app_regression(self, evidence: Evidence) -> Classification:
        confidence = 0.0
        reasons: list[str] = []

        js_errors = [e for e in evidence.console_errors if JS_ERROR_PATTERN.search(e.text or "")]
        if js_errors:
            confidence += 0.7
            reasons.append(f"{len(js_errors)} JavaScript errors detected")

        server_errors = [f for f in evidence.network_failures if f.status is not None and f.status >= 500]
        if server_errors:
            confidence += 0.8
            reasons.append(f"{len(server_errors)} server errors (5xx)")

        client_errors = [
            f for f in evidence.network_failures
            if f.status is not None and 400 <= f.status < 500
        ]
        if client_errors:
            confidence += 0.6
            reasons.append(f"{len(client_errors)} client errors (4xx)")

        if _any_matches(FRAMEWORK_PATTERN, (e.text for e in evidence.console_errors)):
            confidence += 0.5
            reasons.append("Frontend framework error detected")

        return Classification(
            type=ClassificationType.APP_REGRESSION,
            confidence=_clamp(confidence),
            reasons=reasons,
            recommendation=self._app_regression_recommendations(evidence),
            fixable=confidence > 0.8 and self.is_obvious_app_fix(evidence),
        )

    def classify_as_environment_issue(self, evidence: Evidence) -> Classification:
        confidence = 0.0
        reasons: list[str] = []

        # Erros de rede podem vir do request ou da mensagem do erro (page.goto)
        texts = [f.failure_reason or "" for f in evidence.network_failures]
        texts.append(evidence.error_message or "")

        if _any_matches(CONNECTION_REFUSED_PATTERN, texts):
            confidence += 0.9
            reasons.append("Connection refused - service may be down")

        if _any_matches(CONNECTION_RESET_PATTERN, texts):
            confidence += 0.8
            reasons.append("Connection reset - network instability")

        if _any_matches(DNS_FAILURE_PATTERN, texts):
            confidence += 0.9
            reasons.append("DNS resolution failed")

        if SESSION_CLOSED_PATTERN.search(evidence.error_message or ""):
            confidence += 0.8
            reasons.append("Browser session terminated unexpectedly")

        metrics = evidence.performance_metrics
        if metrics and metrics.memory and metrics.memory.used_js_heap_size > HIGH_HEAP_BYTES:
            confidence += 0.3
            reasons.append("High memory usage detected")

        return Classification(
            type=ClassificationType.ENVIRONMENT_ISSUE,
            confidence=_clamp(confidence),
            reasons=reasons,
            recommendation=self._environment_recommendations(reasons),
            fixable=False,
        )

    def classify_as_data_problem(self, evidence: Evidence) -> Classification:
        confidence = 0.0
        reasons: list[str] = []
        statuses = {f.status for f in evidence.network_failures}

        if 401 in statuses:
            confidence += 0.7
            reasons.append("Authentication failure detected")

        if NOT_FOUND_PATTERN.search(evidence.error_message or "") and 404 in statuses:
            confidence += 0.6
            reasons.append("Test data not found (404)")

        if 503 in statuses:
            confidence += 0.5
            reasons.append("Service unavailable - possible database issue")

        if 422 in statuses:
            confidence += 0.4
            reasons.append("Validation error - data format issue")

        return Classification(
            type=ClassificationType.DATA_PROBLEM,
            confidence=_clamp(confidence),
            reasons=reasons,
            recommendation=self._data_recommendations(reasons),
            fixable=False,
        )

    def is_obvious_app_fix(self, evidence: Evidence) -> bool:
        """Erro de acesso a propriedade nula ou 404 contra uma rota /api/."""
        if any(NULL_ACCESS_PATTERN.search(e.text or "") for e in evidence.console_errors):
            return True
        return any(f.status == 404 and "/api/" in f.url for f in evidence.network_failures)

    # -------------------------------------------------------------------------
    # Recomendacoes
    # -------------------------------------------------------------------------

    def _flake_recommendations(self, reasons: list[str]) -> list[str]:
        recommendations = []

        if any("timeout" in r.lower() for r in reasons):
            recommendations.append("Increase timeout values for slow operations")
            recommendations.append("Add explicit waits for element visibility")

        if any("Element not found" in r for r in reasons):
            recommendations.append("Use more reliable selectors (data-test attributes)")
            recommendations.append("Wait for element to be both visible and stable")

        if any("Network timeout" in r for r in reasons):
            recommendations.append("Add network request retries")
            recommendations.append("Check API response time expectations")

        if any("visibility/attachment" in r for r in reasons):
            recommendations.append("Wait for the element to be attached and visible before interacting")

        if any("Animation" in r for r in reasons):
            recommendations.append("Disable animations or wait for transitions to finish")

        return recommendations or ["Add explicit waits and improve selector stability"]

    def _app_regression_recommendations(self, evidence: Evidence) -> list[str]:
        recommendations = []

        if any("TypeError" in (e.text or "") for e in evidence.console_errors):
            recommendations.append("Check for undefined variables or null references")
            recommendations.append("Verify object properties exist before accessing")

        if any(f.status is not None and f.status >= 500 for f in evidence.network_failures):
            recommendations.append("Check server logs for backend errors")
            recommendations.append("Verify API endpoint functionality")

        if any(f.status == 404 for f in evidence.network_failures):
            recommendations.append("Verify API route exists and is properly defined")
            recommendations.append("Check for route parameter formatting")

        return recommendations or ["Review application logs and recent code changes"]

    def _environment_recommendations(self, reasons: list[str]) -> list[str]:
        recommendations = []

        if any("Connection refused" in r for r in reasons):
            recommendations.append("Verify the application server is running")
            recommendations.append("Check if the correct port is being used")

        if any("Connection reset" in r for r in reasons):
            recommendations.append("Check network stability between the runner and the application")

        if any("DNS resolution" in r for r in reasons):
            recommendations.append("Check network connectivity")
            recommendations.append("Verify hostname/URL configuration")

        if any("Browser session" in r for r in reasons):
            recommendations.append("Check browser driver compatibility")
            recommendations.append("Verify sufficient system resources")

        return recommendations or ["Check system resources and network connectivity"]

    def _data_recommendations(self, reasons: list[str]) -> list[str]:
        recommendations = []

        if any("Authentication failure" in r for r in reasons):
            recommendations.append("Verify test credentials are correct")
            recommendations.append("Check if authentication tokens are expired")

        if any("not found" in r for r in reasons):
            recommendations.append("Ensure test data is properly seeded")
            recommendations.append("Verify database is in correct state")

        if any("Validation error" in r for r in reasons):
            recommendations.append("Check the format of the test data sent to the API")

        return recommendations or ["Check test data setup and database state"]
