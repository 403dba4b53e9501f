"""
Page Health Scorer.

Observa o fluxo de eventos de console e rede de uma pagina e calcula,
sob demanda, um score de qualidade de 0 a 100 (erros recentes,
falhas de rede recentes, first contentful paint e acessibilidade).
"""

import time
from collections import Counter
from typing import Any, Callable, Optional

from qakit.browser_scripts import ACCESSIBILITY_ISSUES_JS, PAGE_TIMINGS_JS
from qakit.config import RECENCY_WINDOW_S, SLOW_FCP_MS
from qakit.models.evidence import ConsoleError, NetworkFailure, now_iso
from qakit.models.health import (
    AccessibilityIssue,
    ObservedConsoleMessage,
    ObservedNetworkFailure,
    PageHealthMetrics,
    PageHealthReport,
)
from qakit.utils import error_message, get_logger

logger = get_logger("health")


CONSOLE_ERROR_PENALTY = 10
NETWORK_FAILURE_PENALTY = 15
SLOW_FCP_PENALTY = 20


def _location_text(location: Any) -> Optional[str]:
    # ConsoleMessage.location e um dict {url, lineNumber, columnNumber}
    if not location:
        return None
    if isinstance(location, dict):
        url = location.get("url") or ""
        line = location.get("lineNumber")
        return f"{url}:{line}" if line is not None else url or None
    return str(location)


class PageHealthScorer:
    """
    Score de saude de pagina a partir de sinais observados ao vivo.

    Uso:
        scorer = PageHealthScorer()
        scorer.attach_to_page(page)
        await page.goto(url)
        report = await scorer.assess_page_health(page)

    O log de observacoes e ordenado e sem deduplicacao. So eventos dos
    ultimos RECENCY_WINDOW_S segundos entram no score, para que erros de
    paginas anteriores da mesma sessao nao contaminem a pagina atual.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        recency_window_s: float = RECENCY_WINDOW_S,
    ):
        self._clock = clock
        self.recency_window_s = recency_window_s
        self.console_messages: list[ObservedConsoleMessage] = []
        self.network_failures: list[ObservedNetworkFailure] = []
        self.start_time = clock()

    # -------------------------------------------------------------------------
    # Observacao
    # -------------------------------------------------------------------------

    def attach_to_page(self, page) -> None:
        """Registra listeners de console, excecoes e rede na pagina."""
        page.on("console", self._on_console)
        page.on("pageerror", self._on_page_error)
        page.on("response", self._on_response)
        page.on("requestfailed", self._on_request_failed)
        logger.debug("scorer_attached")

    def _on_console(self, message) -> None:
        msg_type = message.type
        if msg_type in ("error", "warning"):
            self.console_messages.append(ObservedConsoleMessage(
                type=msg_type,
                text=message.text,
                timestamp=self._clock(),
                location=_location_text(getattr(message, "location", None)),
            ))

    def _on_page_error(self, error) -> None:
        self.console_messages.append(ObservedConsoleMessage(
            type="error",
            text=getattr(error, "message", None) or str(error),
            timestamp=self._clock(),
        ))

    def _on_response(self, response) -> None:
        if response.status >= 400:
            self.network_failures.append(ObservedNetworkFailure(
                url=response.url,
                status=response.status,
                timestamp=self._clock(),
            ))

    def _on_request_failed(self, request) -> None:
        self.network_failures.append(ObservedNetworkFailure(
            url=request.url,
            failure=request.failure or "Unknown failure",
            timestamp=self._clock(),
        ))

    # -------------------------------------------------------------------------
    # Score
    # -------------------------------------------------------------------------

    def _is_recent(self, timestamp: float, now: float) -> bool:
        return (now - timestamp) < self.recency_window_s

    async def assess_page_health(self, page) -> PageHealthReport:
        """
        Calcula o score atual da pagina.

        Parte de 100 e deduz: 10 por erro de console recente, 15 por
        falha de rede recente, 20 se o FCP passar de 3s, e um peso por
        ocorrencia de problema de acessibilidade (alta 10, media 5,
        baixa 2). O resultado e limitado a [0, 100].
        """
        score = 100
        issues: list[str] = []
        recommendations: list[str] = []
        now = self._clock()

        timings = await self._capture_timings(page)

        recent_errors = [e for e in self.console_messages if self._is_recent(e.timestamp, now)]
        error_score = 100
        if recent_errors:
            penalty = len(recent_errors) * CONSOLE_ERROR_PENALTY
            error_score = max(0, 100 - penalty)
            score -= penalty
            issues.append(f"{len(recent_errors)} console errors detected")
            recommendations.append("Check console for JavaScript errors and warnings")

        recent_failures = [f for f in self.network_failures if self._is_recent(f.timestamp, now)]
        network_score = 100
        if recent_failures:
            penalty = len(recent_failures) * NETWORK_FAILURE_PENALTY
            network_score = max(0, 100 - penalty)
            score -= penalty
            issues.append(f"{len(recent_failures)} network failures detected")
            recommendations.append("Review failed network requests and API endpoints")

        fcp = timings.get("first_contentful_paint") if timings else None
        performance_score = 100
        if fcp is not None and fcp > SLOW_FCP_MS:
            performance_score -= SLOW_FCP_PENALTY
            score -= SLOW_FCP_PENALTY
            issues.append("Slow first contentful paint (>3s)")
            recommendations.append("Optimize page loading performance and resource sizes")

        a11y_issues = await self.check_accessibility_issues(page)
        accessibility_score = 100
        if a11y_issues:
            penalty = sum(issue.penalty for issue in a11y_issues)
            accessibility_score = max(0, 100 - penalty)
            score -= penalty
            for issue in a11y_issues:
                issues.append(f"{issue.count} {issue.label} issues")
            recommendations.append("Improve accessibility by adding missing labels and alt text")

        score = int(round(min(100, max(0, score))))
        url = page.url

        report = PageHealthReport(
            score=score,
            url=url,
            timestamp=now_iso(),
            issues=issues,
            recommendations=recommendations,
            metrics=PageHealthMetrics(
                console_errors=len(recent_errors),
                network_failures=len(recent_failures),
                first_contentful_paint=fcp,
                accessibility_issues=sum(issue.count for issue in a11y_issues),
                performance_score=performance_score,
                error_score=error_score,
                network_score=network_score,
                accessibility_score=accessibility_score,
            ),
        )

        if report.is_healthy:
            logger.info("page_health", score=score, url=url)
        else:
            logger.warning("page_health_degraded", score=score, url=url, issues=issues)

        return report

    async def _capture_timings(self, page) -> Optional[dict]:
        try:
            return await page.evaluate(PAGE_TIMINGS_JS)
        except Exception as e:
            logger.warning("performance_metrics_unavailable", error=error_message(e))
            return None

    async def check_accessibility_issues(self, page) -> list[AccessibilityIssue]:
        """
        Verifica problemas basicos de acessibilidade.

        Imagens sem alt, inputs sem label (for, label envolvente ou
        aria-label/aria-labelledby), botoes sem nome acessivel, pagina
        sem headings e pagina sem exatamente um h1.
        """
        try:
            raw = await page.evaluate(ACCESSIBILITY_ISSUES_JS)
        except Exception as e:
            logger.warning("accessibility_check_failed", error=error_message(e))
            return []
        return [AccessibilityIssue.from_dict(item) for item in raw or []]

    # -------------------------------------------------------------------------
    # Acessores
    # -------------------------------------------------------------------------

    def console_errors(self) -> list[ConsoleError]:
        """Log de console no formato de evidencia (para o coletor)."""
        return [
            ConsoleError(type=m.type, text=m.text, location=m.location, timestamp=m.timestamp)
            for m in self.console_messages
        ]

    def network_failure_records(self) -> list[NetworkFailure]:
        """Falhas de rede no formato de evidencia (para o coletor)."""
        return [
            NetworkFailure(
                url=f.url,
                status=f.status,
                failure_reason=f.failure,
                timestamp=f.timestamp,
            )
            for f in self.network_failures
        ]

    def get_observation_summary(self) -> dict:
        """Resumo de tudo o que foi observado desde o ultimo reset."""
        return {
            "total_console_errors": len(self.console_messages),
            "total_network_failures": len(self.network_failures),
            "observation_duration_s": self._clock() - self.start_time,
            "errors_by_type": dict(Counter(m.type for m in self.console_messages)),
            "failures_by_status": dict(Counter(
                str(f.status) if f.status else "failed" for f in self.network_failures
            )),
        }

    def get_current_errors(self) -> dict:
        """Contagens totais e recentes (uteis durante o teste)."""
        now = self._clock()
        return {
            "console_errors": len(self.console_messages),
            "network_failures": len(self.network_failures),
            "recent_console_errors": sum(1 for m in self.console_messages if self._is_recent(m.timestamp, now)),
            "recent_network_failures": sum(1 for f in self.network_failures if self._is_recent(f.timestamp, now)),
        }

    def reset(self) -> None:
        """Limpa as observacoes para avaliar uma nova pagina."""
        self.console_messages = []
        self.network_failures = []
        self.start_time = self._clock()
