"""
Coletor de evidencias.

No momento de uma falha captura, em paralelo e de forma independente,
screenshot, DOM, erros de console, falhas de rede, metricas de
performance, storage e arvore de acessibilidade, e grava tudo num
diretorio por falha com um manifesto evidence.json.
"""

import json
import secrets
import time
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from qakit.browser_scripts import (
    ACCESSIBILITY_TREE_JS,
    DOM_SNAPSHOT_JS,
    PERFORMANCE_METRICS_JS,
    STORAGE_STATE_JS,
    USER_AGENT_JS,
)
from qakit.config import CAPTURE_TIMEOUT_MS, DEFAULT_EVIDENCE_DIR
from qakit.health.page_health import PageHealthScorer
from qakit.models.evidence import (
    MANIFEST_FILENAME,
    AccessibilityEvidence,
    ConsoleErrorsEvidence,
    DOMSnapshotEvidence,
    ErrorEvidence,
    EvidenceBundle,
    FailureInfo,
    NetworkFailuresEvidence,
    PerformanceMetricsEvidence,
    ScreenshotEvidence,
    StorageStateEvidence,
    now_iso,
)
from qakit.utils import (
    AsyncTimingContext,
    error_message,
    gather_with_errors,
    get_logger,
    run_with_timeout,
    sanitize_test_name,
)

logger = get_logger("evidence")


SCREENSHOT_FILENAME = "failure-screenshot.png"
DOM_SNAPSHOT_FILENAME = "dom-snapshot.html"
CONSOLE_ERRORS_FILENAME = "console-errors.json"
NETWORK_FAILURES_FILENAME = "network-failures.json"
PERFORMANCE_METRICS_FILENAME = "performance-metrics.json"
STORAGE_STATE_FILENAME = "storage-state.json"
ACCESSIBILITY_TREE_FILENAME = "accessibility-tree.json"
ERROR_EVIDENCE_FILENAME = "error-evidence.json"
ERROR_SCREENSHOT_FILENAME = "error-screenshot.png"

# Ordem fixa dos slots da coleta paralela
CATEGORIES = (
    "screenshot",
    "dom_snapshot",
    "console_errors",
    "network_failures",
    "performance_metrics",
    "storage_state",
    "accessibility",
)

FAILED_RECORD = {
    "screenshot": ScreenshotEvidence,
    "dom_snapshot": DOMSnapshotEvidence,
    "console_errors": ConsoleErrorsEvidence,
    "network_failures": NetworkFailuresEvidence,
    "performance_metrics": PerformanceMetricsEvidence,
    "storage_state": StorageStateEvidence,
    "accessibility": AccessibilityEvidence,
}


def _write_json(path: Path, data: dict) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


class EvidenceCollector:
    """
    Monta e persiste um bundle de evidencias best-effort.

    Falha parcial de captura e esperada (ex: arvore de acessibilidade
    numa pagina que crashou): reduz a completude do bundle, nunca impede
    a gravacao do manifesto.
    """

    def __init__(
        self,
        evidence_dir: Union[str, Path, None] = None,
        observer: Optional[PageHealthScorer] = None,
        capture_timeout_ms: int = CAPTURE_TIMEOUT_MS,
    ):
        """
        Args:
            evidence_dir: Diretorio base dos bundles
            observer: Scorer anexado a pagina, fonte dos logs de console
                e de rede. Sem ele essas categorias saem vazias.
            capture_timeout_ms: Prazo de cada chamada a pagina (evaluate
                e screenshot). Estourado, a categoria sai captured=False.
        """
        self.evidence_dir = Path(evidence_dir) if evidence_dir else DEFAULT_EVIDENCE_DIR
        self.observer = observer
        self.capture_timeout_ms = capture_timeout_ms

    def generate_evidence_id(self, failure: FailureInfo, at: Optional[datetime] = None) -> str:
        """<timestamp ISO com ':' e '.' trocados por '-'>-<nome sanitizado>."""
        at = at or datetime.now(timezone.utc)
        timestamp = at.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        timestamp = timestamp.replace(":", "-").replace(".", "-")
        return f"{timestamp}-{sanitize_test_name(failure.name)}"

    async def collect(self, page, failure: FailureInfo) -> EvidenceBundle:
        """
        Coleta o bundle completo de uma falha.

        Args:
            page: Sessao de pagina (Playwright Page)
            failure: Nome do teste, mensagem de erro e tipo opcional

        Returns:
            EvidenceBundle, ja gravado em disco
        """
        evidence_id, bundle_dir = self._reserve_bundle_dir(self.generate_evidence_id(failure))

        logger.info("collecting_evidence", test=failure.name, directory=str(bundle_dir))

        bundle = EvidenceBundle(
            id=evidence_id,
            timestamp=now_iso(),
            test_name=failure.name,
            error_message=failure.error,
            failure_type=failure.type,
            directory=str(bundle_dir),
        )
        await self._describe_page(page, bundle)

        async with AsyncTimingContext("evidence_capture", logger) as timing:
            results = await gather_with_errors(
                self.capture_screenshot(page, bundle_dir),
                self.capture_dom_snapshot(page, bundle_dir),
                self.capture_console_errors(page, bundle_dir),
                self.capture_network_failures(page, bundle_dir),
                self.capture_performance_metrics(page, bundle_dir),
                self.capture_storage_state(page, bundle_dir),
                self.capture_accessibility_tree(page, bundle_dir),
            )

        for category, result in zip(CATEGORIES, results):
            if isinstance(result, BaseException):
                logger.warning("evidence_category_failed", category=category, error=error_message(result))
                result = FAILED_RECORD[category](captured=False, error=error_message(result))
            setattr(bundle, category, result)

        try:
            bundle.save(str(bundle_dir / MANIFEST_FILENAME))
        except OSError as e:
            logger.error("manifest_write_failed", directory=str(bundle_dir), error=error_message(e))
            return bundle

        logger.info(
            "evidence_collected",
            directory=str(bundle_dir),
            captured=bundle.captured_categories(),
            duration_ms=timing.duration_ms,
        )
        return bundle

    def _reserve_bundle_dir(self, evidence_id: str) -> tuple[str, Path]:
        """Cria um diretorio novo para o bundle; nunca reaproveita um existente."""
        candidate = evidence_id
        suffix = 1
        while True:
            bundle_dir = self.evidence_dir / candidate
            try:
                bundle_dir.mkdir(parents=True, exist_ok=False)
                return candidate, bundle_dir
            except FileExistsError:
                suffix += 1
                candidate = f"{evidence_id}-{suffix}"
            except OSError as e:
                logger.error("evidence_dir_unavailable", directory=str(bundle_dir), error=error_message(e))
                return candidate, bundle_dir

    async def _evaluate(self, page, script: str):
        return await run_with_timeout(
            page.evaluate(script),
            self.capture_timeout_ms / 1000,
            f"page.evaluate exceeded {self.capture_timeout_ms}ms",
        )

    async def _screenshot(self, page, path: Path, full_page: bool = False) -> None:
        await run_with_timeout(
            page.screenshot(path=str(path), full_page=full_page, timeout=self.capture_timeout_ms),
            self.capture_timeout_ms / 1000,
            f"page.screenshot exceeded {self.capture_timeout_ms}ms",
        )

    async def _describe_page(self, page, bundle: EvidenceBundle) -> None:
        try:
            bundle.url = page.url
        except Exception as e:
            logger.debug("page_url_unavailable", error=error_message(e))
        try:
            bundle.viewport = page.viewport_size
        except Exception as e:
            logger.debug("viewport_unavailable", error=error_message(e))
        try:
            bundle.user_agent = await self._evaluate(page, USER_AGENT_JS)
        except Exception as e:
            logger.debug("user_agent_unavailable", error=error_message(e))

    # -------------------------------------------------------------------------
    # Capturas individuais: cada uma converte a propria falha em captured=False
    # -------------------------------------------------------------------------

    async def capture_screenshot(self, page, bundle_dir: Path) -> ScreenshotEvidence:
        try:
            path = bundle_dir / SCREENSHOT_FILENAME
            await self._screenshot(page, path, full_page=True)
            return ScreenshotEvidence(path=str(path), type="full-page")
        except Exception as e:
            logger.warning("screenshot_capture_failed", error=error_message(e))
            return ScreenshotEvidence(captured=False, error=error_message(e))

    async def capture_dom_snapshot(self, page, bundle_dir: Path) -> DOMSnapshotEvidence:
        try:
            path = bundle_dir / DOM_SNAPSHOT_FILENAME
            html = await self._evaluate(page, DOM_SNAPSHOT_JS)
            path.write_text(html, encoding="utf-8")
            return DOMSnapshotEvidence(path=str(path), size=len(html))
        except Exception as e:
            logger.warning("dom_snapshot_failed", error=error_message(e))
            return DOMSnapshotEvidence(captured=False, error=error_message(e))

    async def capture_console_errors(self, page, bundle_dir: Path) -> ConsoleErrorsEvidence:
        try:
            errors = self.observer.console_errors() if self.observer else []
            record = ConsoleErrorsEvidence(errors=errors)
            _write_json(bundle_dir / CONSOLE_ERRORS_FILENAME, record.to_dict())
            return record
        except Exception as e:
            logger.warning("console_errors_capture_failed", error=error_message(e))
            return ConsoleErrorsEvidence(captured=False, error=error_message(e))

    async def capture_network_failures(self, page, bundle_dir: Path) -> NetworkFailuresEvidence:
        try:
            failures = self.observer.network_failure_records() if self.observer else []
            record = NetworkFailuresEvidence(failures=failures)
            _write_json(bundle_dir / NETWORK_FAILURES_FILENAME, record.to_dict())
            return record
        except Exception as e:
            logger.warning("network_failures_capture_failed", error=error_message(e))
            return NetworkFailuresEvidence(captured=False, error=error_message(e))

    async def capture_performance_metrics(self, page, bundle_dir: Path) -> PerformanceMetricsEvidence:
        try:
            raw = await self._evaluate(page, PERFORMANCE_METRICS_JS)
            record = PerformanceMetricsEvidence.from_dict(raw or {})
            _write_json(bundle_dir / PERFORMANCE_METRICS_FILENAME, record.to_dict())
            return record
        except Exception as e:
            logger.warning("performance_metrics_capture_failed", error=error_message(e))
            return PerformanceMetricsEvidence(timestamp=time.time() * 1000, captured=False, error=error_message(e))

    async def capture_storage_state(self, page, bundle_dir: Path) -> StorageStateEvidence:
        try:
            raw = await self._evaluate(page, STORAGE_STATE_JS)
            record = StorageStateEvidence.from_dict(raw or {})
            _write_json(bundle_dir / STORAGE_STATE_FILENAME, record.to_dict())
            return record
        except Exception as e:
            logger.warning("storage_state_capture_failed", error=error_message(e))
            return StorageStateEvidence(captured=False, error=error_message(e))

    async def capture_accessibility_tree(self, page, bundle_dir: Path) -> AccessibilityEvidence:
        try:
            raw = await self._evaluate(page, ACCESSIBILITY_TREE_JS)
            record = AccessibilityEvidence.from_dict(raw or {})
            _write_json(bundle_dir / ACCESSIBILITY_TREE_FILENAME, record.to_dict())
            return record
        except Exception as e:
            logger.warning("accessibility_tree_capture_failed", error=error_message(e))
            return AccessibilityEvidence(captured=False, error=error_message(e))

    # -------------------------------------------------------------------------
    # Erros inesperados
    # -------------------------------------------------------------------------

    async def capture_error(self, page, error: BaseException) -> ErrorEvidence:
        """
        Registro leve para excecoes realmente inesperadas.

        Grava apenas error-evidence.json e um screenshot best-effort num
        diretorio error-<epoch ms>-<aleatorio>/, sem o bundle completo.
        """
        error_id = f"error-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}"
        error_dir = self.evidence_dir / error_id
        try:
            error_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("evidence_dir_unavailable", directory=str(error_dir), error=error_message(e))

        logger.info("capturing_unexpected_error", directory=str(error_dir))

        url = ""
        try:
            url = page.url
        except Exception as e:
            logger.debug("page_url_unavailable", error=error_message(e))

        record = ErrorEvidence(
            id=error_id,
            timestamp=now_iso(),
            message=error_message(error),
            stack="".join(traceback.format_exception(type(error), error, error.__traceback__)),
            url=url,
        )

        try:
            await self._screenshot(page, error_dir / ERROR_SCREENSHOT_FILENAME)
            record.screenshot = ERROR_SCREENSHOT_FILENAME
        except Exception as e:
            logger.warning("error_screenshot_failed", error=error_message(e))

        try:
            _write_json(error_dir / ERROR_EVIDENCE_FILENAME, record.to_dict())
        except OSError as e:
            logger.error("error_evidence_write_failed", directory=str(error_dir), error=error_message(e))
        return record
