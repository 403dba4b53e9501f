"""
Modelos de dados para evidencias de falha.

Contem:
- Primitivas de evidencia (NetworkFailure, ConsoleError, PerformanceMetrics)
- Evidence: entrada imutavel do classificador
- EvidenceBundle e seus sub-registros: saida do coletor de evidencias
- ErrorEvidence: registro leve para erros inesperados
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, TYPE_CHECKING
import json

if TYPE_CHECKING:
    from qakit.models.health import PageHealthReport


MANIFEST_FILENAME = "evidence.json"


@dataclass(frozen=True)
class NetworkFailure:
    """Requisicao que falhou (status HTTP >= 400 ou erro de rede)."""
    url: str
    status: Optional[int] = None
    status_text: str = ""
    failure_reason: Optional[str] = None
    timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        """Converte para dicionario."""
        return {
            "url": self.url,
            "status": self.status,
            "status_text": self.status_text,
            "failure_reason": self.failure_reason,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NetworkFailure":
        """Cria a partir de dicionario."""
        return cls(
            url=data.get("url", ""),
            status=data.get("status"),
            status_text=data.get("status_text", ""),
            failure_reason=data.get("failure_reason"),
            timestamp=data.get("timestamp"),
        )


@dataclass(frozen=True)
class ConsoleError:
    """Mensagem de console (erro/warning) ou excecao nao tratada da pagina."""
    type: str
    text: str
    location: Optional[str] = None
    timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        """Converte para dicionario."""
        return {
            "type": self.type,
            "text": self.text,
            "location": self.location,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConsoleError":
        """Cria a partir de dicionario."""
        return cls(
            type=data.get("type", "error"),
            text=data.get("text", ""),
            location=data.get("location"),
            timestamp=data.get("timestamp"),
        )


@dataclass(frozen=True)
class NavigationTiming:
    dom_content_loaded: Optional[float] = None
    load_complete: Optional[float] = None


@dataclass(frozen=True)
class MemoryUsage:
    used_js_heap_size: int = 0
    total_js_heap_size: int = 0


@dataclass(frozen=True)
class PaintTiming:
    first_contentful_paint: Optional[float] = None
    largest_contentful_paint: Optional[float] = None


@dataclass(frozen=True)
class PerformanceMetrics:
    """Metricas de performance relevantes para a classificacao."""
    navigation: Optional[NavigationTiming] = None
    memory: Optional[MemoryUsage] = None
    timing: Optional[PaintTiming] = None


@dataclass(frozen=True)
class Evidence:
    """
    Descricao normalizada, independente da pagina, dos sintomas de uma falha.

    Unica entrada do FailureClassifier. Imutavel: as colecoes sao tuplas.
    """
    url: str
    timestamp: str
    error_message: Optional[str] = None
    network_failures: tuple[NetworkFailure, ...] = ()
    console_errors: tuple[ConsoleError, ...] = ()
    performance_metrics: Optional[PerformanceMetrics] = None
    screenshot: Optional[str] = None
    dom_snapshot: Optional[str] = None

    @classmethod
    def from_bundle(
        cls,
        bundle: "EvidenceBundle",
        health_report: Optional["PageHealthReport"] = None,
    ) -> "Evidence":
        """
        Converte um EvidenceBundle (saida do coletor) em Evidence.

        Categorias nao capturadas simplesmente ficam ausentes. Se um
        relatorio de saude for informado, ele fornece o first contentful
        paint quando o bundle nao tem um.
        """
        network_failures: tuple[NetworkFailure, ...] = ()
        if bundle.network_failures and bundle.network_failures.captured:
            network_failures = tuple(bundle.network_failures.failures)

        console_errors: tuple[ConsoleError, ...] = ()
        if bundle.console_errors and bundle.console_errors.captured:
            console_errors = tuple(bundle.console_errors.errors)

        metrics = None
        perf = bundle.performance_metrics
        if perf and perf.captured:
            metrics = perf.to_performance_metrics()

        if health_report is not None and health_report.metrics.first_contentful_paint is not None:
            fcp = health_report.metrics.first_contentful_paint
            if metrics is None:
                metrics = PerformanceMetrics(timing=PaintTiming(first_contentful_paint=fcp))
            elif metrics.timing is None or metrics.timing.first_contentful_paint is None:
                lcp = metrics.timing.largest_contentful_paint if metrics.timing else None
                metrics = PerformanceMetrics(
                    navigation=metrics.navigation,
                    memory=metrics.memory,
                    timing=PaintTiming(first_contentful_paint=fcp, largest_contentful_paint=lcp),
                )

        screenshot = None
        if bundle.screenshot and bundle.screenshot.captured:
            screenshot = bundle.screenshot.path

        dom_snapshot = None
        if bundle.dom_snapshot and bundle.dom_snapshot.captured:
            dom_snapshot = bundle.dom_snapshot.path

        return cls(
            url=bundle.url,
            timestamp=bundle.timestamp,
            error_message=bundle.error_message or None,
            network_failures=network_failures,
            console_errors=console_errors,
            performance_metrics=metrics,
            screenshot=screenshot,
            dom_snapshot=dom_snapshot,
        )


@dataclass
class FailureInfo:
    """Descricao da falha entregue ao coletor: {name, error, type?}."""
    name: str
    error: str
    type: Optional[str] = None


# =============================================================================
# Sub-registros do bundle
# =============================================================================

@dataclass
class ScreenshotEvidence:
    path: str = ""
    type: str = ""
    captured: bool = True
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {"path": self.path, "type": self.type, "captured": self.captured, "error": self.error}

    @classmethod
    def from_dict(cls, data: dict) -> "ScreenshotEvidence":
        return cls(
            path=data.get("path", ""),
            type=data.get("type", ""),
            captured=data.get("captured", True),
            error=data.get("error"),
        )


@dataclass
class DOMSnapshotEvidence:
    path: str = ""
    size: int = 0
    captured: bool = True
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {"path": self.path, "size": self.size, "captured": self.captured, "error": self.error}

    @classmethod
    def from_dict(cls, data: dict) -> "DOMSnapshotEvidence":
        return cls(
            path=data.get("path", ""),
            size=data.get("size", 0),
            captured=data.get("captured", True),
            error=data.get("error"),
        )


@dataclass
class ConsoleErrorsEvidence:
    errors: list[ConsoleError] = field(default_factory=list)
    captured: bool = True
    error: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "errors": [e.to_dict() for e in self.errors],
            "captured": self.captured,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConsoleErrorsEvidence":
        return cls(
            errors=[ConsoleError.from_dict(e) for e in data.get("errors", [])],
            captured=data.get("captured", True),
            error=data.get("error"),
        )


@dataclass
class NetworkFailuresEvidence:
    failures: list[NetworkFailure] = field(default_factory=list)
    captured: bool = True
    error: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "failures": [f.to_dict() for f in self.failures],
            "captured": self.captured,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NetworkFailuresEvidence":
        return cls(
            failures=[NetworkFailure.from_dict(f) for f in data.get("failures", [])],
            captured=data.get("captured", True),
            error=data.get("error"),
        )


@dataclass
class PerformanceMetricsEvidence:
    """
    Metricas brutas do browser.

    navigation: dom_content_loaded, load_complete, redirect_time, dns_time,
    connect_time, response_time (ms). paint: [{name, start_time}].
    resources: {total, by_type, slow_requests}. memory: heap do JS (bytes).
    """
    navigation: Optional[dict] = None
    paint: list[dict] = field(default_factory=list)
    resources: dict = field(default_factory=lambda: {"total": 0, "by_type": {}, "slow_requests": []})
    memory: Optional[dict] = None
    timestamp: Optional[float] = None
    captured: bool = True
    error: Optional[str] = None

    def paint_time(self, name: str) -> Optional[float]:
        """Start time de uma entrada de paint (ex: 'first-contentful-paint')."""
        for entry in self.paint:
            if entry.get("name") == name:
                return entry.get("start_time")
        return None

    def to_performance_metrics(self) -> PerformanceMetrics:
        """Reduz as metricas brutas ao formato usado na classificacao."""
        navigation = None
        if self.navigation:
            navigation = NavigationTiming(
                dom_content_loaded=self.navigation.get("dom_content_loaded"),
                load_complete=self.navigation.get("load_complete"),
            )

        memory = None
        if self.memory:
            memory = MemoryUsage(
                used_js_heap_size=self.memory.get("used_js_heap_size", 0),
                total_js_heap_size=self.memory.get("total_js_heap_size", 0),
            )

        timing = None
        fcp = self.paint_time("first-contentful-paint")
        lcp = self.paint_time("largest-contentful-paint")
        if fcp is not None or lcp is not None:
            timing = PaintTiming(first_contentful_paint=fcp, largest_contentful_paint=lcp)

        return PerformanceMetrics(navigation=navigation, memory=memory, timing=timing)

    def to_dict(self) -> dict:
        return {
            "navigation": self.navigation,
            "paint": self.paint,
            "resources": self.resources,
            "memory": self.memory,
            "timestamp": self.timestamp,
            "captured": self.captured,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PerformanceMetricsEvidence":
        return cls(
            navigation=data.get("navigation"),
            paint=data.get("paint", []),
            resources=data.get("resources", {"total": 0, "by_type": {}, "slow_requests": []}),
            memory=data.get("memory"),
            timestamp=data.get("timestamp"),
            captured=data.get("captured", True),
            error=data.get("error"),
        )


@dataclass
class StorageStateEvidence:
    local_storage: dict = field(default_factory=dict)
    session_storage: dict = field(default_factory=dict)
    cookies: str = ""
    captured: bool = True
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "local_storage": self.local_storage,
            "session_storage": self.session_storage,
            "cookies": self.cookies,
            "captured": self.captured,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StorageStateEvidence":
        return cls(
            local_storage=data.get("local_storage", {}),
            session_storage=data.get("session_storage", {}),
            cookies=data.get("cookies", ""),
            captured=data.get("captured", True),
            error=data.get("error"),
        )


@dataclass
class AccessibilityEvidence:
    interactive_elements: list[dict] = field(default_factory=list)
    headings: list[dict] = field(default_factory=list)
    title: str = ""
    lang: str = ""
    has_skip_link: bool = False
    captured: bool = True
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "interactive_elements": self.interactive_elements,
            "headings": self.headings,
            "title": self.title,
            "lang": self.lang,
            "has_skip_link": self.has_skip_link,
            "captured": self.captured,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AccessibilityEvidence":
        return cls(
            interactive_elements=data.get("interactive_elements", []),
            headings=data.get("headings", []),
            title=data.get("title", ""),
            lang=data.get("lang", ""),
            has_skip_link=data.get("has_skip_link", False),
            captured=data.get("captured", True),
            error=data.get("error"),
        )


@dataclass
class EvidenceBundle:
    """
    Registro forense de uma falha, gravado em disco pelo EvidenceCollector.

    Cada categoria pode estar ausente (None) ou marcada com captured=False
    e a mensagem do erro que impediu a captura.
    """
    id: str
    timestamp: str
    test_name: str
    error_message: str
    url: str = ""
    viewport: Optional[dict] = None
    user_agent: str = ""
    failure_type: Optional[str] = None
    directory: Optional[str] = None

    screenshot: Optional[ScreenshotEvidence] = None
    dom_snapshot: Optional[DOMSnapshotEvidence] = None
    console_errors: Optional[ConsoleErrorsEvidence] = None
    network_failures: Optional[NetworkFailuresEvidence] = None
    performance_metrics: Optional[PerformanceMetricsEvidence] = None
    storage_state: Optional[StorageStateEvidence] = None
    accessibility: Optional[AccessibilityEvidence] = None

    @property
    def manifest_path(self) -> Optional[Path]:
        """Caminho do evidence.json, se o bundle ja tem diretorio."""
        if not self.directory:
            return None
        return Path(self.directory) / MANIFEST_FILENAME

    def captured_categories(self) -> list[str]:
        """Categorias presentes e capturadas com sucesso."""
        categories = {
            "screenshot": self.screenshot,
            "dom_snapshot": self.dom_snapshot,
            "console_errors": self.console_errors,
            "network_failures": self.network_failures,
            "performance_metrics": self.performance_metrics,
            "storage_state": self.storage_state,
            "accessibility": self.accessibility,
        }
        return [name for name, record in categories.items() if record is not None and record.captured]

    def to_dict(self) -> dict:
        """Converte para dicionario (formato do manifesto)."""
        def _dump(record):
            return record.to_dict() if record is not None else None

        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "test_name": self.test_name,
            "error_message": self.error_message,
            "failure_type": self.failure_type,
            "url": self.url,
            "viewport": self.viewport,
            "user_agent": self.user_agent,
            "directory": self.directory,
            "screenshot": _dump(self.screenshot),
            "dom_snapshot": _dump(self.dom_snapshot),
            "console_errors": _dump(self.console_errors),
            "network_failures": _dump(self.network_failures),
            "performance_metrics": _dump(self.performance_metrics),
            "storage_state": _dump(self.storage_state),
            "accessibility": _dump(self.accessibility),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EvidenceBundle":
        """Cria a partir de dicionario."""
        def _load(key, record_cls):
            value = data.get(key)
            return record_cls.from_dict(value) if value is not None else None

        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            test_name=data.get("test_name", ""),
            error_message=data.get("error_message", ""),
            failure_type=data.get("failure_type"),
            url=data.get("url", ""),
            viewport=data.get("viewport"),
            user_agent=data.get("user_agent", ""),
            directory=data.get("directory"),
            screenshot=_load("screenshot", ScreenshotEvidence),
            dom_snapshot=_load("dom_snapshot", DOMSnapshotEvidence),
            console_errors=_load("console_errors", ConsoleErrorsEvidence),
            network_failures=_load("network_failures", NetworkFailuresEvidence),
            performance_metrics=_load("performance_metrics", PerformanceMetricsEvidence),
            storage_state=_load("storage_state", StorageStateEvidence),
            accessibility=_load("accessibility", AccessibilityEvidence),
        )

    def save(self, filepath: Optional[str] = None) -> Path:
        """Salva o manifesto em JSON."""
        path = Path(filepath) if filepath else self.manifest_path
        if path is None:
            raise ValueError("Bundle sem diretorio: informe o caminho do manifesto")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        return path


def load_bundle(path: str) -> EvidenceBundle:
    """
    Carrega um bundle persistido.

    Aceita o diretorio do bundle ou o caminho do evidence.json.
    """
    manifest = Path(path)
    if manifest.is_dir():
        manifest = manifest / MANIFEST_FILENAME
    with open(manifest, "r", encoding="utf-8") as f:
        return EvidenceBundle.from_dict(json.load(f))


@dataclass
class ErrorEvidence:
    """Registro leve de um erro inesperado (sem bundle completo)."""
    id: str
    timestamp: str
    message: str
    url: str = ""
    type: str = "UnexpectedError"
    stack: Optional[str] = None
    screenshot: Optional[str] = None

    def to_dict(self) -> dict:
        """Converte para dicionario."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type,
            "message": self.message,
            "stack": self.stack,
            "url": self.url,
            "screenshot": self.screenshot,
        }


def now_iso() -> str:
    """Timestamp ISO 8601 em UTC, com sufixo Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
