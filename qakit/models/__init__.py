"""
Modelos de dados do qakit.

Exporta:
- Evidence, EvidenceBundle e sub-registros (evidence.py)
- Classification, FullClassification (classification.py)
- PageHealthReport e metricas (health.py)
- ResourceLimits, ResourceStats, CircuitBreakerState (resources.py)
"""

from .evidence import (
    Evidence,
    NetworkFailure,
    ConsoleError,
    PerformanceMetrics,
    NavigationTiming,
    MemoryUsage,
    PaintTiming,
    FailureInfo,
    EvidenceBundle,
    ScreenshotEvidence,
    DOMSnapshotEvidence,
    ConsoleErrorsEvidence,
    NetworkFailuresEvidence,
    PerformanceMetricsEvidence,
    StorageStateEvidence,
    AccessibilityEvidence,
    ErrorEvidence,
    load_bundle,
)

from .classification import (
    ClassificationType,
    Classification,
    FullClassification,
    MAX_CONFIDENCE,
)

from .health import (
    Severity,
    AccessibilityIssue,
    PageHealthMetrics,
    PageHealthReport,
)

from .resources import (
    CircuitState,
    ResourceLimits,
    ResourceStats,
    CircuitBreakerState,
    ResourceUsage,
    EnvironmentChecks,
)

__all__ = [
    # Enums
    "ClassificationType",
    "Severity",
    "CircuitState",
    # Evidence
    "Evidence",
    "NetworkFailure",
    "ConsoleError",
    "PerformanceMetrics",
    "NavigationTiming",
    "MemoryUsage",
    "PaintTiming",
    "FailureInfo",
    "EvidenceBundle",
    "ScreenshotEvidence",
    "DOMSnapshotEvidence",
    "ConsoleErrorsEvidence",
    "NetworkFailuresEvidence",
    "PerformanceMetricsEvidence",
    "StorageStateEvidence",
    "AccessibilityEvidence",
    "ErrorEvidence",
    "load_bundle",
    # Classification
    "Classification",
    "FullClassification",
    "MAX_CONFIDENCE",
    # Health
    "AccessibilityIssue",
    "PageHealthMetrics",
    "PageHealthReport",
    # Resources
    "ResourceLimits",
    "ResourceStats",
    "CircuitBreakerState",
    "ResourceUsage",
    "EnvironmentChecks",
]
