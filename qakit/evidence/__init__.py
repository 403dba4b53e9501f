"""Coleta e persistencia de bundles de evidencias de falhas."""

from .collector import EvidenceCollector, CATEGORIES

__all__ = ["EvidenceCollector", "CATEGORIES"]
