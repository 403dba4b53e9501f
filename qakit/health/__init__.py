"""Score de saude de pagina (0-100) a partir de sinais observados."""

from .page_health import PageHealthScorer

__all__ = ["PageHealthScorer"]
