"""Classificacao heuristica de falhas de testes."""

from .failure_classifier import FailureClassifier

__all__ = ["FailureClassifier"]
