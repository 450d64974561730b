"""Typed errors raised by the fairness computations.

Every error also subclasses ``ValueError`` so callers that only catch
``ValueError`` keep working.
"""
from __future__ import annotations


class FairScoreError(ValueError):
    """Base exception for all fairscore errors."""


class DimensionMismatchError(FairScoreError):
    """Arrays that must be aligned by position have different lengths."""

    def __init__(self, message: str, expected: int = -1, actual: int = -1) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class InvalidSpecError(FairScoreError):
    """Malformed confusion specification (no resolvable denominator)."""


class EmptyGroupError(FairScoreError):
    """A computation was requested over a group with no members."""


class EmptyDonorPoolError(FairScoreError):
    """No donor individuals are available for counterfactual matching."""


class DegenerateLabelError(FairScoreError):
    """Only one outcome class is present where both are required."""

    def __init__(self, message: str, n_positive: int = 0, n_negative: int = 0) -> None:
        super().__init__(message)
        self.n_positive = n_positive
        self.n_negative = n_negative
