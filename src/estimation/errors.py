"""Exception types raised by the tracking core.

- ValidationError: malformed inputs, raised before any filtering starts.
- SingularCovarianceError: the innovation covariance could not be inverted.
  A TrackingRun recovers from it by treating the step as predict-only.
- InternalInvariantError: covariance or gate arithmetic produced an
  impossible value (asymmetry, negative variance, negative distance).
"""
from __future__ import annotations


class TrackingError(Exception):
    """Base class for all errors raised by the estimation package."""


class ValidationError(TrackingError, ValueError):
    """Input sequences or configuration values are malformed."""


class SingularCovarianceError(TrackingError, ValueError):
    """A covariance matrix is singular or too ill-conditioned to invert."""

    def __init__(self, message: str, condition: float = float("inf")) -> None:
        super().__init__(message)
        self.condition = condition


class InternalInvariantError(TrackingError, RuntimeError):
    """Matrix arithmetic broke an invariant that correct inputs cannot break."""
