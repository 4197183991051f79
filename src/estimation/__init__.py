"""Gated constant-velocity Kalman tracking.

Submodules are imported lazily so that ``from estimation import TrackingRun``
only pulls in TensorFlow when it is actually needed.
"""
import importlib
import os
from typing import Dict

os.environ.setdefault("TF_ENABLE_ONEDNN_OPTS", "0")

_EXPORTS: Dict[str, str] = {
    "MotionModel": ".KalmanFilter",
    "KalmanFilterCore": ".KalmanFilter",
    "GateDecision": ".gating",
    "GatingValidator": ".gating",
    "threshold_from_probability": ".gating",
    "TrackingRun": ".tracking_run",
    "RunResult": ".tracking_run",
    "HyperparameterSearch": ".search",
    "SearchResult": ".search",
    "TrackingConfig": ".config",
    "candidate_grid": ".config",
    "summarize": ".metrics",
    "axis_errors": ".metrics",
    "evaluate": ".pipeline",
    "TrackingReport": ".pipeline",
    "TrackingError": ".errors",
    "ValidationError": ".errors",
    "SingularCovarianceError": ".errors",
    "InternalInvariantError": ".errors",
}

__all__ = list(_EXPORTS.keys())


def __getattr__(name: str):
    """Import the submodule defining ``name`` on first access."""
    if name in _EXPORTS:
        module = importlib.import_module(_EXPORTS[name], __name__)
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__} has no attribute {name}")


def __dir__():
    return sorted(list(globals().keys()) + __all__)
