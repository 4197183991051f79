"""Observation sequences and synthetic trajectories."""
from .data import ObservationSequence, constant_velocity_trajectory

__all__ = ["ObservationSequence", "constant_velocity_trajectory"]
