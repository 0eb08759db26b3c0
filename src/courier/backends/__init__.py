"""Delivery backends."""

from courier.backends.base import Backend
from courier.backends.simulated import RecordingBackend, SentMessage, SimulatedBackend

__all__ = ["Backend", "RecordingBackend", "SentMessage", "SimulatedBackend"]
