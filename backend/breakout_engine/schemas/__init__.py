"""Centralized Pydantic schemas for API requests/responses"""

from .signal import LiveSignalRequest, LiveSignalResponse, SignalAcceptedResponse, SignalRequest

__all__ = [
    "SignalRequest",
    "SignalAcceptedResponse",
    "LiveSignalRequest",
    "LiveSignalResponse",
]
