"""
Data models for Omada Controller API responses.

.. warning::
    Client, device and dashboard records are passed through exactly as the
    controller returns them, because their shape varies between controller
    releases and device models. Only the time-series statistics are reshaped
    into the dataclasses defined here.
"""

from .site import OmadaSite
from .event import OmadaEvent, EventKind
from .stats import IspLoadSample, SpeedTestResult

__all__ = [
    "OmadaSite",
    "OmadaEvent",
    "EventKind",
    "IspLoadSample",
    "SpeedTestResult",
]
