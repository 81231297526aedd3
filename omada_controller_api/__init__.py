"""
Omada Controller API client for polling a TP-Link Omada SDN controller.

This package provides a Python interface to the Omada Controller web API,
allowing read-only access to sites, clients, devices and dashboard
statistics, and a poller that turns them into timestamped events.
"""

__version__ = "0.1.0"

from .api_client import OmadaController
from .poller import OmadaPoller
from .config import PollerConfig
from .models import OmadaSite, OmadaEvent, EventKind, IspLoadSample, SpeedTestResult
from .export import export_csv, export_json, to_dict_list, JsonLinesSink
from .exceptions import (
    OmadaControllerError,
    OmadaConnectivityError,
    OmadaAuthenticationError,
    OmadaAPIError,
    OmadaMalformedResponseError,
)

__all__ = [
    "OmadaController",
    "OmadaPoller",
    "PollerConfig",
    "OmadaSite",
    "OmadaEvent",
    "EventKind",
    "IspLoadSample",
    "SpeedTestResult",
    "export_csv",
    "export_json",
    "to_dict_list",
    "JsonLinesSink",
    "OmadaControllerError",
    "OmadaConnectivityError",
    "OmadaAuthenticationError",
    "OmadaAPIError",
    "OmadaMalformedResponseError",
]
