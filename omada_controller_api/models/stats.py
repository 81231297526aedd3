"""
Models for the reshaped time-series statistics of an Omada site.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class IspLoadSample:
    """The most recent ISP load sample of one WAN port (``/dashboard/ispLoad``)."""
    port_id: Optional[str]
    port_name: Optional[str]
    total_rate: Optional[float]
    latency: Optional[float]
    time: Optional[int]

    @classmethod
    def from_api(cls, port: Dict[str, Any], sample: Dict[str, Any]) -> "IspLoadSample":
        """Build from a port entry and the sample picked out of its ``data`` series."""
        return cls(
            port_id=port.get("portId"),
            port_name=port.get("portName"),
            total_rate=sample.get("totalRate"),
            latency=sample.get("latency"),
            time=sample.get("time"),
        )

    def to_dict(self, include_time: bool = True) -> Dict[str, Any]:
        data = {
            "port": {"id": self.port_id, "name": self.port_name},
            "totalRate": self.total_rate,
            "latency": self.latency,
        }
        if include_time:
            data["time"] = self.time
        return data


@dataclass
class SpeedTestResult:
    """
    One WAN port's result from a speed test run (``/stat/wanSpeeds``).

    Attributes:
        time: Time of the test run. Ports carry no time of their own, so every
            port of a run shares the run's time.
        port_id: Identifier of the WAN port.
        port_name: Display name of the WAN port.
        latency_ms: Measured latency in milliseconds.
        download_bandwidth_mbps: Measured download bandwidth in Mbps.
        upload_bandwidth_mbps: Measured upload bandwidth in Mbps.
    """
    time: Optional[int]
    port_id: Optional[str]
    port_name: Optional[str]
    latency_ms: Optional[float]
    download_bandwidth_mbps: Optional[float]
    upload_bandwidth_mbps: Optional[float]

    @classmethod
    def from_api(cls, entry: Dict[str, Any], port: Dict[str, Any]) -> "SpeedTestResult":
        """Build from a speed test run and one element of its ``ports`` array."""
        return cls(
            time=entry.get("time"),
            port_id=port.get("portId"),
            port_name=port.get("name"),
            latency_ms=port.get("latency"),
            download_bandwidth_mbps=port.get("down"),
            upload_bandwidth_mbps=port.get("up"),
        )

    def to_dict(self, include_time: bool = True) -> Dict[str, Any]:
        data = {}
        if include_time:
            data["time"] = self.time
        data.update({
            "port": {"id": self.port_id, "name": self.port_name},
            "latencyMs": self.latency_ms,
            "downloadBandwidthMbps": self.download_bandwidth_mbps,
            "uploadBandwidthMbps": self.upload_bandwidth_mbps,
        })
        return data
