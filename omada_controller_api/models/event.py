from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, TYPE_CHECKING

from ..utils import isoformat_utc

if TYPE_CHECKING:
    from .site import OmadaSite


class EventKind(str, Enum):
    """Classification of an emitted event; the value is the tag suffix."""
    CLIENT = "client"
    DEVICE = "device"
    CLIENT_DISTRIBUTION = "client_distribution"
    ASSOCIATION_FAILURE_STATISTICS = "association_failure_statistics"
    ISP_LOAD = "isp_load"
    SPEED_TEST = "speed_test"

    @property
    def payload_key(self) -> str:
        """Key under which the metric data is nested in the event payload."""
        return _PAYLOAD_KEYS[self]

    @property
    def tag(self) -> str:
        return f"omada.{self.value}"


_PAYLOAD_KEYS = {
    EventKind.CLIENT: "client",
    EventKind.DEVICE: "device",
    EventKind.CLIENT_DISTRIBUTION: "clientDistribution",
    EventKind.ASSOCIATION_FAILURE_STATISTICS: "associationFailureStatistics",
    EventKind.ISP_LOAD: "ispLoad",
    EventKind.SPEED_TEST: "speedTest",
}


@dataclass(frozen=True)
class OmadaEvent:
    """A single timestamped record produced by one polling step for one site."""
    timestamp: datetime
    kind: EventKind
    site: "OmadaSite"
    data: Any

    @property
    def tags(self) -> List[str]:
        return [self.kind.tag]

    @property
    def payload(self) -> Dict[str, Any]:
        """The ``{site: {name, key}, <metricKey>: <data>}`` document of the event."""
        return {
            "site": self.site.to_dict(),
            self.kind.payload_key: self.data,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Converts the event to a JSON-serializable dictionary."""
        return {
            "@timestamp": isoformat_utc(self.timestamp),
            "tags": self.tags,
            "omada": self.payload,
        }
