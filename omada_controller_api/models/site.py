"""
Models for Omada sites and the site-scoped API endpoints.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union, TYPE_CHECKING

from .stats import IspLoadSample, SpeedTestResult
from ..exceptions import OmadaMalformedResponseError
from ..logging import get_logger
from ..utils import resolve_window, to_unix_seconds

if TYPE_CHECKING:
    from ..api_client import OmadaController

logger = get_logger(__name__)


@dataclass(frozen=True)
class OmadaSite:
    """
    Represents an Omada site and exposes its API endpoints.

    A site in Omada is a management scope of the controller's inventory,
    typically a physical location or network segment. It is identified by an
    opaque site key that is unique per controller.

    The site borrows the controller it was listed from to make its calls. It
    never closes that controller; it must not be used after the controller
    has been closed.
    """
    key: str
    name: str
    controller: "OmadaController" = field(repr=False, compare=False, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the OmadaSite to the dictionary embedded in emitted events.

        Returns:
            Dictionary with the site's ``name`` and ``key``.
        """
        return {"name": self.name, "key": self.key}

    def _path(self, subpath: str) -> str:
        if not subpath.startswith("/"):
            subpath = "/" + subpath
        return f"/api/v2/sites/{self.key}{subpath}"

    def send_request(
        self,
        method: str,
        subpath: str,
        query_parameters: Optional[Dict[str, Any]] = None,
        json_payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make an authenticated request to a path below this site."""
        return self.controller.send_request(
            method, self._path(subpath), query_parameters, json_payload)

    def enumerate_pages(self, subpath: str) -> List[Any]:
        """Fetch every page of a paginated list below this site."""
        return self.controller.enumerate_pages(self._path(subpath))

    def list_clients(self) -> List[Dict[str, Any]]:
        """
        Get all clients known to the site.

        Uses the paginated ``/clients`` endpoint.

        Returns:
            List[Dict[str, Any]]: Raw client records as returned by the controller.
        """
        logger.info(f"Fetching clients for site '{self.name}'")
        return self.enumerate_pages("/clients")

    def list_devices(self) -> List[Dict[str, Any]]:
        """
        Get all adopted and pending devices (gateways, switches, access points) of the site.

        Returns:
            List[Dict[str, Any]]: Raw device records. The endpoint is not paginated.
        """
        logger.info(f"Fetching devices for site '{self.name}'")
        result = self.send_request("GET", "/devices")
        return result if result is not None else []

    def list_events(self) -> List[Dict[str, Any]]:
        """Get the site's event log via the paginated ``/events`` endpoint."""
        logger.info(f"Fetching events for site '{self.name}'")
        return self.enumerate_pages("/events")

    def client_distribution(self) -> Dict[str, Any]:
        """
        Get the dashboard snapshot of client counts per radio band and connection type.

        Returns:
            Dict[str, Any]: Raw result of ``/dashboard/clientsFreqDistribution``.
        """
        return self.send_request("GET", "/dashboard/clientsFreqDistribution")

    def association_failure_statistics(self) -> Any:
        """Get the dashboard snapshot of client association failures (``/dashboard/associationFailures``)."""
        return self.send_request("GET", "/dashboard/associationFailures")

    def latest_isp_load(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        raw: bool = True,
    ) -> Union[List[Dict[str, Any]], List[IspLoadSample]]:
        """
        Get the most recent ISP load sample of every WAN port.

        The controller returns one time series per port. Only the last sample
        of each series is kept; ports whose series is empty are dropped.

        Args:
            start: Beginning of the query window. Defaults to one day before `end`.
            end: End of the query window. Defaults to now.
            raw (bool): If True (default), returns dictionaries shaped as
                        ``{port: {id, name}, totalRate, latency, time}``.
                        If False, returns `IspLoadSample` objects.

        Returns:
            Union[List[Dict[str, Any]], List[IspLoadSample]]: One entry per port with data.

        Raises:
            OmadaMalformedResponseError: If the result is not a list of port series.
        """
        start, end = resolve_window(start, end)
        result = self.send_request("GET", "/dashboard/ispLoad", {
            "start": to_unix_seconds(start),
            "end": to_unix_seconds(end),
        })
        if result is None:
            result = []
        if not isinstance(result, list):
            raise OmadaMalformedResponseError(
                f"ISP load for site '{self.name}' is not a list")

        samples = []
        for port in result:
            series = port.get("data") or []
            if not series:
                logger.debug(f"No ISP load samples for port {port.get('portName')!r}")
                continue
            samples.append(IspLoadSample.from_api(port, series[-1]))

        if raw:
            return [sample.to_dict() for sample in samples]
        return samples

    def latest_speed_tests(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        raw: bool = True,
    ) -> Union[List[Dict[str, Any]], List[SpeedTestResult]]:
        """
        Get the per-port results of the most recent WAN speed test.

        Only the last test run in the window is inspected. Its ``ports``
        array is flattened into one record per port, each carrying the run's time.

        Args:
            start: Beginning of the query window. Defaults to one day before `end`.
            end: End of the query window. Defaults to now.
            raw (bool): If True (default), returns dictionaries shaped as
                        ``{time, port: {id, name}, latencyMs, downloadBandwidthMbps,
                        uploadBandwidthMbps}``. If False, returns `SpeedTestResult` objects.

        Returns:
            Union[List[Dict[str, Any]], List[SpeedTestResult]]: Empty if no test ran in the window.

        Note:
            The controller exposes this query as a POST with the window in the body.
        """
        start, end = resolve_window(start, end)
        result = self.send_request("POST", "/stat/wanSpeeds", json_payload={
            "start": to_unix_seconds(start),
            "end": to_unix_seconds(end),
        })
        if not result:
            return []
        if not isinstance(result, list):
            raise OmadaMalformedResponseError(
                f"WAN speed tests for site '{self.name}' are not a list")

        last = result[-1]
        results = [SpeedTestResult.from_api(last, port) for port in last.get("ports") or []]

        if raw:
            return [speed_test.to_dict() for speed_test in results]
        return results
