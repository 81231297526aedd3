"""
Periodic polling of an Omada controller into timestamped events.

One worker runs sweeps back to back: every sweep lists the sites the user can
see and runs each emission step for each site, in a fixed order. Between
sweeps the worker sleeps in short slices so that :meth:`OmadaPoller.stop`
takes effect promptly.
"""

import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .api_client import OmadaController
from .exceptions import OmadaControllerError
from .logging import get_logger
from .models.event import EventKind, OmadaEvent
from .models.site import OmadaSite
from .utils import DEFAULT_LOOKBACK, parse_timestamp, stoppable_sleep, utcnow

logger = get_logger(__name__)

DEFAULT_INTERVAL = 60

EventSink = Callable[[OmadaEvent], Any]


class OmadaPoller:
    """
    Drives polling sweeps over all sites of one controller and emits events.

    Time-series steps (ISP load, speed tests) keep a watermark per site and
    kind: the next fetch starts where the last non-empty fetch ended. A fetch
    that returns nothing, or fails, leaves the watermark untouched. Watermarks
    live in memory only and start over after a restart.

    Args:
        controller: Controller client shared by every step.
        sink: Callable receiving each `OmadaEvent` (for example ``queue.Queue.put``).
        interval: Seconds to sleep between sweeps. Defaults to 60.
        clock: Returns the current aware UTC datetime; replaceable in tests.
    """

    def __init__(
        self,
        controller: OmadaController,
        sink: EventSink,
        interval: float = DEFAULT_INTERVAL,
        clock: Callable[[], datetime] = utcnow,
    ):
        if interval <= 0:
            raise ValueError("interval must be a positive number of seconds")
        self.controller = controller
        self.sink = sink
        self.interval = interval
        self._clock = clock

        self.watermarks: Dict[Tuple[str, EventKind], datetime] = {}
        self.sweeps_completed = 0
        self.events_emitted = 0
        self._stop_event = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self):
        """Request the polling loop to end; wakes a sleeping loop immediately."""
        if not self._stop_event.is_set():
            logger.info("Stop requested for Omada poller")
        self._stop_event.set()

    def run(self):
        """Poll until :meth:`stop` is called. Never raises for controller errors."""
        logger.info(
            f"Polling Omada controller {self.controller.base_url} every {self.interval}s")
        while not self._stop_event.is_set():
            self.run_sweep()
            stoppable_sleep(self.interval, self._stop_event)
        logger.info("Omada poller stopped")

    def _steps(self) -> List[Tuple[EventKind, Callable[[OmadaSite, datetime], int]]]:
        return [
            (EventKind.CLIENT, self.emit_clients),
            (EventKind.DEVICE, self.emit_devices),
            (EventKind.CLIENT_DISTRIBUTION, self.emit_client_distribution),
            (EventKind.ASSOCIATION_FAILURE_STATISTICS, self.emit_association_failure_statistics),
            (EventKind.ISP_LOAD, self.emit_isp_load),
            (EventKind.SPEED_TEST, self.emit_speed_tests),
        ]

    def run_sweep(self) -> int:
        """
        Run one pass over every site and every emission step.

        A failing step is logged and skipped; the remaining steps and sites
        still run. If the site list itself cannot be fetched (controller
        unreachable, login rejected) the whole sweep is abandoned and will be
        attempted again on the next interval.

        Returns:
            int: Number of events emitted during this sweep.
        """
        now = self._clock()
        try:
            sites = self.controller.get_sites()
        except OmadaControllerError as e:
            logger.error(f"Sweep aborted, could not list sites: {e}")
            return 0
        except Exception:
            logger.exception("Sweep aborted, unexpected error listing sites")
            return 0

        emitted = 0
        for site in sites:
            for kind, step in self._steps():
                try:
                    emitted += step(site, now)
                except OmadaControllerError as e:
                    logger.error(
                        f"Failed to emit {kind.value} events for site '{site.name}': {e}")
                except Exception:
                    logger.exception(
                        f"Unexpected error emitting {kind.value} events for site '{site.name}'")

        self.sweeps_completed += 1
        logger.info(
            f"Sweep {self.sweeps_completed} finished: {emitted} event(s) from {len(sites)} site(s)")
        return emitted

    def _emit(self, site: OmadaSite, kind: EventKind, data: Any, timestamp: datetime):
        self.sink(OmadaEvent(timestamp=timestamp, kind=kind, site=site, data=data))
        self.events_emitted += 1

    def _emit_each(self, site: OmadaSite, kind: EventKind, records: Iterable[Any], now: datetime) -> int:
        count = 0
        for record in records:
            self._emit(site, kind, record, now)
            count += 1
        return count

    def emit_clients(self, site: OmadaSite, now: datetime) -> int:
        return self._emit_each(site, EventKind.CLIENT, site.list_clients(), now)

    def emit_devices(self, site: OmadaSite, now: datetime) -> int:
        return self._emit_each(site, EventKind.DEVICE, site.list_devices(), now)

    def emit_client_distribution(self, site: OmadaSite, now: datetime) -> int:
        self._emit(site, EventKind.CLIENT_DISTRIBUTION, site.client_distribution(), now)
        return 1

    def emit_association_failure_statistics(self, site: OmadaSite, now: datetime) -> int:
        self._emit(
            site,
            EventKind.ASSOCIATION_FAILURE_STATISTICS,
            site.association_failure_statistics(),
            now,
        )
        return 1

    def window_start(self, site: OmadaSite, kind: EventKind, now: datetime) -> datetime:
        """Start of the next fetch window: the watermark, or the default lookback before `now`."""
        watermark: Optional[datetime] = self.watermarks.get((site.key, kind))
        if watermark is None:
            return now - DEFAULT_LOOKBACK
        return watermark

    def _emit_time_series(self, site: OmadaSite, kind: EventKind, records: list, now: datetime) -> int:
        if not records:
            logger.debug(f"No new {kind.value} data for site '{site.name}'")
            return 0
        for record in records:
            timestamp = parse_timestamp(record.time) or now
            self._emit(site, kind, record.to_dict(include_time=False), timestamp)
        self.watermarks[(site.key, kind)] = now
        return len(records)

    def emit_isp_load(self, site: OmadaSite, now: datetime) -> int:
        start = self.window_start(site, EventKind.ISP_LOAD, now)
        samples = site.latest_isp_load(start=start, end=now, raw=False)
        return self._emit_time_series(site, EventKind.ISP_LOAD, samples, now)

    def emit_speed_tests(self, site: OmadaSite, now: datetime) -> int:
        start = self.window_start(site, EventKind.SPEED_TEST, now)
        results = site.latest_speed_tests(start=start, end=now, raw=False)
        return self._emit_time_series(site, EventKind.SPEED_TEST, results, now)
