"""
Functions for exporting Omada events to various formats.

This module provides simple export utilities and sinks for events produced
by the poller: JSON, JSON lines, CSV and plain Python dictionaries.
"""

import csv
import json
import sys
import threading
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, TextIO

from .models.event import OmadaEvent
from .logging import get_logger
from .utils import isoformat_utc

logger = get_logger(__name__)

# Columns every CSV row starts with, ahead of the flattened payload.
EVENT_COLUMNS = ["@timestamp", "tags", "site.key", "site.name"]


class OmadaEncoder(json.JSONEncoder):
    """JSON encoder for events, models, datetimes and event kinds."""

    def default(self, obj):
        if isinstance(obj, datetime):
            return isoformat_utc(obj)
        if isinstance(obj, Enum):
            return obj.value
        if hasattr(obj, "to_dict") and callable(getattr(obj, "to_dict")):
            return obj.to_dict()
        return super().default(obj)


def to_dict_list(items: Iterable[Any]) -> List[Dict[str, Any]]:
    """
    Convert events (or other model objects) to a list of dictionaries.

    Args:
        items: Objects providing ``to_dict()``, or plain dictionaries

    Returns:
        List of dictionaries
    """
    result = []

    for item in items:
        if hasattr(item, "to_dict") and callable(getattr(item, "to_dict")):
            result.append(item.to_dict())
        elif isinstance(item, dict):
            result.append(item)

    return result


def _flatten_payload(value: Any, prefix: str) -> Dict[str, Any]:
    """
    Flatten an event payload into dotted column names under `prefix`.

    Nested dictionaries become ``prefix.key.subkey`` columns. Lists are kept
    whole as a JSON string, since their length varies between events.
    """
    if isinstance(value, dict):
        columns = {}
        for key, item in value.items():
            columns.update(_flatten_payload(item, f"{prefix}.{key}"))
        return columns
    if isinstance(value, list):
        return {prefix: json.dumps(value, cls=OmadaEncoder)}
    return {prefix: value}


def event_row(event: OmadaEvent) -> Dict[str, Any]:
    """
    Build the flat CSV row for one event.

    The row holds the event timestamp, its tags and the site identity,
    followed by the payload flattened under the kind's payload key
    (``ispLoad.port.id``, ``device.mac`` and so on).
    """
    row = {
        "@timestamp": isoformat_utc(event.timestamp),
        "tags": ",".join(event.tags),
        "site.key": event.site.key,
        "site.name": event.site.name,
    }
    row.update(_flatten_payload(event.data, event.kind.payload_key))
    return row


def export_csv(
    events: List[OmadaEvent],
    path: str,
    fields: Optional[List[str]] = None,
) -> None:
    """
    Export events to a CSV file, one row per event.

    See :func:`event_row` for the columns. Events of different kinds can share
    one file; a row leaves the other kinds' payload columns empty.

    Args:
        events: Events to export
        path: Path where the CSV file will be saved
        fields: Optional list of columns to include. If not provided, the
                event columns come first, then every payload column in
                first-seen order.
    """
    rows = [event_row(event) for event in events]

    if not rows:
        with open(path, "w", newline="", encoding="utf-8") as csvfile:
            csvfile.write("")
        return

    if fields:
        final_fields = fields
    else:
        final_fields = list(EVENT_COLUMNS)
        for row in rows:
            for key in row:
                if key not in final_fields:
                    final_fields.append(key)

    with open(path, "w", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=final_fields, extrasaction="ignore")
        writer.writeheader()

        writer.writerows(rows)
    logger.debug(f"Exported {len(rows)} event(s) to {path}")


def export_json(events: List[OmadaEvent], path: str, indent: int = 2) -> None:
    """
    Export events to a JSON file.

    Args:
        events: Events to export
        path: Path where the JSON file will be saved
        indent: Number of spaces for indentation in the JSON file (default: 2)
    """
    with open(path, "w", encoding="utf-8") as jsonfile:
        json.dump(to_dict_list(events), jsonfile, indent=indent, cls=OmadaEncoder)


class JsonLinesSink:
    """
    Event sink writing one JSON document per line to a text stream.

    Instances are callables and can be passed directly as the poller's sink.

    Args:
        stream: Text stream to write to. Defaults to standard output.
        flush: Whether to flush the stream after every event.
    """

    def __init__(self, stream: Optional[TextIO] = None, flush: bool = True):
        self.stream = stream if stream is not None else sys.stdout
        self.flush = flush
        self._lock = threading.Lock()

    def __call__(self, event: OmadaEvent) -> None:
        line = json.dumps(event.to_dict(), cls=OmadaEncoder)
        with self._lock:
            self.stream.write(line + "\n")
            if self.flush:
                self.stream.flush()
