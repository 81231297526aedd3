"""Tests for event serialization and the export helpers."""

import csv
import io
import json
from datetime import datetime, timezone

import pytest

from omada_controller_api.export import (
    JsonLinesSink,
    OmadaEncoder,
    event_row,
    export_csv,
    export_json,
    to_dict_list,
)
from omada_controller_api.models import EventKind, OmadaEvent, OmadaSite

WHEN = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def site():
    return OmadaSite(key="site1", name="Headquarters", controller=None)


@pytest.fixture
def events(site):
    return [
        OmadaEvent(timestamp=WHEN, kind=EventKind.DEVICE, site=site,
                   data={"mac": "AA-BB-CC-00-11-22", "status": 14}),
        OmadaEvent(timestamp=WHEN, kind=EventKind.ISP_LOAD, site=site,
                   data={"port": {"id": "wan1", "name": "WAN1"}, "totalRate": 1.5, "latency": 7}),
    ]


def test_event_to_dict(events):
    assert events[0].to_dict() == {
        "@timestamp": "2024-05-01T12:30:00Z",
        "tags": ["omada.device"],
        "omada": {
            "site": {"name": "Headquarters", "key": "site1"},
            "device": {"mac": "AA-BB-CC-00-11-22", "status": 14},
        },
    }


@pytest.mark.parametrize("kind, payload_key", [
    (EventKind.CLIENT, "client"),
    (EventKind.DEVICE, "device"),
    (EventKind.CLIENT_DISTRIBUTION, "clientDistribution"),
    (EventKind.ASSOCIATION_FAILURE_STATISTICS, "associationFailureStatistics"),
    (EventKind.ISP_LOAD, "ispLoad"),
    (EventKind.SPEED_TEST, "speedTest"),
])
def test_payload_keys(kind, payload_key):
    assert kind.payload_key == payload_key
    assert kind.tag == f"omada.{kind.value}"


def test_to_dict_list_accepts_dicts(events):
    result = to_dict_list([events[0], {"raw": True}, 42])
    assert result[1] == {"raw": True}
    assert len(result) == 2


def test_json_lines_sink(events):
    stream = io.StringIO()
    sink = JsonLinesSink(stream)

    for event in events:
        sink(event)

    lines = stream.getvalue().splitlines()
    assert len(lines) == 2
    assert json.loads(lines[1])["omada"]["ispLoad"]["totalRate"] == 1.5


def test_export_json(events, tmp_path):
    path = tmp_path / "events.json"
    export_json(events, str(path))
    data = json.loads(path.read_text(encoding="utf-8"))
    assert [d["tags"] for d in data] == [["omada.device"], ["omada.isp_load"]]


def test_export_csv_columns(events, tmp_path):
    path = tmp_path / "events.csv"
    export_csv(events, str(path))

    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        rows = list(reader)

    assert reader.fieldnames[:4] == ["@timestamp", "tags", "site.key", "site.name"]
    assert rows[0]["@timestamp"] == "2024-05-01T12:30:00Z"
    assert rows[0]["site.name"] == "Headquarters"
    assert rows[0]["device.mac"] == "AA-BB-CC-00-11-22"
    assert rows[1]["ispLoad.port.id"] == "wan1"
    assert rows[1]["tags"] == "omada.isp_load"
    assert rows[0]["ispLoad.port.id"] == ""


def test_event_row_keeps_list_payload_as_json(site):
    event = OmadaEvent(timestamp=WHEN, kind=EventKind.ASSOCIATION_FAILURE_STATISTICS, site=site,
                       data=[{"reason": "auth", "count": 3}])

    row = event_row(event)

    assert json.loads(row["associationFailureStatistics"]) == [{"reason": "auth", "count": 3}]
    assert row["site.key"] == "site1"


def test_encoder_handles_datetime_and_kind():
    encoded = json.dumps({"at": WHEN, "kind": EventKind.SPEED_TEST}, cls=OmadaEncoder)
    assert json.loads(encoded) == {"at": "2024-05-01T12:30:00Z", "kind": "speed_test"}


def test_encoder_rejects_unknown_objects():
    with pytest.raises(TypeError):
        json.dumps({"x": object()}, cls=OmadaEncoder)


def test_export_csv_selected_fields(events, tmp_path):
    path = tmp_path / "events.csv"
    export_csv(events, str(path), fields=["@timestamp", "tags"])
    header = path.read_text(encoding="utf-8").splitlines()[0]
    assert header == "@timestamp,tags"


def test_export_csv_empty(tmp_path):
    path = tmp_path / "empty.csv"
    export_csv([], str(path))
    assert path.read_text(encoding="utf-8") == ""
