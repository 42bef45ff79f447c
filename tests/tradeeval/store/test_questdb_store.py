"""Tests for tradeeval.store.questdb — QuestDBStore with mocked connections."""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import psycopg2
import pytest
from questdb.ingress import IngressError, IngressErrorCode

from tradeeval.calibration.curve import CalibrationData, CalibrationPoint
from tradeeval.errors import CalibrationApplicationError, StorageError
from tradeeval.events import Action
from tradeeval.store.questdb import QuestDBStore, QuestDBStoreConfig


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store():
    return QuestDBStore(QuestDBStoreConfig(pg_host="qdb", ilp_host="qdb"))


def _cursor(columns, rows):
    cur = MagicMock()
    cur.description = [(c,) for c in columns]
    cur.fetchall.return_value = rows
    return cur


@pytest.fixture
def mock_connect():
    """Patch psycopg2.connect so no real QuestDB connection is needed."""
    with patch("tradeeval.store.questdb.psycopg2.connect") as connect:
        conn = MagicMock()
        connect.return_value = conn
        yield connect, conn


@pytest.fixture
def mock_sender():
    with patch("tradeeval.store.questdb.Sender") as MockSender:
        instance = MagicMock()
        MockSender.return_value.__enter__ = MagicMock(return_value=instance)
        MockSender.return_value.__exit__ = MagicMock(return_value=False)
        yield MockSender, instance


EVENT_COLUMNS = ["timestamp", "market", "price", "action", "confidence", "size_usd", "raw_confidence"]


# ---------------------------------------------------------------------------
# get_events
# ---------------------------------------------------------------------------


class TestGetEvents:
    def test_builds_events(self, store, mock_connect):
        connect, conn = mock_connect
        conn.cursor.return_value = _cursor(EVENT_COLUMNS, [
            (datetime(2024, 1, 1), "btc", 100.0, "long", 0.7, None, None),
            (datetime(2024, 1, 2), "btc", 101.0, "close", 0.6, 500.0, 0.65),
        ])

        events = store.get_events("BTC")

        assert [e.action for e in events] == [Action.LONG, Action.CLOSE]
        assert events[1].size_usd == 500.0
        assert events[1].raw_confidence == 0.65
        connect.assert_called_once_with(
            host="qdb", port=8812, user="admin", password="quest", database="qdb",
        )
        conn.close.assert_called_once()

    def test_filters_parameterized(self, store, mock_connect):
        _, conn = mock_connect
        cur = _cursor(EVENT_COLUMNS, [])
        conn.cursor.return_value = cur
        since = datetime(2024, 1, 1, 5, tzinfo=timezone.utc)

        store.get_events("BTC", since=since, limit=50)

        sql, params = cur.execute.call_args[0]
        assert "market = %s" in sql
        assert "timestamp >= %s" in sql
        assert "ORDER BY timestamp ASC" in sql
        assert sql.endswith("LIMIT 50")
        assert params == ("BTC", datetime(2024, 1, 1, 5))

    def test_all_markets_has_no_market_filter(self, store, mock_connect):
        _, conn = mock_connect
        cur = _cursor(EVENT_COLUMNS, [])
        conn.cursor.return_value = cur
        store.get_events(None)
        sql, params = cur.execute.call_args[0]
        assert "market = %s" not in sql
        assert params == ()

    def test_malformed_row_skipped(self, store, mock_connect):
        _, conn = mock_connect
        conn.cursor.return_value = _cursor(EVENT_COLUMNS, [
            (datetime(2024, 1, 1), "BTC", 0.0, "long", 0.7, None, None),
            (datetime(2024, 1, 2), "BTC", 101.0, "hold", 0.6, None, None),
        ])
        assert len(store.get_events("BTC")) == 1

    def test_query_error_wrapped(self, store, mock_connect):
        _, conn = mock_connect
        conn.cursor.return_value.execute.side_effect = psycopg2.ProgrammingError("bad sql")
        with pytest.raises(StorageError) as exc_info:
            store.get_events("BTC")
        assert isinstance(exc_info.value.__cause__, psycopg2.Error)
        conn.close.assert_called_once()

    def test_connect_error_wrapped(self, store):
        with patch(
            "tradeeval.store.questdb.psycopg2.connect",
            side_effect=psycopg2.OperationalError("refused"),
        ):
            with pytest.raises(StorageError, match="Cannot connect"):
                store.get_events("BTC")


# ---------------------------------------------------------------------------
# Calibrations
# ---------------------------------------------------------------------------

CAL_COLUMNS = [
    "id", "timestamp", "market", "window_days", "calibration_data", "sample_size",
    "correlation", "high_conf_win_rate", "low_conf_win_rate",
]


def _calibration():
    return CalibrationData(
        market="BTC", window_days=60,
        points=(CalibrationPoint(0.0, 0.0), CalibrationPoint(0.55, 0.6), CalibrationPoint(1.0, 0.6)),
        sample_size=25, correlation=0.31, high_conf_win_rate=0.62, low_conf_win_rate=0.41,
    )


class TestSaveCalibration:
    def test_writes_ilp_row(self, store, mock_sender):
        MockSender, sender = mock_sender
        record_id = store.save_calibration(_calibration())

        assert MockSender.call_args[0][1:] == ("qdb", 9009)
        sender.row.assert_called_once()
        sender.flush.assert_called_once()
        call = sender.row.call_args
        assert call[0][0] == "confidence_calibrations"
        assert call[1]["symbols"] == {"market": "BTC"}
        columns = call[1]["columns"]
        assert columns["id"] == record_id
        assert columns["sample_size"] == 25
        assert json.loads(columns["calibration_data"])[1] == {
            "raw_confidence": 0.55, "calibrated_confidence": 0.6,
        }

    def test_ingress_error_wrapped(self, store, mock_sender):
        _, sender = mock_sender
        sender.row.side_effect = IngressError(IngressErrorCode.SocketError, "socket closed")
        with pytest.raises(StorageError):
            store.save_calibration(_calibration())


class TestGetLatestCalibration:
    def test_parses_row(self, store, mock_connect):
        _, conn = mock_connect
        points = json.dumps([p.to_dict() for p in _calibration().points])
        cur = _cursor(CAL_COLUMNS, [
            (1709251200000000, datetime(2024, 3, 1), "BTC", 60, points, 25, 0.31, 0.62, 0.41),
        ])
        conn.cursor.return_value = cur

        cal = store.get_latest_calibration("BTC")

        assert cal == replace(_calibration(), computed_at=datetime(2024, 3, 1, tzinfo=timezone.utc))
        assert cal.record_id == 1709251200000000
        assert cal.computed_at == datetime(2024, 3, 1, tzinfo=timezone.utc)
        sql, params = cur.execute.call_args[0]
        assert "ORDER BY timestamp DESC LIMIT 1" in sql
        assert params == ("BTC",)

    def test_none_when_empty(self, store, mock_connect):
        _, conn = mock_connect
        conn.cursor.return_value = _cursor(CAL_COLUMNS, [])
        assert store.get_latest_calibration("BTC") is None

    def test_legacy_camel_case_points(self, store, mock_connect):
        _, conn = mock_connect
        points = json.dumps([{"rawConfidence": 0.0, "calibratedConfidence": 0.0}])
        conn.cursor.return_value = _cursor(CAL_COLUMNS, [
            (1, datetime(2024, 3, 1), "BTC", 60, points, 25, 0.3, 0.6, 0.4),
        ])
        assert store.get_latest_calibration("BTC").points == (CalibrationPoint(0.0, 0.0),)

    def test_corrupt_json_is_storage_error(self, store, mock_connect):
        _, conn = mock_connect
        conn.cursor.return_value = _cursor(CAL_COLUMNS, [
            (1, datetime(2024, 3, 1), "BTC", 60, "{not json", 25, 0.3, 0.6, 0.4),
        ])
        with pytest.raises(StorageError):
            store.get_latest_calibration("BTC")

    def test_malformed_points_raise_application_error(self, store, mock_connect):
        _, conn = mock_connect
        conn.cursor.return_value = _cursor(CAL_COLUMNS, [
            (1, datetime(2024, 3, 1), "BTC", 60, json.dumps([{"raw": 1}]), 25, 0.3, 0.6, 0.4),
        ])
        with pytest.raises(CalibrationApplicationError):
            store.get_latest_calibration("BTC")

    def test_null_win_rates_read_as_zero(self, store, mock_connect):
        _, conn = mock_connect
        points = json.dumps([p.to_dict() for p in _calibration().points])
        conn.cursor.return_value = _cursor(CAL_COLUMNS, [
            (1, datetime(2024, 3, 1), "BTC", 60, points, 25, 0.3, None, None),
        ])
        cal = store.get_latest_calibration("BTC")
        assert cal.high_conf_win_rate == 0.0
        assert cal.low_conf_win_rate == 0.0
        assert cal.points == _calibration().points

    @pytest.mark.parametrize("column", ["sample_size", "correlation", "timestamp"])
    def test_null_required_column_is_storage_error(self, store, mock_connect, column):
        _, conn = mock_connect
        row = dict(zip(CAL_COLUMNS, (1, datetime(2024, 3, 1), "BTC", 60, "[]", 25, 0.3, 0.6, 0.4)))
        row[column] = None
        conn.cursor.return_value = _cursor(CAL_COLUMNS, [tuple(row.values())])
        with pytest.raises(StorageError, match="Malformed calibration row") as exc_info:
            store.get_latest_calibration("BTC")
        assert isinstance(exc_info.value.__cause__, (TypeError, ValueError))
