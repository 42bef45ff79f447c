"""QuestDB-backed RecommendationStore.

Reads ``trade_recommendations`` and ``confidence_calibrations`` over the
PG wire protocol with psycopg2 and appends calibration rows over ILP.
QuestDB has no sequences, so a calibration's id is its ILP timestamp in
microseconds.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence

import psycopg2
from questdb.ingress import IngressError, Protocol, Sender, TimestampNanos

from tradeeval.calibration.curve import CalibrationData, points_from_list
from tradeeval.errors import StorageError
from tradeeval.events import RecommendationEvent, coerce_datetime

logger = logging.getLogger(__name__)

RECOMMENDATIONS_TABLE = "trade_recommendations"
CALIBRATIONS_TABLE = "confidence_calibrations"

_EVENT_COLUMNS = (
    "timestamp", "market", "price", "action", "confidence", "size_usd", "raw_confidence",
)
_CALIBRATION_COLUMNS = (
    "id", "timestamp", "market", "window_days", "calibration_data", "sample_size",
    "correlation", "high_conf_win_rate", "low_conf_win_rate",
)


@dataclass(frozen=True)
class QuestDBStoreConfig:
    """Connection config for QuestDB (PG wire reads, ILP writes)."""

    pg_host: str = "localhost"
    pg_port: int = 8812
    pg_user: str = "admin"
    pg_password: str = "quest"
    pg_database: str = "qdb"
    ilp_host: str = "localhost"
    ilp_port: int = 9009

    @classmethod
    def from_resource(cls, resource: Any) -> QuestDBStoreConfig:
        """Build from any object exposing the QuestDBResource attributes."""
        return cls(**{name: getattr(resource, name) for name in cls.__dataclass_fields__})


def _utc_naive(ts: datetime) -> datetime:
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


class QuestDBStore:
    """RecommendationStore over QuestDB.

    Every psycopg2 or ILP failure is re-raised as StorageError.
    """

    def __init__(self, config: QuestDBStoreConfig | None = None) -> None:
        self._config = config or QuestDBStoreConfig()

    def _query(self, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        cfg = self._config
        try:
            conn = psycopg2.connect(
                host=cfg.pg_host,
                port=cfg.pg_port,
                user=cfg.pg_user,
                password=cfg.pg_password,
                database=cfg.pg_database,
            )
        except psycopg2.Error as exc:
            raise StorageError(f"Cannot connect to QuestDB at {cfg.pg_host}:{cfg.pg_port}") from exc
        conn.autocommit = True

        try:
            cur = conn.cursor()
            cur.execute(sql, tuple(params))
            col_names = [desc[0] for desc in cur.description]
            rows = cur.fetchall()
            cur.close()
        except psycopg2.Error as exc:
            raise StorageError(f"QuestDB query failed: {exc}") from exc
        finally:
            conn.close()

        return [dict(zip(col_names, row)) for row in rows]

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def get_events(
        self,
        market: str | None,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[RecommendationEvent]:
        where = ["action IN ('long', 'short', 'hold', 'close')"]
        params: list[Any] = []
        if market is not None:
            where.append("market = %s")
            params.append(market)
        if since is not None:
            where.append("timestamp >= %s")
            params.append(_utc_naive(since))

        sql = (
            f"SELECT {', '.join(_EVENT_COLUMNS)} FROM {RECOMMENDATIONS_TABLE} "
            f"WHERE {' AND '.join(where)} ORDER BY timestamp ASC"
        )
        if limit is not None:
            sql += f" LIMIT {int(limit)}"

        events: list[RecommendationEvent] = []
        for row in self._query(sql, params):
            try:
                events.append(RecommendationEvent.from_row(row))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed recommendation row %s: %s", row, exc)
        logger.debug("Loaded %d recommendations (market=%s, since=%s)", len(events), market, since)
        return events

    # ------------------------------------------------------------------
    # Calibrations
    # ------------------------------------------------------------------

    def save_calibration(self, data: CalibrationData) -> int:
        now = datetime.now(timezone.utc)
        ts_nanos = int(now.timestamp() * 1_000_000_000)
        record_id = ts_nanos // 1000
        cfg = self._config

        try:
            with Sender(Protocol.Tcp, cfg.ilp_host, cfg.ilp_port) as sender:
                sender.row(
                    CALIBRATIONS_TABLE,
                    symbols={"market": data.market},
                    columns={
                        "id": record_id,
                        "window_days": int(data.window_days),
                        "calibration_data": json.dumps([p.to_dict() for p in data.points]),
                        "sample_size": int(data.sample_size),
                        "correlation": float(data.correlation),
                        "high_conf_win_rate": float(data.high_conf_win_rate),
                        "low_conf_win_rate": float(data.low_conf_win_rate),
                    },
                    at=TimestampNanos(ts_nanos),
                )
                sender.flush()
        except IngressError as exc:
            raise StorageError(f"Failed to write calibration for {data.market}: {exc}") from exc

        logger.info("Wrote %s row for %s (id=%d)", CALIBRATIONS_TABLE, data.market, record_id)
        return record_id

    def get_latest_calibration(self, market: str) -> CalibrationData | None:
        sql = (
            f"SELECT {', '.join(_CALIBRATION_COLUMNS)} FROM {CALIBRATIONS_TABLE} "
            f"WHERE market = %s ORDER BY timestamp DESC LIMIT 1"
        )
        rows = self._query(sql, (market,))
        if not rows:
            return None
        return _row_to_calibration(rows[0])

    def list_markets(self) -> list[str]:
        """Distinct markets with at least one recommendation."""
        rows = self._query(
            f"SELECT DISTINCT market FROM {RECOMMENDATIONS_TABLE} ORDER BY market", (),
        )
        return [str(r["market"]).upper() for r in rows]


def _row_to_calibration(row: dict[str, Any]) -> CalibrationData:
    raw_points = row.get("calibration_data") or "[]"
    if isinstance(raw_points, str):
        try:
            raw_points = json.loads(raw_points)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Corrupt calibration_data for {row.get('market')}") from exc

    try:
        return CalibrationData(
            market=str(row["market"]),
            window_days=int(row["window_days"]),
            points=points_from_list(raw_points),
            sample_size=int(row["sample_size"]),
            correlation=float(row["correlation"]),
            high_conf_win_rate=_nullable_rate(row.get("high_conf_win_rate")),
            low_conf_win_rate=_nullable_rate(row.get("low_conf_win_rate")),
            computed_at=coerce_datetime(row["timestamp"]),
            record_id=int(row["id"]) if row.get("id") is not None else None,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise StorageError(f"Malformed calibration row for {row.get('market')}") from exc


def _nullable_rate(value: Any) -> float:
    # NULL (or NaN read back as NULL) win rates are stored as 0.
    return 0.0 if value is None else float(value)
