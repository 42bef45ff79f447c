"""Dagster recalibrate job — refresh stale confidence calibrations.

For each market, recomputes the calibration when the latest one is missing
or older than ``max_age_days`` (or unconditionally with ``force``). Markets
without enough history are skipped and reported; storage errors fail the
run.
"""

import logging
from typing import Any

from dagster import Config, In, OpExecutionContext, Out, job, op

from tradeeval.calibration.engine import CalibrationService
from tradeeval.errors import InsufficientDataError

logger = logging.getLogger(__name__)


class RecalibrateConfig(Config):
    """Run config for recalibrate job. Empty ``markets`` means all markets."""

    markets: list[str] = []
    window_days: int = 60
    max_age_days: float = 7
    force: bool = False
    dry_run: bool = False


def resolve_markets(requested: list[str], store: Any) -> list[str]:
    """Upper-cased, de-duplicated markets; every stored market when empty."""
    if requested:
        return sorted({m.upper() for m in requested})
    return list(store.list_markets())


def recalibrate_market(
    service: CalibrationService,
    market: str,
    *,
    window_days: int = 60,
    max_age_days: float = 7,
    force: bool = False,
    dry_run: bool = False,
) -> dict[str, Any]:
    """Recalibrate one market if needed and describe what happened."""
    if not force and not service.is_stale(market, max_age_days):
        return {"market": market, "status": "fresh"}

    try:
        calibration = service.compute_and_save(market, window_days, dry_run=dry_run)
    except InsufficientDataError as exc:
        logger.warning("Skipping %s: %s", market, exc)
        return {
            "market": market,
            "status": "insufficient_data",
            "required": exc.required,
            "found": exc.found,
        }

    return {
        "market": market,
        "status": "dry_run" if dry_run else "recalibrated",
        "record_id": calibration.record_id,
        "sample_size": calibration.sample_size,
        "correlation": calibration.correlation,
    }


def _service() -> CalibrationService:
    from pipelines.tradeeval_pipelines.resources.questdb import QuestDBResource
    from tradeeval.calibration.config import load_calibration_config

    return CalibrationService(QuestDBResource().store(), load_calibration_config())


# ---------------------------------------------------------------------------
# Ops
# ---------------------------------------------------------------------------


@op(out=Out(list))
def load_markets(context: OpExecutionContext, config: RecalibrateConfig) -> list:
    """Resolve the markets to check."""
    from pipelines.tradeeval_pipelines.resources.questdb import QuestDBResource

    markets = resolve_markets(config.markets, QuestDBResource().store())
    context.log.info("Checking %d market(s): %s", len(markets), ", ".join(markets))
    return markets


@op(ins={"markets": In(list)}, out=Out(dict))
def recalibrate_markets(
    context: OpExecutionContext, config: RecalibrateConfig, markets: list,
) -> dict:
    """Recalibrate every stale market sequentially."""
    service = _service()
    results = [
        recalibrate_market(
            service,
            market,
            window_days=config.window_days,
            max_age_days=config.max_age_days,
            force=config.force,
            dry_run=config.dry_run,
        )
        for market in markets
    ]

    by_status: dict[str, int] = {}
    for r in results:
        by_status[r["status"]] = by_status.get(r["status"], 0) + 1
    context.log.info(
        "Recalibration complete: %s",
        ", ".join(f"{k}={v}" for k, v in sorted(by_status.items())) or "no markets",
    )
    return {"results": results, "counts": by_status}


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------


@job
def recalibrate():
    """Recalibration pipeline: resolve markets -> recalibrate stale ones."""
    recalibrate_markets(load_markets())
