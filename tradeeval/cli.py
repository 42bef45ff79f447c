"""CLI entry points for backtests and confidence calibration.

Every command prints a single JSON object on stdout; logs go to stderr.

Usage:
    python -m tradeeval.cli backtest [--market M] [--days N] [--hold-mode maintain|flat]
    python -m tradeeval.cli calibrate --market M [--days N] [--dry-run]
    python -m tradeeval.cli status [--market M ...]
    python -m tradeeval.cli apply --market M --confidence X
    python -m tradeeval.cli validate --market M [--days N]

Pass ``--events-file`` to replay an exported JSON history instead of
reading QuestDB.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from tradeeval.backtest.config import load_backtest_config
from tradeeval.backtest.report import result_to_dict, write_report
from tradeeval.backtest.service import BacktestService
from tradeeval.calibration.config import load_calibration_config
from tradeeval.calibration.engine import CalibrationService
from tradeeval.calibration.health import evaluate_health, summarize
from tradeeval.errors import InsufficientDataError, StorageError
from tradeeval.store.memory import InMemoryStore
from tradeeval.store.questdb import QuestDBStore, QuestDBStoreConfig


def _emit(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, default=str))


def _open_store(args: argparse.Namespace):
    if args.events_file:
        return InMemoryStore.from_json(args.events_file)
    return QuestDBStore(QuestDBStoreConfig(
        pg_host=args.pg_host, pg_port=args.pg_port, ilp_host=args.ilp_host,
    ))


def _calibration_service(args: argparse.Namespace, store) -> CalibrationService:
    return CalibrationService(store, load_calibration_config(args.calibration_config))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_backtest(args: argparse.Namespace, store) -> None:
    """Backtest one market and print the report."""
    cfg = load_backtest_config(args.backtest_config)
    days = args.days if args.days is not None else cfg.window_days
    result = BacktestService(store, cfg.simulator()).run(
        args.market,
        days,
        hold_mode=args.hold_mode or cfg.hold_mode,
        capital_base=args.capital_base if args.capital_base is not None else cfg.capital_base,
    )
    if args.output:
        write_report(result, Path(args.output))
    payload = result_to_dict(result, include_trades=args.trades)
    if args.output:
        payload["report_path"] = str(args.output)
    _emit(payload)


def cmd_calibrate(args: argparse.Namespace, store) -> None:
    """Compute (and unless dry-run, save) a calibration."""
    service = _calibration_service(args, store)
    calibration = service.compute_and_save(args.market, args.days, dry_run=args.dry_run)
    _emit({"dry_run": args.dry_run, "calibration": calibration.to_dict()})


def cmd_status(args: argparse.Namespace, store) -> None:
    """Health of the latest calibration per market."""
    service = _calibration_service(args, store)
    markets = [m.upper() for m in args.market] if args.market else store.list_markets()
    statuses = [evaluate_health(m, service.latest(m)) for m in markets]
    _emit({
        "markets": [s.to_dict() for s in statuses],
        "summary": summarize(statuses),
    })


def cmd_apply(args: argparse.Namespace, store) -> None:
    """Calibrate a single raw confidence."""
    service = _calibration_service(args, store)
    score = service.calibrate_score(args.confidence, args.market.upper())
    _emit({
        "market": args.market.upper(),
        "raw_confidence": score.raw,
        "confidence": score.value,
        "calibrated": score.calibrated,
        "fallback_reason": score.fallback_reason,
        "calibration_id": score.calibration_id,
    })


def cmd_validate(args: argparse.Namespace, store) -> None:
    """Compare raw and calibrated confidence over the window."""
    service = _calibration_service(args, store)
    _emit(service.validate(args.market, args.days).to_dict())


_COMMANDS = {
    "backtest": cmd_backtest,
    "calibrate": cmd_calibrate,
    "status": cmd_status,
    "apply": cmd_apply,
    "validate": cmd_validate,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tradeeval.cli")
    parser.add_argument("--events-file", help="JSON array of recommendation rows")
    parser.add_argument("--pg-host", default="localhost")
    parser.add_argument("--pg-port", type=int, default=8812)
    parser.add_argument("--ilp-host", default="localhost")
    parser.add_argument("--calibration-config", help="Path to calibration YAML")
    parser.add_argument("--backtest-config", help="Path to backtest YAML")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    p_backtest = sub.add_parser("backtest")
    p_backtest.add_argument("--market")
    p_backtest.add_argument("--days", type=int)
    p_backtest.add_argument("--hold-mode", choices=["maintain", "flat"])
    p_backtest.add_argument("--capital-base", type=float)
    p_backtest.add_argument("--output", help="Write the full JSON report here")
    p_backtest.add_argument("--trades", action="store_true", help="Include trade lists")

    p_calibrate = sub.add_parser("calibrate")
    p_calibrate.add_argument("--market", required=True)
    p_calibrate.add_argument("--days", type=int, default=CalibrationService.DEFAULT_WINDOW_DAYS)
    p_calibrate.add_argument("--dry-run", action="store_true")

    p_status = sub.add_parser("status")
    p_status.add_argument("--market", action="append")

    p_apply = sub.add_parser("apply")
    p_apply.add_argument("--market", required=True)
    p_apply.add_argument("--confidence", type=float, required=True)

    p_validate = sub.add_parser("validate")
    p_validate.add_argument("--market", required=True)
    p_validate.add_argument("--days", type=int, default=CalibrationService.DEFAULT_WINDOW_DAYS)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        store = _open_store(args)
        _COMMANDS[args.command](args, store)
    except InsufficientDataError as exc:
        _emit({"error": str(exc), "required": exc.required, "found": exc.found})
        return 1
    except StorageError as exc:
        _emit({"error": f"Storage failure: {exc}"})
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
