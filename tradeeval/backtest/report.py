"""Backtest report serialization — BacktestResult to JSON."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from tradeeval.backtest.simulator import (
    BacktestResult,
    ConfidenceAnalysis,
    StrategyPerformance,
)


def _performance_to_dict(
    perf: StrategyPerformance, *, include_trades: bool,
) -> dict[str, Any]:
    d = {
        "total_pnl_usd": perf.total_pnl_usd,
        "total_return_percent": perf.total_return_percent,
        "win_rate": perf.win_rate,
        "avg_trade_return_usd": perf.avg_trade_return_usd,
        "avg_trade_return_percent": perf.avg_trade_return_percent,
        "num_trades": perf.num_trades,
    }
    if include_trades:
        d["trades"] = [t.to_dict() for t in perf.trades]
    return d


def _confidence_to_dict(analysis: ConfidenceAnalysis | None) -> dict[str, float] | None:
    return asdict(analysis) if analysis is not None else None


def result_to_dict(
    result: BacktestResult, *, include_trades: bool = True,
) -> dict[str, Any]:
    """Convert a BacktestResult to a JSON-serializable dict."""
    start, end = result.date_range
    return {
        "market": result.market,
        "date_range": {"start": start.isoformat(), "end": end.isoformat()},
        "total_recommendations": result.total_recommendations,
        "capital_base": result.capital_base,
        "hold_mode": result.hold_mode,
        "recommended_strategy": _performance_to_dict(
            result.recommended_strategy, include_trades=include_trades,
        ),
        "perfect_strategy": _performance_to_dict(
            result.perfect_strategy, include_trades=include_trades,
        ),
        "by_action": {
            "long": asdict(result.by_action.long),
            "short": asdict(result.by_action.short),
            "hold": asdict(result.by_action.hold),
            "close": asdict(result.by_action.close),
        },
        "confidence_analysis": _confidence_to_dict(result.confidence_analysis),
        "raw_confidence_analysis": _confidence_to_dict(result.raw_confidence_analysis),
        "improvement_suggestions": list(result.improvement_suggestions),
    }


def write_report(
    result: BacktestResult,
    output_path: Path | str,
    *,
    include_trades: bool = True,
) -> None:
    """Write the backtest report as pretty-printed JSON."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(
            result_to_dict(result, include_trades=include_trades),
            indent=2,
            ensure_ascii=False,
        ) + "\n",
        encoding="utf-8",
    )
