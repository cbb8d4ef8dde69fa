#!/usr/bin/env python3
"""
Signal Engine CLI - single-symbol analysis, market scans and learning

Usage:
    python3 run_full_scan.py analyze BTCUSDT --trade-type swing
    python3 run_full_scan.py scan --limit 50 --threshold 65
    python3 run_full_scan.py intraday --timeframe 5m
    python3 run_full_scan.py learn <user_id>
    python3 run_full_scan.py risk --entry 100 --stop 95 --target 110 --leverage 5 --capital 1000
    python3 run_full_scan.py candles ETHUSDT --timeframe 4h --csv eth_4h.csv
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

from signal_core.data_layer import CandleSeries, get_market_data
from signal_core.exceptions import DailyLossLimitError, NoDataError
from signal_core.intraday_scanner import scan_intraday
from signal_core.learning_loop import run_learning_engine
from signal_core.opportunity_scorer import MarketScanner
from signal_core.orchestrator import analyze
from signal_core.risk_engine import assess_trade_risk

BASE_DIR = Path(__file__).parent
FULL_SCAN_PATH = BASE_DIR / "full_scan.json"


def print_analysis(result):
    sig = result.signal
    print("=" * 60)
    print(f"📊 {sig.symbol} - {sig.direction.value} ({sig.confidence:.0f}% confidence)")
    print("=" * 60)
    print(f"   Entry:  ${sig.entry:,.4f}")
    print(f"   Stop:   ${sig.stop_loss:,.4f}")
    print(f"   TP1/2/3: ${sig.take_profit_1:,.4f} / ${sig.take_profit_2:,.4f} / ${sig.take_profit_3:,.4f}")
    print(f"   R:R {sig.risk_reward} | Leverage {sig.leverage}x | {result.trade_type}")
    if result.time_horizon:
        print(f"   Horizon: {result.time_horizon.label} (~{result.time_horizon.estimate})")
    if result.sizing:
        s = result.sizing
        print(f"   Size: {s.position_size:.6f} units | margin ${s.margin:,.2f} | risk ${s.risk_amount:,.2f}")
    if result.patterns:
        print(f"   Patterns: {', '.join(result.patterns)}")
    print()
    print(result.rationale)


def print_scan(report):
    print("=" * 60)
    print(f"🔍 MARKET SCAN - {len(report.opportunities)} of {report.analyzed} above {report.effective_threshold}")
    if report.safety_mode:
        print(f"⚠️  Safety mode (reference move {report.reference_move_pct:+.1f}%)")
    print("=" * 60)
    for opp in report.opportunities[:15]:
        print(f"\n   {opp.symbol} @ ${opp.price:,.4f}  score {opp.score:.0f}")
        print(f"   {opp.strategy} | {opp.timeframe}")
        print(f"   • {', '.join(opp.catalysts[:3])}")


def print_intraday(setups):
    print("=" * 60)
    print(f"⚡ INTRADAY SETUPS ({len(setups)})")
    print("=" * 60)
    for s in setups:
        print(f"\n   {s.symbol} {s.direction.value} @ ${s.entry_price:,.4f}  {s.confidence:.0f}%")
        print(f"   SL ${s.stop_loss:,.4f} | TP {' / '.join(f'${tp:,.4f}' for tp in s.take_profits)}")
        print(f"   {s.expected_duration} | {', '.join(s.reasons[:3])}")


def candle_table(series: CandleSeries) -> pd.DataFrame:
    """OHLCV frame with per-bar change and rolling volume ratio columns."""
    df = series.to_frame()
    df["change_pct"] = df["close"].pct_change().mul(100).round(3)
    df["volume_ratio"] = (df["volume"] / df["volume"].rolling(20, min_periods=1).mean()).round(2)
    return df


def print_candles(series: CandleSeries, df: pd.DataFrame, rows: int = 20):
    print("=" * 60)
    print(f"🕯️  {series.symbol} {series.timeframe} - last {min(rows, len(df))} of {len(df)} bars")
    print("=" * 60)
    print(df.tail(rows).to_string())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crypto Signal Engine")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("analyze", help="Analyze a single symbol")
    p.add_argument("symbol")
    p.add_argument("--trade-type", "-t", choices=["scalp", "intraday", "swing", "position"])
    p.add_argument("--duration", "-d", type=float, help="Target duration in minutes")
    p.add_argument("--capital-percent", "-c", type=float, help="Share of capital to commit (0-100)")
    p.add_argument("--user-id", "-u")

    p = sub.add_parser("scan", help="Score the liquid market")
    p.add_argument("--limit", "-l", type=int, default=50)
    p.add_argument("--threshold", type=float, default=65)
    p.add_argument("--user-id", "-u")
    p.add_argument("--save", action="store_true", help=f"Write results to {FULL_SCAN_PATH.name}")

    p = sub.add_parser("intraday", help="Short-timeframe VWAP setups")
    p.add_argument("--timeframe", default="5m", choices=["1m", "5m", "15m", "1h"])
    p.add_argument("--limit", "-l", type=int, default=20)
    p.add_argument("--user-id", "-u")

    p = sub.add_parser("candles", help="Show recent candles for a symbol")
    p.add_argument("symbol")
    p.add_argument("--timeframe", default="1h")
    p.add_argument("--limit", "-l", type=int, default=100)
    p.add_argument("--csv", help="Write the candle table to this CSV file")

    p = sub.add_parser("learn", help="Run the learning engine for a user")
    p.add_argument("user_id")

    p = sub.add_parser("risk", help="Assess a leveraged trade setup")
    p.add_argument("--entry", type=float, required=True)
    p.add_argument("--stop", type=float, required=True)
    p.add_argument("--target", type=float, required=True)
    p.add_argument("--leverage", type=int, default=1)
    p.add_argument("--capital", type=float, required=True)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if args.command == "analyze":
            result = analyze(
                args.symbol,
                trade_type=args.trade_type,
                target_duration_minutes=args.duration,
                capital_percent=args.capital_percent,
                user_id=args.user_id,
            )
            if args.json:
                print(json.dumps(result.to_dict(), indent=2, default=str))
            else:
                print_analysis(result)

        elif args.command == "scan":
            report = MarketScanner().scan(args.limit, args.threshold, args.user_id)
            payload = {"timestamp": datetime.now(timezone.utc).isoformat(), **report.to_dict()}
            if args.save:
                with open(FULL_SCAN_PATH, "w") as f:
                    json.dump(payload, f, indent=2, default=str)
            if args.json:
                print(json.dumps(payload, indent=2, default=str))
            else:
                print_scan(report)

        elif args.command == "intraday":
            setups = scan_intraday(args.timeframe, args.limit, args.user_id)
            if args.json:
                print(json.dumps([s.to_dict() for s in setups], indent=2, default=str))
            else:
                print_intraday(setups)

        elif args.command == "candles":
            series = get_market_data().get_candles(args.symbol, args.timeframe, args.limit)
            df = candle_table(series)
            if args.csv:
                df.to_csv(args.csv)
            if args.json:
                print(df.reset_index().to_json(orient="records", date_format="iso", indent=2))
            else:
                print_candles(series, df)

        elif args.command == "learn":
            report = run_learning_engine(args.user_id)
            print(json.dumps(report, indent=2, default=str))

        elif args.command == "risk":
            assessment = assess_trade_risk(
                args.entry, args.stop, args.target, args.leverage, args.capital,
            )
            print(json.dumps(assessment.to_dict(), indent=2, default=str))

    except DailyLossLimitError as e:
        print(f"❌ Trade blocked: {e}", file=sys.stderr)
        return 2
    except NoDataError as e:
        print(f"❌ No market data for {e.symbol}: {e.reason}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    sys.exit(main())
