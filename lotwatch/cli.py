"""CLI entry point: python main.py --data portfolio.json

Loads rules, holdings, prices, sentiment, sell history and price history
from a JSON data file into in-memory sources, runs one evaluation pass
(or keeps running on an interval with --loop) and prints each pass
summary as JSON.

Data file layout::

    {
      "rules": [{"rule_id": "r1", "owner_id": "u1", "alert_type": "price_target", ...}],
      "holdings": [{"owner_id": "u1", "symbol": "BTC", "quantity": 0.5,
                    "cost_basis": 42000, "acquired_at": "2024-01-15T00:00:00Z"}],
      "prices": {"BTC": 51000, "ETH": {"price": 2900, "change_24h": -1.5}},
      "sentiment": 18,
      "sells": [{"owner_id": "u1", "symbol": "ETH", "quantity": 1,
                 "price": 3100, "sold_at": "2024-12-20T00:00:00Z"}],
      "history": {"BTC": [40000, 41000, 39500], "SPY": [470, 472, 471]}
    }
"""

import argparse
import json
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from lotwatch.alerts import AlertRule, InMemoryRuleStore, InMemorySink, PassSummary, RuleStore, SqlRuleStore
from lotwatch.alerts.models import _parse_datetime
from lotwatch.db import create_db_engine, get_session_factory, init_db
from lotwatch.errors import ConfigurationError
from lotwatch.logging_config import LogFormat, LoggingConfig, LogLevel, configure_logging
from lotwatch.market import InMemoryPriceHistory, InMemoryPriceOracle, PriceQuote, StaticSentimentSource
from lotwatch.portfolio import HoldingRecord, InMemoryHoldingsSource
from lotwatch.service import EvaluationService
from lotwatch.settings import get_settings
from lotwatch.tax import InMemorySellHistory, SellRecord

logger = logging.getLogger(__name__)


@dataclass
class DataSet:
    """In-memory sources loaded from a data file."""
    rules: list[AlertRule]
    holdings: InMemoryHoldingsSource
    oracle: InMemoryPriceOracle
    sentiment: StaticSentimentSource
    sells: Optional[InMemorySellHistory]
    history: Optional[InMemoryPriceHistory]


def _quote(symbol: str, value: Any) -> PriceQuote:
    if isinstance(value, dict):
        return PriceQuote(symbol.upper(), float(value["price"]), float(value.get("change_24h", 0.0)))
    return PriceQuote(symbol.upper(), float(value))


def parse_data(data: dict) -> DataSet:
    """Build in-memory sources from a decoded data file.

    Raises:
        ConfigurationError: If a record is missing a required field.
    """
    try:
        rules = [AlertRule.from_dict(item) for item in data.get("rules", [])]
        holdings = InMemoryHoldingsSource(
            HoldingRecord(
                owner_id=str(item["owner_id"]),
                symbol=str(item["symbol"]).upper(),
                quantity=float(item["quantity"]),
                cost_basis=float(item["cost_basis"]),
                acquired_at=_parse_datetime(item["acquired_at"]),
            )
            for item in data.get("holdings", [])
        )
        oracle = InMemoryPriceOracle(
            {symbol: _quote(symbol, value) for symbol, value in data.get("prices", {}).items()}
        )
        sells = None
        if "sells" in data:
            sells = InMemorySellHistory(
                SellRecord(
                    owner_id=str(item["owner_id"]),
                    symbol=str(item["symbol"]).upper(),
                    quantity=float(item["quantity"]),
                    price=float(item["price"]),
                    sold_at=_parse_datetime(item["sold_at"]),
                )
                for item in data["sells"]
            )
        history = InMemoryPriceHistory(data["history"]) if "history" in data else None
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid data file record: {exc}") from exc

    return DataSet(
        rules=rules,
        holdings=holdings,
        oracle=oracle,
        sentiment=StaticSentimentSource(data.get("sentiment")),
        sells=sells,
        history=history,
    )


def load_data(path: str) -> DataSet:
    try:
        raw = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot read data file {path}: {exc}", field="data") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError("Data file must contain a JSON object", field="data")
    return parse_data(raw)


def build_store(kind: str, rules: list[AlertRule], database_url: Optional[str] = None) -> RuleStore:
    """Create the rule store and seed it with ``rules``."""
    if kind == "sql":
        engine = create_db_engine(database_url or get_settings().database_url)
        init_db(engine)
        store: RuleStore = SqlRuleStore(get_session_factory(engine))
        for rule in rules:
            store.save(rule)
        return store
    return InMemoryRuleStore(rules)


def build_service(dataset: DataSet, store: RuleStore, sink: InMemorySink) -> EvaluationService:
    return EvaluationService(
        store,
        dataset.oracle,
        dataset.holdings,
        sink,
        sentiment=dataset.sentiment,
        sell_history=dataset.sells,
        price_history=dataset.history,
    )


def print_summary(summary: PassSummary) -> None:
    print(json.dumps(summary.to_dict(), indent=2, default=str))
    sys.stdout.flush()


def main(argv: Optional[list[str]] = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Lotwatch - alert rule evaluation and tax-lot analytics"
    )
    parser.add_argument(
        "--data", required=True,
        help="JSON file with rules, holdings, prices, sentiment, sells and history"
    )
    parser.add_argument(
        "--loop", action="store_true",
        help="Keep running passes until interrupted"
    )
    parser.add_argument(
        "--interval", type=float, default=settings.pass_interval_seconds,
        help=f"Seconds between passes with --loop (default: {settings.pass_interval_seconds:g})"
    )
    parser.add_argument(
        "--store", choices=["memory", "sql"], default="memory",
        help="Rule store backend (sql uses LOTWATCH_DATABASE_URL)"
    )
    parser.add_argument(
        "--log-format", choices=[f.value for f in LogFormat], default=settings.log_format.lower(),
        help="Log output format"
    )
    parser.add_argument(
        "--log-level", default=settings.log_level.upper(), type=str.upper,
        choices=[level.value for level in LogLevel],
        help="Log level (DEBUG, INFO, WARNING, ERROR)"
    )
    args = parser.parse_args(argv)

    configure_logging(LoggingConfig(level=LogLevel(args.log_level), format=LogFormat(args.log_format)))

    try:
        dataset = load_data(args.data)
    except ConfigurationError as exc:
        logger.error(exc.message)
        print(f"error: {exc.message}", file=sys.stderr)
        return 2

    store = build_store(args.store, dataset.rules)
    sink = InMemorySink()
    service = build_service(dataset, store, sink)

    if not args.loop:
        summary = service.run_pass()
        print_summary(summary)
        return 1 if summary.error else 0

    scheduler = service.scheduler(interval_seconds=args.interval, on_summary=print_summary)
    signal.signal(signal.SIGTERM, lambda signum, frame: scheduler.stop())
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        scheduler.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
