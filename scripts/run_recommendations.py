"""
Generate put recommendations from the command line.

Usage:
    python scripts/run_recommendations.py                # show active set, refresh if empty
    python scripts/run_recommendations.py --refresh      # run the pipeline now
    python scripts/run_recommendations.py --mock --refresh
    python scripts/run_recommendations.py --loop 60      # regenerate every hour
    python scripts/run_recommendations.py --clear-cache
"""

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List

from optionstrike.config import Settings
from optionstrike.db.database import create_db_engine, create_session_factory, init_db
from optionstrike.engine.criteria import RecommendationCriteria
from optionstrike.engine.factory import build_engine
from optionstrike.models.recommendation import Recommendation
from optionstrike.utils.config_loader import load_config_with_secrets
from optionstrike.utils.error_handling import user_facing_error_message
from optionstrike.utils.logging import setup_logging

logger = logging.getLogger("run_recommendations")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Earnings short put recommendations")
    parser.add_argument("--config", default="config/env.yaml", help="YAML config file")
    parser.add_argument("--mock", action="store_true", help="Use canned market data instead of live APIs")
    parser.add_argument("--refresh", action="store_true", help="Run the pipeline instead of reading the active set")
    parser.add_argument("--loop", type=float, metavar="MINUTES", help="Regenerate every MINUTES until interrupted")
    parser.add_argument("--clear-cache", action="store_true", help="Delete all cached API responses and exit")
    return parser.parse_args()


def build_settings(config: dict) -> Settings:
    """Settings from env/.env, overridden by the YAML config where it is explicit."""
    overrides = {}
    sources = config.get("data_sources") or {}
    fmp = sources.get("fmp") or {}
    polygon = sources.get("polygon") or {}

    if fmp.get("api_key"):
        overrides["FMP_API_KEY"] = fmp["api_key"]
    if polygon.get("api_key"):
        overrides["POLYGON_API_KEY"] = polygon["api_key"]
    for prefix, source in (("FMP", fmp), ("POLYGON", polygon)):
        if "timeout" in source:
            overrides[f"{prefix}_TIMEOUT_SECONDS"] = source["timeout"]
        if "max_retries" in source:
            overrides[f"{prefix}_MAX_RETRIES"] = source["max_retries"]
    if config.get("use_mock_data"):
        overrides["USE_MOCK_DATA"] = True
    if config.get("database_url"):
        overrides["DATABASE_URL"] = config["database_url"]
    if config.get("log_level"):
        overrides["LOG_LEVEL"] = config["log_level"]

    return Settings(**overrides)


def print_recommendations(recommendations: List[Recommendation]) -> None:
    if not recommendations:
        print("No recommendations.")
        return

    header = f"{'Symbol':<7}{'Strike':>9}{'Expiry':>12}{'Premium':>9}{'Prem%':>7}{'POP':>7}{'Delta':>7}{'IV':>7}{'Score':>7}{'Earnings':>12}"
    print(header)
    print("-" * len(header))
    for rec in recommendations:
        print(
            f"{rec.symbol:<7}{rec.strike_price:>9.2f}{rec.expiration_date:>12}"
            f"{rec.premium:>9.2f}{rec.premium_percentage:>7.2f}{rec.pop:>7.1f}{rec.delta:>7.2f}"
            f"{rec.implied_volatility:>7.2f}{rec.confidence_score:>7.1f}{rec.earnings_date or '-':>12}"
        )


async def main():
    args = parse_args()

    config_file = Path(args.config)
    config = load_config_with_secrets(config_file) if config_file.exists() else {}
    settings = build_settings(config)
    setup_logging(settings.LOG_LEVEL, debug=settings.DEBUG)
    if not config_file.exists():
        logger.warning(f"Config file {config_file} not found, using defaults")

    db_engine = create_db_engine(settings.DATABASE_URL)
    init_db(db_engine)
    session_factory = create_session_factory(db_engine)

    criteria = RecommendationCriteria.from_config(config.get("criteria"))
    engine = build_engine(settings, session_factory, criteria, force_mock=True if args.mock else None)

    try:
        if args.clear_cache:
            deleted = await engine.cache.clear_all()
            print(f"Cleared {deleted} cache entries")
            return

        if args.loop:
            stop = asyncio.Event()
            try:
                await engine.run_forever(stop, args.loop)
            except (KeyboardInterrupt, asyncio.CancelledError):
                stop.set()
            return

        if args.refresh:
            recommendations = await engine.generate_recommendations()
        else:
            recommendations = await engine.get_cached_recommendations()
            if not recommendations:
                logger.info("No active recommendations, running the pipeline")
                recommendations = await engine.generate_recommendations()

        print_recommendations(recommendations)
        if engine.last_run:
            summary = engine.last_run
            print(
                f"\nSource: {summary.source} | symbols processed: {summary.symbols_processed} | "
                f"candidates: {summary.candidates} | failed batches: {summary.batches_failed}"
            )
    except Exception as e:
        print(user_facing_error_message(e))
        raise SystemExit(1)
    finally:
        await engine.close()


if __name__ == "__main__":
    asyncio.run(main())
