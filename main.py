# main.py
"""Main entry point for the analyst consensus engine."""
import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from src.analysts import AnalystRegistry, RecommendationBook
from src.api import Services, create_app
from src.config.settings import Settings
from src.consensus import ConsensusAggregator
from src.credibility import CredibilityScoreEngine
from src.evaluation import EvaluationCycle
from src.orchestrator import UpdateOrchestrator
from src.providers import (
    HeadlineSentimentAnalyzer,
    YFinanceMarketDataProvider,
    YFinanceNewsProvider,
)
from src.storage import JsonDocumentStore


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

MODES = ("serve", "smart", "full", "evaluate", "earnings", "status")


def create_data_dirs(settings: Settings) -> None:
    """Create required data directories if they don't exist."""
    Path(settings.storage.data_dir).mkdir(parents=True, exist_ok=True)
    logger.info("Data directories verified")


def print_startup_banner(settings: Settings, mode: str) -> None:
    """Print system startup banner."""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.system.name}")
    logger.info(f"Mode: {mode}")
    logger.info(f"Version: {settings.system.version}")
    logger.info("=" * 60)


def load_and_validate_config() -> Settings:
    """Load and validate configuration.

    The path defaults to config/settings.yaml and can be overridden with
    CONSENSUS_CONFIG_PATH.

    Returns:
        Settings object loaded from YAML.

    Raises:
        SystemExit: If config file missing or YAML parsing fails.
    """
    # Load environment variables
    load_dotenv()
    logger.info("✓ Loaded environment variables")

    config_path = Path(os.getenv("CONSENSUS_CONFIG_PATH", "config/settings.yaml"))
    if not config_path.exists():
        logger.error(f"{config_path} not found")
        sys.exit(1)

    try:
        settings = Settings.from_yaml(config_path)
        logger.info(f"✓ Settings loaded from {config_path}")
    except Exception as e:
        logger.error(f"Failed to parse {config_path}: {e}")
        sys.exit(1)

    logging.getLogger().setLevel(settings.system.log_level.upper())
    create_data_dirs(settings)

    return settings


def initialize_services(settings: Settings) -> Services:
    """Build every service with explicitly injected collaborators.

    Args:
        settings: Loaded settings object.

    Returns:
        Services container.
    """
    store = JsonDocumentStore(Path(settings.storage.data_dir))
    logger.info(f"✓ Document store at {settings.storage.data_dir}")

    market_data = YFinanceMarketDataProvider(
        lookahead_days=settings.providers.price_lookahead_days
    )
    sentiment_analyzer = HeadlineSentimentAnalyzer(
        model_name=settings.providers.sentiment_model,
        batch_size=settings.providers.sentiment_batch_size,
    )
    news_provider = YFinanceNewsProvider(
        max_items=settings.providers.max_news_items,
        sentiment_analyzer=sentiment_analyzer,
    )
    logger.info("✓ yfinance providers initialized")

    registry = AnalystRegistry(store)
    book = RecommendationBook(store)
    score_engine = CredibilityScoreEngine(settings.credibility)
    evaluation_cycle = EvaluationCycle(
        registry=registry,
        book=book,
        score_engine=score_engine,
        market_data=market_data,
        settings=settings.evaluation,
    )
    aggregator = ConsensusAggregator(registry, book, settings.consensus)
    logger.info("✓ Credibility, evaluation and consensus initialized")

    orchestrator = UpdateOrchestrator(
        store=store,
        news_provider=news_provider,
        market_data=market_data,
        settings=settings.orchestrator,
        consensus_aggregator=aggregator,
        evaluation_cycle=evaluation_cycle,
    )
    logger.info("✓ UpdateOrchestrator initialized")

    return Services(
        registry=registry,
        book=book,
        score_engine=score_engine,
        evaluation_cycle=evaluation_cycle,
        consensus_aggregator=aggregator,
        orchestrator=orchestrator,
    )


async def run_once(services: Services, mode: str) -> dict:
    """Run a single cycle and return its JSON-ready result."""
    orchestrator = services.orchestrator
    if mode == "full":
        return (await orchestrator.run_full_update_cycle()).to_dict()
    if mode == "smart":
        return (await orchestrator.run_smart_update_cycle()).to_dict()
    if mode == "earnings":
        return (await orchestrator.refresh_earnings_calendar()).to_dict()
    if mode == "status":
        return (await orchestrator.get_status()).to_dict()
    if mode == "evaluate":
        summary = await services.evaluation_cycle.run_evaluator()
        return {
            "evaluated_count": summary.evaluated_count,
            "skipped_count": summary.skipped_count,
            "updated_analysts": summary.updated_analysts,
            "errors": summary.errors,
        }
    raise ValueError(f"Unknown mode: {mode}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Analyst consensus engine")
    parser.add_argument(
        "mode",
        nargs="?",
        default="serve",
        choices=MODES,
        help="serve the HTTP API or run a single cycle",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = load_and_validate_config()
    print_startup_banner(settings, args.mode)
    services = initialize_services(settings)

    if args.mode == "serve":
        app = create_app(services, settings.api)
        uvicorn.run(app, host=settings.api.host, port=settings.api.port)
        return

    result = asyncio.run(run_once(services, args.mode))
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
