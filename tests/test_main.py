# tests/test_main.py
"""Tests for main.py helper functions."""
import os
from unittest.mock import patch, AsyncMock, MagicMock
import pytest


def make_settings(tmp_path):
    from src.config.settings import Settings
    from src.storage.settings import StorageSettings

    return Settings(storage=StorageSettings(data_dir=str(tmp_path / "store")))


def test_create_data_dirs(tmp_path):
    """Test data directory creation."""
    from main import create_data_dirs

    settings = make_settings(tmp_path)
    create_data_dirs(settings)

    assert (tmp_path / "store").is_dir()


def test_load_and_validate_config_success(tmp_path):
    """Test successful config loading from CONSENSUS_CONFIG_PATH."""
    from main import load_and_validate_config

    config_file = tmp_path / "settings.yaml"
    config_file.write_text(
        "system:\n  name: Test\n  log_level: WARNING\n"
        f"storage:\n  data_dir: {tmp_path / 'store'}\n"
    )

    with patch.dict(os.environ, {"CONSENSUS_CONFIG_PATH": str(config_file)}):
        with patch("main.load_dotenv"):
            with patch("main.logging.getLogger") as mock_get_logger:
                settings = load_and_validate_config()

    assert settings.system.name == "Test"
    assert (tmp_path / "store").is_dir()
    mock_get_logger.return_value.setLevel.assert_called_once_with("WARNING")


def test_load_and_validate_config_missing_yaml(tmp_path):
    """Test config loading fails with missing YAML."""
    from main import load_and_validate_config

    missing = tmp_path / "missing.yaml"
    with patch.dict(os.environ, {"CONSENSUS_CONFIG_PATH": str(missing)}):
        with patch("main.load_dotenv"):
            with pytest.raises(SystemExit):
                load_and_validate_config()


def test_load_and_validate_config_invalid_yaml(tmp_path):
    """Test config loading fails when settings do not validate."""
    from main import load_and_validate_config

    config_file = tmp_path / "settings.yaml"
    config_file.write_text("orchestrator:\n  max_concurrent_updates: 0\n")

    with patch.dict(os.environ, {"CONSENSUS_CONFIG_PATH": str(config_file)}):
        with patch("main.load_dotenv"):
            with pytest.raises(SystemExit):
                load_and_validate_config()


def test_initialize_services(tmp_path):
    """Test that every service is wired from settings."""
    from main import initialize_services

    settings = make_settings(tmp_path)
    services = initialize_services(settings)

    assert services.orchestrator.settings == settings.orchestrator
    assert services.consensus_aggregator is not None
    assert services.evaluation_cycle is not None


def test_parse_args_defaults_to_serve():
    from main import parse_args

    assert parse_args([]).mode == "serve"
    assert parse_args(["smart"]).mode == "smart"
    assert parse_args(["earnings"]).mode == "earnings"


def test_parse_args_rejects_unknown_mode():
    from main import parse_args

    with pytest.raises(SystemExit):
        parse_args(["backtest"])


@pytest.mark.asyncio
async def test_run_once_dispatches_modes():
    """Test that each one-shot mode calls the matching service."""
    from main import run_once
    from src.evaluation import EvaluatorSummary
    from src.orchestrator.models import BatchUpdateResult, EarningsCalendarResult, OrchestratorStatus
    from datetime import datetime, timezone

    services = MagicMock()
    services.orchestrator.run_full_update_cycle = AsyncMock(return_value=BatchUpdateResult.empty())
    services.orchestrator.run_smart_update_cycle = AsyncMock(return_value=BatchUpdateResult.empty())
    services.orchestrator.get_status = AsyncMock(
        return_value=OrchestratorStatus(0, 0, [], [])
    )
    services.orchestrator.refresh_earnings_calendar = AsyncMock(
        return_value=EarningsCalendarResult.from_counts(1, 0, 0, datetime.now(timezone.utc))
    )
    services.evaluation_cycle.run_evaluator = AsyncMock(
        return_value=EvaluatorSummary(as_of=datetime.now(timezone.utc), evaluated_count=3)
    )

    assert (await run_once(services, "full"))["total_processed"] == 0
    assert (await run_once(services, "smart"))["total_processed"] == 0
    assert (await run_once(services, "status"))["active_tickers_count"] == 0
    assert (await run_once(services, "evaluate"))["evaluated_count"] == 3
    assert (await run_once(services, "earnings"))["created"] == 1

    with pytest.raises(ValueError):
        await run_once(services, "serve")


def test_main_serve_runs_uvicorn(tmp_path):
    """Test that serve mode starts the API server."""
    import main

    settings = make_settings(tmp_path)
    with patch("main.load_and_validate_config", return_value=settings):
        with patch("main.uvicorn.run") as mock_run:
            main.main(["serve"])

    mock_run.assert_called_once()
    assert mock_run.call_args.kwargs["port"] == settings.api.port


def test_main_one_shot_prints_json(tmp_path, capsys):
    """Test that one-shot modes print the result as JSON."""
    import main

    settings = make_settings(tmp_path)
    with patch("main.load_and_validate_config", return_value=settings):
        with patch("main.run_once", new=AsyncMock(return_value={"evaluated_count": 0})):
            main.main(["evaluate"])

    assert '"evaluated_count": 0' in capsys.readouterr().out


def test_initialize_services_wires_sentiment_model(tmp_path):
    """Test that the headline model comes from provider settings."""
    from main import initialize_services

    settings = make_settings(tmp_path)
    settings.providers.sentiment_model = "custom/model"
    settings.providers.sentiment_batch_size = 4

    with patch("main.YFinanceNewsProvider") as mock_news:
        initialize_services(settings)

    analyzer = mock_news.call_args.kwargs["sentiment_analyzer"]
    assert analyzer.model_name == "custom/model"
    assert analyzer.batch_size == 4
