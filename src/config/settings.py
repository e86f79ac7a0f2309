# src/config/settings.py
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from src.api.settings import ApiSettings
from src.consensus.settings import ConsensusSettings
from src.credibility.settings import CredibilitySettings
from src.evaluation.settings import EvaluationSettings
from src.orchestrator.settings import OrchestratorSettings
from src.storage.settings import StorageSettings


class SystemConfig(BaseModel):
    name: str = "Analyst Consensus Engine"
    version: str = "1.0.0"
    log_level: str = "INFO"


class ProvidersConfig(BaseModel):
    """Settings for the yfinance-backed providers."""

    price_lookahead_days: int = Field(default=5, ge=1, le=30)
    max_news_items: int = Field(default=10, ge=1, le=100)
    sentiment_model: str = "StephanAkkerman/FinTwitBERT-sentiment"
    sentiment_batch_size: int = Field(default=32, ge=1, le=256)


def _with_env(settings_cls: type[BaseSettings], data: dict | None) -> BaseSettings:
    """Build env-aware settings where environment variables win over YAML."""
    from_env = settings_cls().model_dump(exclude_unset=True)
    return settings_cls(**{**(data or {}), **from_env})


class Settings(BaseModel):
    system: SystemConfig = Field(default_factory=SystemConfig)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    credibility: CredibilitySettings = Field(default_factory=CredibilitySettings)
    evaluation: EvaluationSettings = Field(default_factory=EvaluationSettings)
    consensus: ConsensusSettings = Field(default_factory=ConsensusSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file with env var overrides."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        storage = _with_env(StorageSettings, data.pop("storage", None))
        api = _with_env(ApiSettings, data.pop("api", None))

        return cls(
            **data,
            storage=storage,
            api=api,
        )
