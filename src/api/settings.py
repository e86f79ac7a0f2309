# src/api/settings.py
"""Configuration for the HTTP API."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Settings for the FastAPI application and its server."""

    model_config = SettingsConfigDict(env_prefix="CONSENSUS_API_", extra="ignore")

    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    title: str = "Analyst Consensus Engine"
    # Expose exception text in 500 responses
    debug: bool = False
