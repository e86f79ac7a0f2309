# src/storage/settings.py
"""Configuration for the document store."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Settings for the JSON document store.

    ``CONSENSUS_STORE_DATA_DIR`` overrides the data directory.
    """

    model_config = SettingsConfigDict(env_prefix="CONSENSUS_STORE_")

    data_dir: str = "data/store"
