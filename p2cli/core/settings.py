from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="P2_", case_sensitive=False)

    # Checked by cli.parsers
    log_level: str = "warning"
    log_format: str = "console"
