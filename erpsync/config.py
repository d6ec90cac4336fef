import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

_CONFIG_PATH = os.getenv("ERPSYNC_CONFIG", "config.toml")
_ENV_PATH = os.getenv("ERPSYNC_ENV", ".env")


class ErpSettings(BaseModel):
    base_url: str = "http://localhost:8080"
    username: str = ""
    password: str = ""
    timeout: float = 120.0


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ERPSYNC_",
        env_nested_delimiter="__",
        toml_file=_CONFIG_PATH,
        env_file=_ENV_PATH,
    )

    database_url: str = "sqlite:///erpsync.db"
    database_echo: bool = False
    erp: ErpSettings = Field(default_factory=ErpSettings)
    # How often a running scheduler re-reads job settings; 0 disables
    settings_watch_seconds: int = 60

    logs_dir: Path = Field(default=Path("logs"))

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Source order: init args > OS env > .env > config.toml > secrets
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


settings = Settings()
