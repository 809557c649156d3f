from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from fluentflow.domain.constants import (
    DEFAULT_GEMINI_MODEL,
    JUDGE_TIMEOUT,
    REQUEST_TIMEOUT,
)

CONFIG_FILES = [
    Path.home() / ".config/fluentflow/config.toml",
    Path.home() / ".fluentflow.toml",
]


class AppConfig(BaseSettings):
    """
    Configuration model for FluentFlow.
    Supports loading from:
    1. Environment variables (FLUENTFLOW_*)
    2. Config file (~/.config/fluentflow/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="FLUENTFLOW_",
        extra="ignore",
        populate_by_name=True,
    )

    # Storage
    backend: Literal["json", "library", "sqlite", "http"] = "json"
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".config/fluentflow")
    store_path: Path | None = None  # json backend (and word book for library)
    library_dir: Path | None = None  # library backend
    database_path: Path | None = None  # sqlite backend
    server_url: str = "http://127.0.0.1:3001"  # http backend

    # Language assistant
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "gemini_api_key", "FLUENTFLOW_GEMINI_API_KEY", "GEMINI_API_KEY"
        ),
    )
    gemini_model: str = DEFAULT_GEMINI_MODEL
    judge_timeout: float = JUDGE_TIMEOUT
    request_timeout: float = REQUEST_TIMEOUT

    # Logging
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/fluentflow/logs")
    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Find the first existing file
        toml_file = next((f for f in CONFIG_FILES if f.exists()), None)

        # Earlier sources win: CLI overrides, then environment, then the file.
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_dir", "store_path", "library_dir", "database_path", mode="before")
    @classmethod
    def resolve_paths(cls, v: Any) -> Path | None:
        if v is None or v == "":
            return None
        return Path(v).expanduser().resolve()

    @field_validator("server_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/fluentflow/config.toml (if exists)
    3. Environment variables (FLUENTFLOW_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    config = AppConfig(**overrides)

    # Derived paths default to files inside data_dir
    if config.store_path is None:
        config.store_path = config.data_dir / "library.json"
    if config.library_dir is None:
        config.library_dir = config.data_dir / "library"
    if config.database_path is None:
        config.database_path = config.data_dir / "learning_progress.db"

    return config
