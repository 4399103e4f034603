from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from solrise.domain.constants import (
    CATALOG_BASE_DELAY,
    CATALOG_MAX_ATTEMPTS,
    CATALOG_MAX_BYTES,
    CATALOG_TTL_SECONDS,
    CF_BASE_URL,
    DEFAULT_REFRESH_COUNT,
    REQUEST_TIMEOUT,
    STORAGE_CLEANUP_TARGET,
    STORAGE_TOTAL_LIMIT,
)

CONFIG_FILES = [
    Path.home() / ".config/solrise/config.toml",
    Path.home() / ".solrise.toml",
]


class AppConfig(BaseSettings):
    """
    Configuration model for solrise.
    Supports loading from:
    1. Environment variables (SOLRISE_*)
    2. Config file (~/.config/solrise/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="SOLRISE_",
        extra="ignore",
    )

    # Codeforces API
    api_base_url: str = CF_BASE_URL
    request_timeout: float = REQUEST_TIMEOUT
    refresh_count: int = Field(default=DEFAULT_REFRESH_COUNT, ge=1)

    # Persistent cache
    cache_path: Path | None = Field(
        default_factory=lambda: Path.home() / ".cache/solrise/store.json"
    )
    storage_quota_bytes: int = STORAGE_TOTAL_LIMIT
    storage_cleanup_bytes: int = STORAGE_CLEANUP_TARGET
    catalog_max_bytes: int = CATALOG_MAX_BYTES

    # Catalog refresh policy
    catalog_ttl_seconds: float = CATALOG_TTL_SECONDS
    fetch_max_attempts: int = Field(default=CATALOG_MAX_ATTEMPTS, ge=1)
    fetch_base_delay: float = Field(default=CATALOG_BASE_DELAY, ge=0)

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

        # First existing config file wins
        toml_file = next((f for f in CONFIG_FILES if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("cache_path", mode="before")
    @classmethod
    def resolve_cache_path(cls, v: Any) -> Path | None:
        if v is None or v == "":
            return None
        return Path(v).expanduser().resolve()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/solrise/config.toml (if exists)
    3. Environment variables (SOLRISE_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
