"""Configuration management using pydantic-settings."""

import re
from pathlib import Path
from typing import Any, Literal, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from datasifter.exceptions import ConfigurationError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# YAML section -> {yaml key: settings field}
_YAML_LAYOUT: dict[str, dict[str, str]] = {
    "database": {
        "url": "database_url",
        "pool_size": "db_pool_size",
        "max_overflow": "db_max_overflow",
        "pool_timeout": "db_pool_timeout",
        "pool_recycle": "db_pool_recycle",
    },
    "ingestion": {
        "table": "table_name",
        "column_length": "column_length",
        "delimiter": "csv_delimiter",
        "chunk_size": "read_chunk_size",
    },
    "export": {
        "output_suffix": "output_suffix",
    },
    "logging": {
        "level": "log_level",
        "format": "log_format",
    },
}


def default_config_path() -> Path:
    """Default YAML configuration location."""
    return Path.home() / ".datasifter" / "config.yaml"


def load_yaml_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Priority:
    1. Explicitly provided config_path
    2. ~/.datasifter/config.yaml (default location)
    3. Empty dict if no file exists

    Args:
        config_path: Optional path to config file

    Returns:
        Dictionary of configuration values (flattened from nested YAML)
    """
    if config_path is None:
        config_path = default_config_path()

    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            yaml_data = yaml.safe_load(f) or {}

        flattened = {}
        for section, keys in _YAML_LAYOUT.items():
            values = yaml_data.get(section) or {}
            for yaml_key, field_name in keys.items():
                if yaml_key in values:
                    flattened[field_name] = values[yaml_key]

        return flattened

    except Exception as e:
        import warnings

        warnings.warn(f"Failed to load config from {config_path}: {e}")
        return {}


def _is_in_memory_sqlite(url: str) -> bool:
    """True for `sqlite://`, `sqlite:///:memory:` and `mode=memory` URLs."""
    path, _, query = url[len("sqlite://"):].partition("?")
    if path.startswith("/"):
        path = path[1:]
    return path in ("", ":memory:") or "mode=memory" in query


_config_path: Path | None = None


class YamlSettingsSource(PydanticBaseSettingsSource):
    """
    Custom settings source that loads configuration from YAML file.

    This allows YAML config to be loaded with proper priority in the settings chain.
    """

    def get_field_value(self, field: Any, field_name: str) -> Tuple[Any, str, bool]:
        """Not used since we override __call__."""
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        return load_yaml_config(_config_path)


class Settings(BaseSettings):
    """
    datasifter configuration settings.

    Configuration priority (highest to lowest):
    1. Environment variables (e.g., DATABASE_URL=postgresql://...)
    2. YAML configuration file (~/.datasifter/config.yaml)
    3. Default values defined in this class
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = Field(
        default="sqlite:///~/.datasifter/datasifter.db",
        description="SQLAlchemy database URL (SQLite or PostgreSQL)",
    )
    db_pool_size: int = Field(
        default=5,
        ge=1,
        description="Connections kept in the pool",
    )
    db_max_overflow: int = Field(
        default=0,
        ge=0,
        description="Connections allowed beyond pool_size",
    )
    db_pool_timeout: int = Field(
        default=30,
        ge=1,
        description="Timeout in seconds for getting connection from pool",
    )
    db_pool_recycle: int = Field(
        default=3600,
        ge=0,
        description="Recycle connections after this many seconds",
    )

    table_name: str = Field(default="data", description="Destination table name")
    column_length: int = Field(
        default=256, ge=1, description="Declared VARCHAR capacity per column"
    )
    csv_delimiter: str = Field(
        default=",", min_length=1, max_length=1, description="Field delimiter"
    )
    read_chunk_size: int = Field(
        default=1000, ge=1, description="Records parsed per worker-thread hop"
    )

    output_suffix: str = Field(
        default=".data-sifter-output.csv",
        min_length=1,
        description="Suffix appended to the input path for file exports",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text", description="Log format"
    )

    @field_validator("database_url")
    @classmethod
    def validate_db_url(cls, v: str) -> str:
        """Validate database URL format and expand ~ in SQLite paths."""
        if not (v.startswith("sqlite://") or v.startswith("postgresql")):
            raise ValueError("Database URL must be SQLite or PostgreSQL")

        if v.startswith("sqlite://") and _is_in_memory_sqlite(v):
            raise ValueError(
                "In-memory SQLite is not supported: each pooled connection would "
                "open its own empty database. Use a file path, e.g. sqlite:///sifter.db"
            )

        if v.startswith("sqlite:///"):
            path_part = v[10:]

            if path_part.startswith("~"):
                expanded_path = Path(path_part).expanduser()
                v = f"sqlite:///{expanded_path}"

        return v

    @field_validator("table_name")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        """Table name is interpolated into DDL, keep it a plain identifier."""
        if not _IDENTIFIER.match(v):
            raise ValueError(f"Table name must be a plain identifier: {v!r}")
        return v

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite backend."""
        return self.database_url.startswith("sqlite")

    @property
    def is_postgresql(self) -> bool:
        """Check if using PostgreSQL backend."""
        return self.database_url.startswith("postgresql")

    @property
    def pool_capacity(self) -> int:
        """Upper bound on simultaneously borrowed connections."""
        return self.db_pool_size + self.db_max_overflow

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """
        Customize settings sources priority.

        Priority order (highest to lowest):
        1. Explicit kwargs (init_settings) - for testing and programmatic config
        2. Environment variables
        3. YAML configuration file
        4. .env file
        5. Field defaults
        """
        return (
            init_settings,
            env_settings,
            YamlSettingsSource(settings_cls),
            dotenv_settings,
        )


def settings_to_dict(settings: Settings) -> dict[str, dict[str, Any]]:
    """Nest settings back into the YAML section layout."""
    return {
        section: {
            yaml_key: getattr(settings, field_name)
            for yaml_key, field_name in keys.items()
        }
        for section, keys in _YAML_LAYOUT.items()
    }


def write_default_config(path: Path | None = None) -> Path:
    """
    Write default settings to a new YAML file.

    Args:
        path: Target file (defaults to ~/.datasifter/config.yaml)

    Returns:
        Path written

    Raises:
        ConfigurationError: If the file already exists or cannot be written
    """
    path = path or default_config_path()
    defaults = Settings.model_construct()

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "x") as f:
            yaml.safe_dump(settings_to_dict(defaults), f, default_flow_style=False, sort_keys=False)
    except FileExistsError:
        raise ConfigurationError(f"Config file already exists: {path}", path=str(path))
    except OSError as e:
        raise ConfigurationError(
            f"Unable to write config file {path}: {e}. "
            "Are you sure your config directory is writable?",
            path=str(path),
        ) from e

    return path


_settings: Settings | None = None


def get_settings(config_path: Path | None = None, reload: bool = False) -> Settings:
    """
    Get global settings instance.

    Configuration loading order (highest to lowest priority):
    1. Environment variables (e.g., DB_POOL_SIZE=8)
    2. YAML configuration file (~/.datasifter/config.yaml)
    3. .env file
    4. Default values defined in Settings class

    Args:
        config_path: Optional path to YAML config file (defaults to ~/.datasifter/config.yaml)
        reload: If True, force reload settings (useful for testing)

    Returns:
        Settings instance with merged configuration
    """
    global _settings, _config_path
    if _settings is None or reload:
        _config_path = config_path

        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (useful for testing)."""
    global _settings, _config_path
    _settings = None
    _config_path = None
