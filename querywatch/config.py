"""Settings for QueryWatch.

Values come from, in order of precedence: explicit keyword arguments,
environment variables, the YAML config file, a ``.env`` file, and the
field defaults. Environment variable names are the field names
(``STORE_PATH``, ``QUERY_LOG_TABLE``, ...).
"""

import re
import warnings
from pathlib import Path
from typing import Any, Literal, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

DEFAULT_CONFIG_PATH = Path("~/.querywatch/config.yaml")

# (section, key) in config.yaml -> settings field
YAML_FIELDS: dict[tuple[str, str], str] = {
    ("server", "host"): "querywatch_host",
    ("server", "port"): "querywatch_port",
    ("server", "workers"): "querywatch_workers",
    ("store", "path"): "store_path",
    ("store", "read_only"): "store_read_only",
    ("store", "table"): "query_log_table",
    ("store", "pool_size"): "store_pool_size",
    ("store", "pool_timeout_seconds"): "store_pool_timeout_seconds",
    ("store", "memory_limit"): "store_memory_limit",
    ("store", "threads"): "store_threads",
    ("store", "query_timeout_seconds"): "store_query_timeout_seconds",
    ("api", "cors_allowed_origins"): "cors_allowed_origins",
    ("logging", "level"): "log_level",
    ("logging", "format"): "log_format",
}


def load_yaml_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    Read config.yaml and map its sections onto settings field names.

    Falls back to ``~/.querywatch/config.yaml``. A missing file yields an
    empty dict; an unreadable one yields an empty dict and a warning.

    Example:
        store:
          path: /data/query_log.duckdb   ->  {"store_path": "/data/query_log.duckdb"}
    """
    path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
    if not path.exists():
        return {}

    try:
        with open(path) as f:
            document = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        warnings.warn(f"Ignoring config file {path}: {e}")
        return {}

    if not isinstance(document, dict):
        warnings.warn(f"Ignoring config file {path}: expected a mapping at top level")
        return {}

    values: dict[str, Any] = {}
    for (section, key), field_name in YAML_FIELDS.items():
        block = document.get(section)
        if isinstance(block, dict) and key in block:
            values[field_name] = block[key]
    return values


_config_path: Path | None = None


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Settings source backed by the YAML file chosen in ``get_settings``."""

    def get_field_value(self, field: Any, field_name: str) -> Tuple[Any, str, bool]:
        # Unused: __call__ returns every value at once.
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        return load_yaml_config(_config_path)


class Settings(BaseSettings):
    """Server, log store, API and logging settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    querywatch_host: str = Field(default="0.0.0.0", description="Address the API server binds to")
    querywatch_port: int = Field(default=8080, ge=1, le=65535, description="API server port")
    querywatch_workers: int = Field(
        default=1, ge=1, description="uvicorn worker processes"
    )

    store_path: str = Field(
        default="~/.querywatch/query_log.duckdb",
        description="DuckDB database file holding the query log (':memory:' for tests)",
    )
    store_read_only: bool = Field(
        default=False,
        description="Open the query log database read-only",
    )
    query_log_table: str = Field(
        default="query_log",
        description="Table holding query log events",
    )
    store_pool_size: int = Field(
        default=10, ge=1, description="Maximum pooled DuckDB cursors"
    )
    store_pool_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for a free pooled cursor",
    )
    store_memory_limit: str = Field(default="1GB", description="DuckDB memory limit")
    store_threads: int = Field(default=4, ge=1, description="DuckDB thread count")
    store_query_timeout_seconds: float = Field(
        default=70.0,
        gt=0,
        description="Deadline for a single log store query",
    )

    cors_allowed_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:3001",
            "http://127.0.0.1:3001",
        ],
        description="Origins allowed by the CORS middleware",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root logger level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json", description="json for structured output, text for console"
    )

    @field_validator("store_path")
    @classmethod
    def validate_store_path(cls, v: str) -> str:
        """Expand ~ in file paths; leave in-memory databases untouched."""
        if v == ":memory:" or v.startswith(":memory:"):
            return v
        return str(Path(v).expanduser())

    @field_validator("query_log_table")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        """Table name is interpolated into SQL, so it must be a bare identifier."""
        if not IDENTIFIER_PATTERN.match(v):
            raise ValueError(f"Invalid table name: {v!r}")
        return v

    @property
    def is_in_memory(self) -> bool:
        """True for ":memory:" databases."""
        return self.store_path.startswith(":memory:")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # kwargs > environment > config.yaml > .env > defaults
        return (
            init_settings,
            env_settings,
            YamlSettingsSource(settings_cls),
            dotenv_settings,
        )


_settings: Settings | None = None


def get_settings(config_path: Path | None = None, reload: bool = False) -> Settings:
    """
    Return the process-wide settings, building them on first use.

    ``config_path`` selects the YAML file; ``reload=True`` rebuilds the
    settings from the current environment.
    """
    global _settings, _config_path
    if _settings is None or reload:
        _config_path = config_path
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call rebuilds them."""
    global _settings
    _settings = None
