"""Configuration management for the database sync service."""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .exceptions import ConfigurationError


DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "config.yaml"

# Keys recognized in the database env file
CONNECTION_KEYS = {
    "DB_HOST": "host",
    "DB_U": "user",
    "DB_P": "password",
    "DB_NAME": "database",
    "DB_PORT": "port",
}


class ConnectionConfig(BaseModel):
    """Database connection settings parsed from a KEY=VALUE env file."""
    model_config = ConfigDict(frozen=True)

    host: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    port: Optional[int] = None

    def missing_fields(self) -> List[str]:
        return [name for name in CONNECTION_KEYS.values() if getattr(self, name) is None]

    def require_complete(self) -> "ConnectionConfig":
        """Raise ConfigurationError unless every connection field is set."""
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(
                f"Incomplete database configuration, missing: {', '.join(missing)}"
            )
        return self


class RepositoryConfig(BaseModel):
    github_repo: str = "your-username/sm-db-scripts"
    remote_url_template: str = "https://github.com/{repo}.git"
    branch: str = "main"
    local_dir: str = "./sm-db-scripts"
    schema_extension: str = ".sql"

    @property
    def remote_url(self) -> str:
        return self.remote_url_template.format(repo=self.github_repo)


class DatabaseConfig(BaseModel):
    env_config_path: Optional[str] = None
    tracked_tables: List[str] = Field(
        default=["holdings_list", "watch_list", "symbol_info", "sold_list"]
    )
    connect_timeout: int = 10


class BackupConfig(BaseModel):
    backup_dir: str = "./db-backups"
    prefix: str = "sm_db"
    dump_command: str = "mysqldump"
    dump_timeout_seconds: Optional[int] = None


class ScheduleConfig(BaseModel):
    type: str = Field(..., description="Schedule type: interval or daily")
    time: Optional[str] = None
    interval_minutes: Optional[int] = Field(None, ge=1)
    minute: Optional[int] = Field(None, ge=0, le=59)

    @field_validator("type")
    @classmethod
    def _check_type(cls, value: str) -> str:
        if value not in ("interval", "daily"):
            raise ValueError(f"Unsupported schedule type: {value}")
        return value

    @model_validator(mode="after")
    def _check_fields(self) -> "ScheduleConfig":
        if self.type == "daily" and not self.time:
            raise ValueError("Daily schedules require a time (HH:MM)")
        if self.type == "interval" and not self.interval_minutes:
            raise ValueError("Interval schedules require interval_minutes")
        return self


class JobConfig(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    enabled: bool = True
    schedule: ScheduleConfig


def _default_jobs() -> List[JobConfig]:
    return [
        JobConfig(
            id="full_sync",
            name="Full Database Sync",
            description="Pull schema, apply it, count tracked tables, export and publish a backup",
            schedule=ScheduleConfig(type="daily", time="02:00"),
        ),
        JobConfig(
            id="hourly_backup",
            name="Hourly Backup",
            description="Export the database to a local backup file",
            schedule=ScheduleConfig(type="interval", interval_minutes=60, minute=0),
        ),
        JobConfig(
            id="schema_refresh",
            name="Schema Refresh",
            description="Pull the latest schema and apply it to the database",
            schedule=ScheduleConfig(type="interval", interval_minutes=240, minute=0),
        ),
    ]


class SchedulerConfig(BaseModel):
    jobs: List[JobConfig] = Field(default_factory=_default_jobs)


class ConcurrencyConfig(BaseModel):
    serialize_operations: bool = True


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}"
    file: Optional[str] = None
    rotation: str = "10 MB"
    retention: str = "14 days"


class Config(BaseModel):
    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file with environment variable substitution."""

    # Load environment variables
    load_dotenv()

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    try:
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {config_path}: {e}") from e

    config_data = _substitute_env_vars(config_data)

    return Config(**config_data)


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute ${VAR_NAME:default} patterns with environment variables."""
    if isinstance(obj, dict):
        return {key: _substitute_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
        var_spec = obj[2:-1]
        if ":" in var_spec:
            var_name, default_value = var_spec.split(":", 1)
        else:
            var_name, default_value = var_spec, None

        value = os.getenv(var_name, default_value)
        # ${VAR:} with nothing set means "not configured"
        return value if value != "" else None
    else:
        return obj


def parse_env_file(content: str) -> Dict[str, str]:
    """Parse KEY=VALUE lines, splitting on the first '='.

    Lines without '=' or with an empty key or value are skipped.
    A key declared more than once keeps its last value.
    """
    values = {}
    for line in content.splitlines():
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key, value = key.strip(), value.strip()
        if key and value:
            values[key] = value
    return values


def _parse_port(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    # ASCII digits only
    if value.isascii() and value.isdigit():
        return int(value)
    return None


def load_connection_config(path: Optional[str]) -> ConnectionConfig:
    """Load database connection settings from a KEY=VALUE env file.

    Args:
        path: Path to the env file (DB_HOST, DB_U, DB_P, DB_NAME, DB_PORT)

    Returns:
        ConnectionConfig; fields absent from the file are None, and a
        missing or non-numeric DB_PORT yields port=None
    """
    if not path:
        raise ConfigurationError("No database env file configured (ENV_CONFIG_PATH)")

    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read database env file {path}: {e}") from e

    values = parse_env_file(content)
    fields = {
        field: values.get(key)
        for key, field in CONNECTION_KEYS.items()
        if key != "DB_PORT"
    }
    fields["port"] = _parse_port(values.get("DB_PORT"))

    return ConnectionConfig(**fields)
