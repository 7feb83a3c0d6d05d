from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

"""Config loader for the import CLI.

Responsibilities:
- Load YAML config (default ``config/import.yml``)
- Validate against the packaged ``import_schema.json``
- Apply defaults (batch_size=50, error_log_dir=./logs)
- Resolve the database DSN, environment variables first
"""

if TYPE_CHECKING:
    import jsonschema
    from jsonschema.exceptions import ValidationError
else:
    try:
        import jsonschema
        from jsonschema.exceptions import ValidationError
    except ImportError:  # pragma: no cover
        jsonschema = None  # type: ignore[assignment]
        ValidationError = Exception  # type: ignore[misc,assignment]

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "KindConfig",
    "ImportConfig",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "resolve_dsn",
]

SCHEMA_PATH = Path(__file__).parent / "import_schema.json"
DEFAULT_CONFIG_PATH = Path("config/import.yml")
DEFAULT_BATCH_SIZE = 50
DEFAULT_ERROR_LOG_DIR = "./logs"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class KindConfig:
    aliases: dict[str, list[str]] = field(default_factory=dict)
    skip_duplicates: bool | None = None
    match_alternate_email: bool | None = None


@dataclass(frozen=True)
class ImportConfig:
    batch_size: int = DEFAULT_BATCH_SIZE
    error_log_dir: str = DEFAULT_ERROR_LOG_DIR
    kinds: dict[str, KindConfig] = field(default_factory=dict)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def kind(self, name: str) -> KindConfig | None:
        return self.kinds.get(name)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: jsonschema missing, schema file missing or invalid, or
            the config violates the schema
    """
    if jsonschema is None:
        raise ConfigError("jsonschema library is required for config validation")

    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _kind_config(raw: Mapping[str, Any]) -> KindConfig:
    return KindConfig(
        aliases={name: list(labels) for name, labels in (raw.get("aliases") or {}).items()},
        skip_duplicates=raw.get("skip_duplicates"),
        match_alternate_email=raw.get("match_alternate_email"),
    )


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return ImportConfig(
        batch_size=data.get("batch_size", DEFAULT_BATCH_SIZE),
        error_log_dir=data.get("error_log_dir", DEFAULT_ERROR_LOG_DIR),
        kinds={name: _kind_config(raw or {}) for name, raw in (data.get("kinds") or {}).items()},
        database=db,
    )


def resolve_dsn(db: DatabaseConfig, environ: Mapping[str, str] | None = None) -> str | None:
    """Pick the connection string: DATABASE_URL / PGDSN, then PG* parts, then config.

    Returns None when nothing identifies a database.
    """
    env = os.environ if environ is None else environ
    for name in ("DATABASE_URL", "PGDSN"):
        if env.get(name):
            return env[name]

    parts = {
        "host": env.get("PGHOST") or db.host,
        "port": env.get("PGPORT") or (str(db.port) if db.port else None),
        "user": env.get("PGUSER") or db.user,
        "password": env.get("PGPASSWORD") or db.password,
        "dbname": env.get("PGDATABASE") or db.database,
    }
    if db.dsn and not any(env.get(n) for n in ("PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE")):
        return db.dsn
    if not parts["host"] and not parts["dbname"]:
        return None
    return " ".join(f"{key}={value}" for key, value in parts.items() if value)
