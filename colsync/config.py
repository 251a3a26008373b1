"""App configuration loading helpers."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal, Mapping

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .models import (
    Connection,
    ConnectionKind,
    LegacyFileConnection,
    RelationalConnection,
    UnimplementedConnection,
)

LOG = logging.getLogger(__name__)

CONFIG_FILE = Path.home() / ".config" / "colsync" / "config.toml"


class ConnectionConfig(BaseModel):
    """Connection entry stored in config.toml."""

    name: str
    kind: ConnectionKind = ConnectionKind.RELATIONAL
    dsn_env: str | None = None
    dsn: str | None = None
    path_env: str | None = None
    path: str | None = None
    default_schema: str | None = "dbo"
    limit_style: Literal["top", "limit"] = "limit"
    view_prefix: str | None = None


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    sync_interval: float = Field(default=2.0, gt=0)
    store_path: str = "colsync.db"
    log_file: str = "colsync.log"
    log_level: str = "INFO"
    connections: list[ConnectionConfig] = Field(default_factory=lambda: list(_default_connections()))

    def connection_names(self) -> tuple[str, ...]:
        return tuple(entry.name for entry in self.connections)


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing or invalid."""

    target = path or CONFIG_FILE
    try:
        with target.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError) as exc:
        LOG.warning("Ignoring unreadable config %s: %s", target, exc)
        return AppConfig()
    try:
        return AppConfig(**raw)
    except ValidationError as exc:
        LOG.warning("Ignoring invalid config %s: %s", target, exc)
        return AppConfig()


def resolve_connections(
    config: AppConfig,
    environ: Mapping[str, str] | None = None,
) -> tuple[Connection, ...]:
    """Resolve configured descriptors from the environment into connection variants."""

    env = os.environ if environ is None else environ
    return tuple(_resolve(entry, env) for entry in config.connections)


def _resolve(entry: ConnectionConfig, env: Mapping[str, str]) -> Connection:
    if entry.kind is ConnectionKind.RELATIONAL:
        descriptor = entry.dsn or (env.get(entry.dsn_env) if entry.dsn_env else None)
        if not descriptor:
            return UnimplementedConnection(entry.name, reason=f"{entry.dsn_env or 'dsn'} is not set")
        return RelationalConnection(
            name=entry.name,
            connection_string=odbc_connection_string(descriptor),
            default_schema=entry.default_schema,
            limit_style=entry.limit_style,
            view_prefix=entry.view_prefix,
        )
    if entry.kind is ConnectionKind.LEGACY_FILE:
        raw_path = entry.path or (env.get(entry.path_env) if entry.path_env else None)
        if not raw_path:
            return UnimplementedConnection(entry.name, reason=f"{entry.path_env or 'path'} is not set")
        return LegacyFileConnection(name=entry.name, path=Path(raw_path).expanduser().resolve())
    return UnimplementedConnection(entry.name)


def odbc_connection_string(descriptor: str) -> str:
    """Treat bare names as DSNs; pass full connection strings through."""

    value = descriptor.strip()
    if "=" in value:
        return value
    return f"DSN={value}"


def _default_connections() -> tuple[ConnectionConfig, ...]:
    """Connections known out of the box; descriptors come from the environment."""

    return (
        ConnectionConfig(
            name="EPICOR",
            dsn_env="EPICOR_DSN",
            limit_style="top",
            view_prefix="p21_view_",
        ),
        ConnectionConfig(
            name="POINT_OF_RENTAL",
            kind=ConnectionKind.LEGACY_FILE,
            path_env="POR_PATH",
        ),
        ConnectionConfig(name="QUICKBOOKS", dsn_env="QB_DSN", default_schema=None),
        ConnectionConfig(name="JOBSCOPE", dsn_env="JOBSCOPE_DSN", default_schema=None),
    )


__all__ = [
    "AppConfig",
    "CONFIG_FILE",
    "ConnectionConfig",
    "load_config",
    "odbc_connection_string",
    "resolve_connections",
]
