from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - TASKS_JSON_PATH: path to the JSON snapshot file. Default 'tasks.json'
    - HOST: interface to bind. Default '0.0.0.0'
    - PORT: listen port; ':8080' style values are accepted. Default 8080
    - ALLOWED_ORIGINS: comma-separated list of allowed CORS origins, '*' for any.
      Default 'http://localhost:5173'
    - LOG_LEVEL: root log level name. Default 'INFO'
    - LOG_FILE: optional path of a log file in addition to stderr
    """

    tasks_json_path: str
    host: str
    port: int
    allowed_origins: List[str]
    log_level: str
    log_file: Optional[str]


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _parse_port(value: str, default: int = 8080) -> int:
    v = value.strip().lstrip(":")
    try:
        port = int(v)
    except ValueError:
        return default
    return port if 0 < port < 65536 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    log_file = os.getenv("LOG_FILE", "").strip() or None
    return Settings(
        tasks_json_path=_get_env("TASKS_JSON_PATH", "tasks.json"),
        host=_get_env("HOST", "0.0.0.0"),
        port=_parse_port(_get_env("PORT", "8080")),
        allowed_origins=_parse_origins(_get_env("ALLOWED_ORIGINS", "http://localhost:5173")),
        log_level=_get_env("LOG_LEVEL", "INFO").upper(),
        log_file=log_file,
    )
