from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8775
DEFAULT_STATE_FILE = "~/.assist-coordinator/state.json"


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except Exception:
        return default
    if value < minimum:
        return default
    return value


@dataclass
class CoordinatorConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    state_backend: str = "file"
    state_file: str = expand_path(DEFAULT_STATE_FILE)
    log_level: str = "INFO"
    error_log_size: int = 200
    max_message_bytes: int = 2_000_000

    @staticmethod
    def normalize_backend(raw: str | None) -> str:
        backend = (raw or "").strip().lower()
        if backend in {"memory", "mem", "ephemeral"}:
            return "memory"
        return "file"

    @staticmethod
    def normalize_log_level(raw: str | None) -> str:
        level = (raw or "").strip().upper()
        if level in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            return level
        if level == "WARN":
            return "WARNING"
        return "INFO"

    @classmethod
    def from_env(cls) -> CoordinatorConfig:
        host = (os.environ.get("ASSIST_COORDINATOR_HOST") or DEFAULT_HOST).strip() or DEFAULT_HOST
        port = _env_int("ASSIST_COORDINATOR_PORT", DEFAULT_PORT)
        if port > 65535:
            port = DEFAULT_PORT
        return cls(
            host=host,
            port=port,
            state_backend=cls.normalize_backend(os.environ.get("ASSIST_STATE_BACKEND")),
            state_file=expand_path(os.environ.get("ASSIST_STATE_FILE") or DEFAULT_STATE_FILE),
            log_level=cls.normalize_log_level(os.environ.get("ASSIST_LOG_LEVEL")),
            error_log_size=_env_int("ASSIST_ERROR_LOG_SIZE", 200, minimum=1),
            max_message_bytes=_env_int("ASSIST_MAX_MESSAGE_BYTES", 2_000_000, minimum=1024),
        )

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)
