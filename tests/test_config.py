from __future__ import annotations

import logging
from pathlib import Path

_ENV_KEYS = (
    "ASSIST_COORDINATOR_HOST",
    "ASSIST_COORDINATOR_PORT",
    "ASSIST_STATE_BACKEND",
    "ASSIST_STATE_FILE",
    "ASSIST_LOG_LEVEL",
    "ASSIST_ERROR_LOG_SIZE",
    "ASSIST_MAX_MESSAGE_BYTES",
)


def _clear_env(monkeypatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_config_defaults(monkeypatch) -> None:
    from assist_servers.coordinator.config import DEFAULT_PORT, CoordinatorConfig

    _clear_env(monkeypatch)
    config = CoordinatorConfig.from_env()
    assert config.host == "127.0.0.1"
    assert config.port == DEFAULT_PORT
    assert config.state_backend == "file"
    assert config.state_file.endswith("state.json")
    assert "~" not in config.state_file
    assert config.logging_level == logging.INFO


def test_config_from_env(monkeypatch, tmp_path: Path) -> None:
    from assist_servers.coordinator.config import CoordinatorConfig

    _clear_env(monkeypatch)
    monkeypatch.setenv("ASSIST_COORDINATOR_HOST", "0.0.0.0")
    monkeypatch.setenv("ASSIST_COORDINATOR_PORT", "9001")
    monkeypatch.setenv("ASSIST_STATE_BACKEND", "MEM")
    monkeypatch.setenv("ASSIST_STATE_FILE", str(tmp_path / "s.json"))
    monkeypatch.setenv("ASSIST_LOG_LEVEL", "warn")
    monkeypatch.setenv("ASSIST_ERROR_LOG_SIZE", "5")

    config = CoordinatorConfig.from_env()
    assert config.host == "0.0.0.0"
    assert config.port == 9001
    assert config.state_backend == "memory"
    assert config.state_file == str(tmp_path / "s.json")
    assert config.log_level == "WARNING"
    assert config.error_log_size == 5


def test_config_ignores_invalid_numbers(monkeypatch) -> None:
    from assist_servers.coordinator.config import DEFAULT_PORT, CoordinatorConfig

    _clear_env(monkeypatch)
    monkeypatch.setenv("ASSIST_COORDINATOR_PORT", "not-a-port")
    monkeypatch.setenv("ASSIST_ERROR_LOG_SIZE", "0")
    monkeypatch.setenv("ASSIST_MAX_MESSAGE_BYTES", "10")
    config = CoordinatorConfig.from_env()
    assert config.port == DEFAULT_PORT
    assert config.error_log_size == 200
    assert config.max_message_bytes == 2_000_000

    monkeypatch.setenv("ASSIST_COORDINATOR_PORT", "70000")
    assert CoordinatorConfig.from_env().port == DEFAULT_PORT


def test_cli_flags_override_environment(monkeypatch, tmp_path: Path) -> None:
    from assist_servers.coordinator.config import CoordinatorConfig
    from assist_servers.coordinator.main import parse_args

    _clear_env(monkeypatch)
    monkeypatch.setenv("ASSIST_COORDINATOR_PORT", "9001")

    config = parse_args(["--port", "9100", "--state-file", str(tmp_path / "x.json")])
    assert config.port == 9100
    assert config.state_file == str(tmp_path / "x.json")
    assert config.state_backend == "file"

    base = CoordinatorConfig(port=1234)
    assert parse_args([], base) is base
    assert parse_args(["--memory"], base).state_backend == "memory"


def test_build_coordinator_migrates_and_restores_user(tmp_path: Path) -> None:
    import asyncio
    import json

    from assist_servers.coordinator import __version__
    from assist_servers.coordinator.config import CoordinatorConfig
    from assist_servers.coordinator.main import build_coordinator

    state = tmp_path / "state.json"
    items = {"user_id": "u1", "auth_token": "t", "coordinator_version": "0.5.0"}
    state.write_text(json.dumps({"version": 1, "items": items}), encoding="utf-8")

    async def _main():
        ctx, router, gateway = await build_coordinator(CoordinatorConfig(state_file=str(state), port=0))
        assert ctx.active_user == "u1"
        assert "SYNC_SETTINGS" in router.message_types
        assert gateway.port == 0
        assert await ctx.store.get("coordinator_version") == __version__

    asyncio.run(_main())
