"""
Background coordinator entry point.

Startup: open the state store, apply migrations, restore the active user from a
persisted token + user id, then serve execution contexts over the gateway.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import replace

from .config import CoordinatorConfig, expand_path
from .context import CoordinatorContext
from .gateway import ContextGateway
from .migrations import migrate_if_needed
from .server.router import MessageRouter
from .store import create_store

logger = logging.getLogger("assist.coordinator")


def parse_args(argv: list[str] | None = None, config: CoordinatorConfig | None = None) -> CoordinatorConfig:
    base = config or CoordinatorConfig.from_env()
    parser = argparse.ArgumentParser(prog="assist-coordinator", description="Accessibility assistant coordinator")
    parser.add_argument("--host", default=None, help=f"bind host (default: {base.host})")
    parser.add_argument("--port", type=int, default=None, help=f"bind port (default: {base.port})")
    parser.add_argument("--state-file", default=None, help=f"JSON state file (default: {base.state_file})")
    parser.add_argument("--memory", action="store_true", help="keep state in memory only")
    args = parser.parse_args(argv)

    overrides: dict[str, object] = {}
    if args.host:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.state_file:
        overrides["state_file"] = expand_path(args.state_file)
    if args.memory:
        overrides["state_backend"] = "memory"
    return replace(base, **overrides) if overrides else base


async def build_coordinator(config: CoordinatorConfig) -> tuple[CoordinatorContext, MessageRouter, ContextGateway]:
    store = create_store(config.state_backend, config.state_file)
    ctx = CoordinatorContext(store, error_log_size=config.error_log_size)

    applied = await migrate_if_needed(store)
    if applied:
        logger.info("migrations applied: %s", ", ".join(applied))
    await ctx.bootstrap()

    router = MessageRouter(ctx)
    gateway = ContextGateway.from_config(ctx, router, config)
    return ctx, router, gateway


async def run(config: CoordinatorConfig) -> int:
    ctx, _router, gateway = await build_coordinator(config)
    try:
        await gateway.serve_forever()
    finally:
        await gateway.stop()
        await ctx.shutdown()
    return 0


def main(argv: list[str] | None = None) -> None:
    config = parse_args(argv)
    logging.basicConfig(
        level=config.logging_level,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    logger.info(
        "coordinator starting host=%s port=%s backend=%s", config.host, config.port, config.state_backend
    )
    try:
        raise SystemExit(asyncio.run(run(config)))
    except KeyboardInterrupt:
        raise SystemExit(0) from None


if __name__ == "__main__":
    main()
