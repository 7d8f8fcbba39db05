"""Context-originated reports arriving over a connection.

None of these produce a response; failures are logged and dropped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...urls import domain_from_url
from ..messages import (
    APPLY_ACCESSIBILITY_FEATURES,
    FeatureActivated,
    FeatureDeactivated,
    LogError,
    PageLoaded,
)
from .base import logger, store_errors_logged
from .settings import settings_for_url

if TYPE_CHECKING:
    from ...connections import Connection
    from ...context import CoordinatorContext


@store_errors_logged("handling page loaded")
async def handle_page_loaded(ctx: CoordinatorContext, message: PageLoaded, connection: Connection) -> None:
    user_id = await ctx.current_user()
    if not user_id:
        logger.warning("No user ID found for page load tracking")
        return

    domain = domain_from_url(message.url)
    if domain is None:
        logger.warning("Page load without a usable URL connection=%s", connection.connection_id)
    else:
        await ctx.stats.record_page_load(user_id, domain)

    result = await settings_for_url(ctx, message.url)
    if result.success:
        # Same shape as the REQUEST_SETTINGS reply, explicit null included.
        await ctx.connections.push(connection, {"type": APPLY_ACCESSIBILITY_FEATURES, "payload": result.data})


@store_errors_logged("handling feature activation")
async def handle_feature_activated(
    ctx: CoordinatorContext, message: FeatureActivated, connection: Connection
) -> None:
    if not message.feature_name:
        logger.warning("No feature name provided for activation")
        return
    user_id = await ctx.current_user()
    if not user_id:
        logger.warning("No user ID found for feature activation tracking")
        return
    await ctx.stats.record_feature_used(user_id, message.feature_name, 1)


async def handle_feature_deactivated(
    ctx: CoordinatorContext, message: FeatureDeactivated, connection: Connection
) -> None:
    logger.debug("feature deactivated name=%s connection=%s", message.feature_name, connection.connection_id)


async def handle_log_error(ctx: CoordinatorContext, message: LogError, connection: Connection) -> None:
    entry = ctx.record_error(message.error, message.context)
    logger.error("Extension error [%s]: %s", entry["context"], entry["error"])


PORT_HANDLERS = {
    PageLoaded: handle_page_loaded,
    FeatureActivated: handle_feature_activated,
    FeatureDeactivated: handle_feature_deactivated,
    LogError: handle_log_error,
}
