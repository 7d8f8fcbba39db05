"""Global settings: sync, apply and request."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...store import StorageKey
from ..messages import ApplySettings, RequestSettings, SyncSettings, apply_features
from ..types import HandlerResult, Sender
from .base import logger, store_errors_as_result

if TYPE_CHECKING:
    from ...context import CoordinatorContext


async def settings_for_url(ctx: CoordinatorContext, url: str | None) -> HandlerResult:
    """Current settings plus the active user's override for the URL's domain.

    Shared by REQUEST_SETTINGS and the PAGE_LOADED push path; neither needs a
    target context, the caller decides where the result goes.
    """
    settings = await ctx.store.get(StorageKey.SETTINGS)
    if settings is None:
        return HandlerResult.fail("Settings not found")

    website_preferences = None
    user_id = await ctx.current_user()
    if url and user_id:
        website_preferences = await ctx.preferences.for_url(user_id, url)

    return HandlerResult.ok({"settings": settings, "websitePreferences": website_preferences})


@store_errors_as_result("syncing settings")
async def handle_sync_settings(ctx: CoordinatorContext, message: SyncSettings, sender: Sender) -> HandlerResult:
    if message.settings is None:
        return HandlerResult.fail("No settings provided")

    await ctx.store.set(StorageKey.SETTINGS, message.settings)
    ctx.broadcaster.dispatch(apply_features(message.settings))
    return HandlerResult.ok()


@store_errors_as_result("applying settings")
async def handle_apply_settings(ctx: CoordinatorContext, message: ApplySettings, sender: Sender) -> HandlerResult:
    if message.settings is None:
        return HandlerResult.fail("No settings provided")

    await ctx.store.set(StorageKey.SETTINGS, message.settings)
    push = apply_features(message.settings)
    if sender.context_id:
        ctx.broadcaster.dispatch_to(sender.context_id, push)
    else:
        ctx.broadcaster.dispatch(push)
    return HandlerResult.ok()


@store_errors_as_result("handling settings request")
async def handle_request_settings(
    ctx: CoordinatorContext, message: RequestSettings, sender: Sender
) -> HandlerResult:
    result = await settings_for_url(ctx, message.url)
    if not result.success:
        logger.info("settings request unanswered context=%s: %s", sender.context_id, result.error)
    return result


SETTINGS_HANDLERS = {
    SyncSettings: handle_sync_settings,
    ApplySettings: handle_apply_settings,
    RequestSettings: handle_request_settings,
}
