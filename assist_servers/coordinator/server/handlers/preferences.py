"""Website preferences: per-(user, domain) overrides."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..messages import GetWebsitePreferences, SetWebsitePreferences, apply_features
from ..types import HandlerResult, Sender
from .base import store_errors_as_result

if TYPE_CHECKING:
    from ...context import CoordinatorContext


@store_errors_as_result("getting website preferences")
async def handle_get_website_preferences(
    ctx: CoordinatorContext, message: GetWebsitePreferences, sender: Sender
) -> HandlerResult:
    if not message.user_id or not message.domain:
        return HandlerResult.fail("Missing user ID or domain")
    record = await ctx.preferences.get(message.user_id, message.domain)
    return HandlerResult.ok(record)


@store_errors_as_result("setting website preferences")
async def handle_set_website_preferences(
    ctx: CoordinatorContext, message: SetWebsitePreferences, sender: Sender
) -> HandlerResult:
    written = await ctx.preferences.set(message.preferences)
    if not written.ok or written.record is None or written.domain is None:
        return HandlerResult.fail(written.error or "Invalid preferences data")

    ctx.broadcaster.dispatch(
        apply_features(website_preferences=written.record, include_settings=False),
        domain=written.domain,
    )
    return HandlerResult.ok()


PREFERENCE_HANDLERS = {
    GetWebsitePreferences: handle_get_website_preferences,
    SetWebsitePreferences: handle_set_website_preferences,
}
