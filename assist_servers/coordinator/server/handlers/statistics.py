"""Usage statistics: read, count feature use, merge partial updates."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..messages import FeatureUsed, SyncStats, UpdateStatistics
from ..types import HandlerResult, Sender
from .base import store_errors_as_result

if TYPE_CHECKING:
    from ...context import CoordinatorContext


def _valid_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


@store_errors_as_result("syncing stats")
async def handle_sync_stats(ctx: CoordinatorContext, message: SyncStats, sender: Sender) -> HandlerResult:
    if not message.user_id:
        return HandlerResult.fail("No user ID provided")
    stats = await ctx.stats.get(message.user_id)
    return HandlerResult.ok(stats.to_dict())


@store_errors_as_result("recording feature usage")
async def handle_feature_used(ctx: CoordinatorContext, message: FeatureUsed, sender: Sender) -> HandlerResult:
    if not message.user_id or not message.feature_name:
        return HandlerResult.fail("Missing user ID or feature name")
    if not _valid_count(message.count):
        return HandlerResult.fail("Invalid count")
    await ctx.stats.record_feature_used(message.user_id, message.feature_name, message.count)
    return HandlerResult.ok()


@store_errors_as_result("updating statistics")
async def handle_update_statistics(
    ctx: CoordinatorContext, message: UpdateStatistics, sender: Sender
) -> HandlerResult:
    if not message.user_id or message.stats is None:
        return HandlerResult.fail("Missing user ID or statistics")
    await ctx.stats.merge_stats(message.user_id, message.stats)
    return HandlerResult.ok()


STATISTICS_HANDLERS = {
    SyncStats: handle_sync_stats,
    FeatureUsed: handle_feature_used,
    UpdateStatistics: handle_update_statistics,
}
