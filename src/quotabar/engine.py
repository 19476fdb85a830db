import asyncio
import time
from datetime import datetime
from typing import Any, Callable

import structlog

from quotabar.aggregator import (
    aggregate,
    earliest_record_ms,
    plan_start_from_expiry,
)
from quotabar.cache import BILLING_TTL_SECONDS, QUOTA_TTL_SECONDS, TTLCache
from quotabar.errors import BestEffortMiss, QuotaError
from quotabar.metrics import MetricsUpdater
from quotabar.models import (
    BillingRecord,
    ContextUsage,
    QuotaSnapshot,
    StatusPayload,
    UsageStats,
)
from quotabar.paginator import DEFAULT_MAX_PAGES, BillingPaginator
from quotabar.provider.base import QuotaProvider
from quotabar.snapshot import parse_expiry_date, parse_snapshot, subscription_end_time
from quotabar.transcript import TranscriptResolver

logger = structlog.get_logger()

DEFAULT_CONTEXT_SIZE = 200_000

# model id substring -> context window size in tokens
MODEL_CONTEXT_SIZES: "dict[str, int]" = {
    "minimax-m2": 200_000,
    "minimax-m2-stable": 200_000,
    "minimax-m1": 200_000,
    "minimax-m1-stable": 200_000,
}

_BILLING_CACHE_KEY = "billing"


def context_size_for(model_id: "str | None") -> "int":
    if not model_id:
        return DEFAULT_CONTEXT_SIZE
    model_key = model_id.lower()
    for key, size in MODEL_CONTEXT_SIZES.items():
        if key in model_key:
            return size
    return DEFAULT_CONTEXT_SIZE


class UsageEngine:
    """
    UsageEngine runs one refresh cycle: the primary quota snapshot,
    the optional secondary account, billing statistics and the
    transcript context figure, merged into a StatusPayload.

    Only the primary quota path raises. Every auxiliary source is
    neutralized at its own boundary and degrades to an absent or
    zero figure.
    """

    def __init__(
        self,
        primary: "QuotaProvider",
        paginator: "BillingPaginator",
        metrics: "MetricsUpdater",
        secondary: "QuotaProvider | None" = None,
        quota_cache: "TTLCache[dict[str, Any]] | None" = None,
        billing_cache: "TTLCache[list[BillingRecord]] | None" = None,
        resolver: "TranscriptResolver | None" = None,
        clock: "Callable[[], float]" = time.time,
        max_billing_pages: "int" = DEFAULT_MAX_PAGES,
    ) -> "None":
        self._primary = primary
        self._secondary = secondary
        self._paginator = paginator
        self._metrics = metrics
        self._clock = clock
        self._quota_cache: "TTLCache[dict[str, Any]]" = quota_cache or TTLCache(
            QUOTA_TTL_SECONDS, clock
        )
        self._billing_cache: "TTLCache[list[BillingRecord]]" = (
            billing_cache or TTLCache(BILLING_TTL_SECONDS, clock)
        )
        self._resolver = resolver or TranscriptResolver()
        self._max_billing_pages = max_billing_pages

    async def close(self) -> "None":
        """
        closes all provider sessions.
        """
        await self._primary.close()
        if self._secondary is not None:
            await self._secondary.close()

    def _now(self) -> "datetime":
        return datetime.fromtimestamp(self._clock()).astimezone()

    async def fetch_quota(self, force_refresh: "bool" = False) -> "dict[str, Any]":
        """
        returns the primary quota payload, served from the quota
        cache while it is fresh.
        """
        key = self._primary.name
        if not force_refresh:
            cached = self._quota_cache.get(key)
            if cached is not None:
                logger.debug("quota_cache_hit", provider=key)
                return cached

        payload = await self._primary.fetch_quota()
        self._quota_cache.put(key, payload)
        return payload

    async def lookup_subscription(self) -> "dict[str, Any] | BestEffortMiss":
        try:
            return await self._primary.fetch_subscription()
        except QuotaError as e:
            logger.warning("subscription_lookup_failed", error=str(e))
            self._metrics.inc_fetch_error("subscription")
            return BestEffortMiss(source="subscription", reason=str(e))
        except Exception as e:
            logger.exception("subscription_lookup_failed")
            self._metrics.inc_fetch_error("subscription")
            return BestEffortMiss(source="subscription", reason=repr(e))

    async def snapshot(
        self,
        force_refresh: "bool" = False,
    ) -> "tuple[QuotaSnapshot, dict[str, Any] | None]":
        """
        fetches quota and subscription concurrently and parses them.
        Raises QuotaError when the quota itself cannot be obtained.
        """
        try:
            quota, subscription = await asyncio.gather(
                self.fetch_quota(force_refresh),
                self.lookup_subscription(),
            )
        except QuotaError:
            self._metrics.inc_fetch_error("quota")
            raise

        subscription_payload = (
            None if isinstance(subscription, BestEffortMiss) else subscription
        )
        try:
            snapshot = parse_snapshot(quota, subscription_payload, now=self._now())
        except QuotaError:
            self._metrics.inc_fetch_error("quota")
            raise

        self._metrics.update_snapshot(self._primary.name, snapshot)
        return snapshot, subscription_payload

    async def secondary_snapshot(self) -> "QuotaSnapshot | None":
        """
        best-effort snapshot of the secondary account, without
        subscription data.
        """
        if self._secondary is None:
            return None
        try:
            payload = await self._secondary.fetch_quota()
            snapshot = parse_snapshot(payload, None, now=self._now())
        except QuotaError as e:
            logger.warning(
                "secondary_quota_failed",
                provider=self._secondary.name,
                error=str(e),
            )
            self._metrics.inc_fetch_error("secondary")
            return None
        except Exception:
            logger.exception("secondary_quota_failed", provider=self._secondary.name)
            self._metrics.inc_fetch_error("secondary")
            return None

        self._metrics.update_snapshot(self._secondary.name, snapshot)
        return snapshot

    async def billing_records(self) -> "list[BillingRecord]":
        """
        returns the billing history, re-walking the pages only when
        the billing cache has expired. A partial walk is cached like
        a complete one.
        """
        cached = self._billing_cache.get(_BILLING_CACHE_KEY)
        if cached is not None:
            return cached

        records = await self._paginator.fetch_all(self._max_billing_pages)
        self._billing_cache.put(_BILLING_CACHE_KEY, records)
        return records

    def usage_stats(
        self,
        records: "list[BillingRecord]",
        subscription: "dict[str, Any] | None",
        now_ms: "int",
    ) -> "UsageStats":
        if not records:
            return UsageStats()

        plan_start: "int | None" = None
        expires_at = parse_expiry_date(subscription_end_time(subscription))
        if expires_at is not None:
            plan_start = plan_start_from_expiry(expires_at.date())

        if plan_start is None:
            # without a subscription the plan window covers all
            # observed usage
            plan_start = earliest_record_ms(records) or 0

        return aggregate(records, plan_start, now_ms, now_ms=now_ms)

    async def resolve_context(
        self,
        transcript_path: "str",
        model_id: "str | None" = None,
    ) -> "ContextUsage | None":
        """
        resolves the context-window figure of a session transcript
        in a worker thread. None means no usage could be found.
        """
        try:
            figures = await asyncio.to_thread(self._resolver.resolve, transcript_path)
        except Exception:
            logger.exception("transcript_resolve_failed", path=transcript_path)
            self._metrics.inc_fetch_error("transcript")
            return None

        if figures is None or figures.context_tokens <= 0:
            logger.debug("transcript_no_usage", path=transcript_path)
            return None

        context = ContextUsage(
            tokens=figures.context_tokens,
            context_size=context_size_for(model_id),
        )
        self._metrics.update_context(context)
        return context

    async def refresh(
        self,
        force_refresh: "bool" = False,
        transcript_path: "str | None" = None,
        model_id: "str | None" = None,
    ) -> "StatusPayload":
        """
        runs one full refresh cycle. Raises only for failures on the
        primary quota path.
        """
        cycle_start = time.monotonic()

        primary, subscription = await self.snapshot(force_refresh)
        secondary = await self.secondary_snapshot()

        records = await self.billing_records()
        now_ms = int(self._clock() * 1000)
        stats = self.usage_stats(records, subscription, now_ms)
        self._metrics.update_stats(stats)

        context = None
        if transcript_path:
            context = await self.resolve_context(transcript_path, model_id)

        self._metrics.observe_refresh_duration(time.monotonic() - cycle_start)
        self._metrics.set_last_refresh_success(self._clock())
        logger.debug(
            "refresh_done",
            used_percentage=primary.used_percentage,
            plan_total_usage=stats.plan_total_usage,
        )

        return StatusPayload(
            primary=primary,
            stats=stats,
            secondary=secondary,
            context=context,
        )
