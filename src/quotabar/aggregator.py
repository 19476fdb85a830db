import time
from datetime import date, datetime, timedelta
from typing import Sequence

from quotabar.models import BillingRecord, UsageStats

DAY_MS = 24 * 60 * 60 * 1000
WEEK_MS = 7 * DAY_MS

# the plan window is pinned to a fixed number of days before expiry
PLAN_PERIOD_DAYS = 30


def _now_ms() -> "int":
    return int(time.time() * 1000)


def local_midnight_ms(now_ms: "int") -> "int":
    """
    returns the epoch milliseconds of today's local midnight.
    """
    now = datetime.fromtimestamp(now_ms / 1000).astimezone()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp() * 1000)


def plan_start_from_expiry(expiry_date: "date") -> "int":
    """
    derives the plan start (epoch ms) as local midnight
    PLAN_PERIOD_DAYS before the expiry date.
    """
    start = datetime.combine(
        expiry_date - timedelta(days=PLAN_PERIOD_DAYS),
        datetime.min.time(),
    ).astimezone()
    return int(start.timestamp() * 1000)


def earliest_record_ms(records: "Sequence[BillingRecord]") -> "int | None":
    if not records:
        return None
    return min(record.created_at_ms for record in records)


def aggregate(
    records: "Sequence[BillingRecord]",
    plan_start_ms: "int",
    plan_end_ms: "int",
    now_ms: "int | None" = None,
) -> "UsageStats":
    """
    folds billing records into three independent windows:
     - yesterday: [today's local midnight - 24h, today's midnight).
     Today is excluded since the billing feed lags by up to a day.
     - weekly: [now - 7d, now].
     - plan: [plan_start_ms, plan_end_ms], inclusive both ends.
    A record may count towards any number of windows.
    """
    if now_ms is None:
        now_ms = _now_ms()

    today_start = local_midnight_ms(now_ms)
    yesterday_start = today_start - DAY_MS
    week_ago = now_ms - WEEK_MS

    last_day = 0
    weekly = 0
    plan_total = 0

    for record in records:
        created_at = record.created_at_ms
        tokens = record.consumed_tokens

        if yesterday_start <= created_at < today_start:
            last_day += tokens

        if week_ago <= created_at <= now_ms:
            weekly += tokens

        if plan_start_ms <= created_at <= plan_end_ms:
            plan_total += tokens

    return UsageStats(
        last_day_usage=last_day,
        weekly_usage=weekly,
        plan_total_usage=plan_total,
    )
