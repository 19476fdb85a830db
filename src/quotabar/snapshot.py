import math
from datetime import datetime, timezone
from typing import Any, Mapping

from quotabar.errors import DataError
from quotabar.models import Expiry, QuotaSnapshot, RemainingDuration

_MS_PER_MINUTE = 60 * 1000
_MS_PER_HOUR = 60 * _MS_PER_MINUTE
_SECONDS_PER_DAY = 24 * 60 * 60

# formats seen in current_subscribe_end_time, tried in order
_EXPIRY_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")


def _require_int(model: "Mapping[str, Any]", field: "str") -> "int":
    value = model.get(field)
    if isinstance(value, bool) or value is None:
        raise DataError(f"quota payload is missing {field}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise DataError(f"quota payload has a non-numeric {field}: {value!r}") from e


def _parse_instant(model: "Mapping[str, Any]", field: "str") -> "datetime":
    value = model.get(field)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise DataError(f"quota payload has a malformed {field}: {value!r}") from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise DataError(f"quota payload is missing {field}")


def parse_expiry_date(value: "Any") -> "datetime | None":
    """
    parses a subscription end time into an aware local datetime.
    Date-only values resolve to local midnight of that day.
    Returns None for anything unparseable.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    value = value.strip()

    for fmt in _EXPIRY_FORMATS:
        try:
            return datetime.strptime(value, fmt).astimezone()
        except ValueError:
            continue

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.astimezone()


def subscription_end_time(subscription: "Mapping[str, Any] | None") -> "Any":
    if not isinstance(subscription, Mapping):
        return None
    current = subscription.get("current_subscribe")
    if not isinstance(current, Mapping):
        return None
    return current.get("current_subscribe_end_time")


def build_expiry(
    subscription: "Mapping[str, Any] | None",
    now: "datetime",
) -> "Expiry | None":
    raw_end = subscription_end_time(subscription)
    expires_at = parse_expiry_date(raw_end)
    if expires_at is None:
        return None

    delta = (expires_at - now).total_seconds()
    days = math.ceil(delta / _SECONDS_PER_DAY)

    if days > 0:
        status = "active"
    elif days == 0:
        status = "expires_today"
    else:
        status = "expired"

    return Expiry(date=raw_end.strip(), days_remaining=days, status=status)


def used_percentage(used: "int", total: "int") -> "int":
    """
    rounds used/total to a whole percentage clamped to [0, 100].
    A zero total yields 0.
    """
    if total <= 0:
        return 0
    return min(max(round(used / total * 100), 0), 100)


def parse_snapshot(
    quota_payload: "Mapping[str, Any]",
    subscription_payload: "Mapping[str, Any] | None" = None,
    now: "datetime | None" = None,
) -> "QuotaSnapshot":
    """
    converts the coding plan quota payload (plus the optional
    subscription payload) into a QuotaSnapshot.

    Raises DataError when the payload carries no model entry.
    Subscription problems only drop the expiry, never raise.
    """
    models = quota_payload.get("model_remains") if isinstance(quota_payload, Mapping) else None
    if not models or not isinstance(models, list):
        message = "No usage data available"
        base_resp = quota_payload.get("base_resp") if isinstance(quota_payload, Mapping) else None
        if isinstance(base_resp, Mapping) and base_resp.get("status_msg"):
            message = f"{message}: {base_resp['status_msg']}"
        raise DataError(message)

    model = models[0]
    if not isinstance(model, Mapping):
        raise DataError("quota payload has a malformed model entry")

    if now is None:
        now = datetime.now().astimezone()

    total = _require_int(model, "current_interval_total_count")
    # current_interval_usage_count is the REMAINING count despite its name
    remaining_count = _require_int(model, "current_interval_usage_count")
    used = total - remaining_count

    remains_ms = max(_require_int(model, "remains_time"), 0)
    hours = remains_ms // _MS_PER_HOUR
    minutes = (remains_ms % _MS_PER_HOUR) // _MS_PER_MINUTE

    return QuotaSnapshot(
        model_name=str(model.get("model_name") or "unknown"),
        window_start=_parse_instant(model, "start_time"),
        window_end=_parse_instant(model, "end_time"),
        remaining_count=remaining_count,
        total_count=total,
        used_count=used,
        used_percentage=used_percentage(used, total),
        remaining=RemainingDuration(hours=hours, minutes=minutes),
        expiry=build_expiry(subscription_payload, now),
    )
