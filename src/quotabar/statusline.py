import json
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any

from quotabar.engine import DEFAULT_CONTEXT_SIZE
from quotabar.formatting import (
    format_context_size,
    format_duration,
    format_number,
    format_tokens,
)
from quotabar.models import QuotaSnapshot, StatusPayload

WARN_PERCENTAGE = 85
HIGH_PERCENTAGE = 60

_EXPIRY_TEXT = {
    "active": "{days} days remaining",
    "expires_today": "expires today",
    "expired": "expired {days} days ago",
}


@dataclass(frozen=True, slots=True)
class StatuslineInput:
    """
    StatuslineInput is the session context the editor pipes to the
    statusline command on stdin.
    """

    model_name: "str | None" = None
    model_id: "str | None" = None
    current_dir: "str | None" = None
    transcript_path: "str | None" = None

    @classmethod
    def from_json(cls, text: "str") -> "StatuslineInput":
        """
        parses the stdin document; anything unparseable yields an
        empty input.
        """
        if not text.strip():
            return cls()
        try:
            raw: "Any" = json.loads(text)
        except json.JSONDecodeError:
            return cls()
        if not isinstance(raw, dict):
            return cls()

        model = raw.get("model") if isinstance(raw.get("model"), dict) else {}
        workspace = raw.get("workspace") if isinstance(raw.get("workspace"), dict) else {}
        current_dir = workspace.get("current_directory")

        return cls(
            model_name=model.get("display_name") or model.get("id"),
            model_id=model.get("id"),
            current_dir=PurePath(current_dir).name if current_dir else None,
            transcript_path=raw.get("transcript_path") or None,
        )


def status_icon(percentage: "int") -> "str":
    if percentage >= WARN_PERCENTAGE:
        return "⚠"
    if percentage >= HIGH_PERCENTAGE:
        return "⚡"
    return "✓"


def expiry_text(snapshot: "QuotaSnapshot") -> "str | None":
    if snapshot.expiry is None:
        return None
    template = _EXPIRY_TEXT[snapshot.expiry.status]
    return template.format(days=abs(snapshot.expiry.days_remaining))


def render_statusline(
    payload: "StatusPayload",
    session: "StatuslineInput",
    fallback_dir: "str | None" = None,
) -> "str":
    """
    renders the single-line status for editor integration.
    """
    primary = payload.primary
    parts: "list[str]" = []

    directory = session.current_dir or fallback_dir
    if directory:
        parts.append(f"📁 {directory}")

    parts.append(f"🤖 {session.model_name or primary.model_name}")
    parts.append(f"{primary.used_percentage}%")
    parts.append(f"↻ {primary.remaining_count}/{primary.total_count}")

    context = payload.context
    if context is not None:
        parts.append(
            f"{status_icon(context.percentage)} {context.percentage}% · "
            f"{format_tokens(context.tokens)}/{format_context_size(context.context_size)}"
        )
    else:
        parts.append(format_context_size(DEFAULT_CONTEXT_SIZE))

    parts.append(f"⏱ {format_duration(primary.remaining.hours, primary.remaining.minutes)}")

    if primary.expiry is not None:
        parts.append(f"expires in: {primary.expiry.days_remaining}d")

    return " | ".join(parts)


def _render_snapshot(label: "str", snapshot: "QuotaSnapshot", locale: "str") -> "list[str]":
    lines = [
        f"[{label}] {snapshot.model_name}",
        f"  usage: {status_icon(snapshot.used_percentage)} {snapshot.used_percentage}% "
        f"({format_number(snapshot.used_count, locale)}/{format_number(snapshot.total_count, locale)})",
        f"  resets in: {format_duration(snapshot.remaining.hours, snapshot.remaining.minutes)}",
        f"  window: {snapshot.window_start.astimezone():%H:%M}-{snapshot.window_end.astimezone():%H:%M}",
    ]
    text = expiry_text(snapshot)
    if text is not None:
        lines.append(f"  expires: {snapshot.expiry.date} ({text})")
    return lines


def render_status(payload: "StatusPayload", locale: "str" = "en-US") -> "str":
    """
    renders the multi-line status report.
    """
    lines = _render_snapshot("domestic", payload.primary, locale)
    if payload.secondary is not None:
        lines.extend(_render_snapshot("overseas", payload.secondary, locale))

    stats = payload.stats
    if stats.last_day_usage > 0 or stats.weekly_usage > 0:
        lines.append("token usage:")
        lines.append(f"  yesterday: {format_number(stats.last_day_usage, locale)}")
        lines.append(f"  last 7 days: {format_number(stats.weekly_usage, locale)}")
        lines.append(f"  plan total: {format_number(stats.plan_total_usage, locale)}")

    return "\n".join(lines)


def render_compact(payload: "StatusPayload") -> "str":
    primary = payload.primary
    return (
        f"{status_icon(primary.used_percentage)} {primary.model_name} "
        f"{primary.used_percentage}% "
        f"({primary.used_count}/{primary.total_count}) "
        f"⏱ {format_duration(primary.remaining.hours, primary.remaining.minutes)}"
    )
