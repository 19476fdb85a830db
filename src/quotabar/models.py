from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class RemainingDuration:
    """
    RemainingDuration is the time left until the quota interval resets.
    """

    hours: "int"
    minutes: "int"


@dataclass(frozen=True, slots=True)
class Expiry:
    """
    Expiry describes when the current subscription ends.
    """

    # date string exactly as returned by the subscription API
    date: "str"
    days_remaining: "int"
    # one of "active", "expires_today", "expired"
    status: "str"


@dataclass(frozen=True, slots=True)
class QuotaSnapshot:
    """
    QuotaSnapshot is the normalized view of the current metered
    usage for one billing interval. Rebuilt on every refresh.
    """

    model_name: "str"
    window_start: "datetime"
    window_end: "datetime"
    remaining_count: "int"
    total_count: "int"
    used_count: "int"
    # 0-100, clamped
    used_percentage: "int"
    remaining: "RemainingDuration"
    expiry: "Expiry | None" = None


@dataclass(frozen=True, slots=True)
class BillingRecord:
    """
    BillingRecord is a single metered consumption event.
    """

    consumed_tokens: "int"
    # unix timestamp in seconds
    created_at: "int"

    @property
    def created_at_ms(self) -> "int":
        return self.created_at * 1000


@dataclass(frozen=True, slots=True)
class UsageStats:
    last_day_usage: "int" = 0
    weekly_usage: "int" = 0
    plan_total_usage: "int" = 0


@dataclass(frozen=True, slots=True)
class TokenUsageFigures:
    """
    TokenUsageFigures holds the token counts of one assistant
    message, normalized across vendor field names.
    """

    input_tokens: "int" = 0
    output_tokens: "int" = 0
    cache_creation_tokens: "int" = 0
    cache_read_tokens: "int" = 0
    # combined figure reported by some vendors, used only as a fallback
    total_tokens: "int" = 0

    @property
    def context_tokens(self) -> "int":
        """
        tokens occupying the context window: the sum of the four
        figures when positive, otherwise the combined total.
        """
        summed = (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )
        if summed > 0:
            return summed
        return self.total_tokens


@dataclass(frozen=True, slots=True)
class ContextUsage:
    tokens: "int"
    context_size: "int"

    @property
    def percentage(self) -> "int":
        if self.context_size <= 0:
            return 0
        return round(self.tokens / self.context_size * 100)


@dataclass(frozen=True, slots=True)
class StatusPayload:
    """
    StatusPayload merges every figure of one refresh cycle for the
    presentation layer.
    """

    primary: "QuotaSnapshot"
    stats: "UsageStats"
    secondary: "QuotaSnapshot | None" = None
    context: "ContextUsage | None" = None
