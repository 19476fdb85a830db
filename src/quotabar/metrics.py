from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from quotabar.models import ContextUsage, QuotaSnapshot, UsageStats


class MetricsUpdater:
    """
    applies refresh results to Prometheus gauges and counts
    auxiliary failures that are otherwise invisible to the user.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._registry: "CollectorRegistry" = registry
        self._used_percentage: "Gauge" = Gauge(
            "quotabar_quota_used_percentage",
            "Share of the current quota interval already used",
            ["account", "model"],
            registry=registry,
        )
        self._remaining_count: "Gauge" = Gauge(
            "quotabar_quota_remaining_count",
            "Requests left in the current quota interval",
            ["account", "model"],
            registry=registry,
        )
        self._usage_tokens: "Gauge" = Gauge(
            "quotabar_usage_tokens",
            "Tokens consumed per billing window",
            ["window"],
            registry=registry,
        )
        self._context_tokens: "Gauge" = Gauge(
            "quotabar_context_tokens",
            "Tokens in the context window of the latest session message",
            registry=registry,
        )
        self._fetch_errors: "Counter" = Counter(
            "quotabar_fetch_errors_total",
            "Total number of failed fetches by stage",
            ["stage"],
            registry=registry,
        )
        self._refresh_duration: "Histogram" = Histogram(
            "quotabar_refresh_duration_seconds",
            "Duration of refresh cycles",
            registry=registry,
        )
        self._last_refresh_success: "Gauge" = Gauge(
            "quotabar_last_refresh_success_timestamp_seconds",
            "Unix timestamp of the last successful refresh",
            registry=registry,
        )

    def update_snapshot(self, account: "str", snapshot: "QuotaSnapshot") -> "None":
        labels = {"account": account, "model": snapshot.model_name}
        self._used_percentage.labels(**labels).set(snapshot.used_percentage)
        self._remaining_count.labels(**labels).set(snapshot.remaining_count)

    def update_stats(self, stats: "UsageStats") -> "None":
        self._usage_tokens.labels(window="yesterday").set(stats.last_day_usage)
        self._usage_tokens.labels(window="weekly").set(stats.weekly_usage)
        self._usage_tokens.labels(window="plan").set(stats.plan_total_usage)

    def update_context(self, context: "ContextUsage") -> "None":
        self._context_tokens.set(context.tokens)

    def inc_fetch_error(self, stage: "str") -> "None":
        self._fetch_errors.labels(stage=stage).inc()

    def observe_refresh_duration(self, duration_seconds: "float") -> "None":
        self._refresh_duration.observe(duration_seconds)

    def set_last_refresh_success(self, timestamp: "float") -> "None":
        self._last_refresh_success.set(timestamp)
