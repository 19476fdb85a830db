from typing import Any, Protocol, Sequence

from quotabar.models import BillingRecord


class QuotaProvider(Protocol):
    """
    QuotaProvider stands as a common protocol for metered API
    accounts whose quota, subscription and billing history the
    engine reports on.

    Every call is a single attempt and raises a QuotaError subclass
    on failure; retrying is left to the caller's refresh cycle.
    """

    @property
    def name(self) -> "str": ...

    async def fetch_quota(self) -> "dict[str, Any]": ...

    async def fetch_subscription(self) -> "dict[str, Any]": ...

    async def fetch_billing_page(
        self,
        page: "int",
        limit: "int",
    ) -> "Sequence[BillingRecord]": ...

    async def close(self) -> "None": ...
