import structlog

from quotabar.errors import QuotaError
from quotabar.metrics import MetricsUpdater
from quotabar.models import BillingRecord
from quotabar.provider.base import QuotaProvider

logger = structlog.get_logger()

PAGE_SIZE = 100
DEFAULT_MAX_PAGES = 10


class BillingPaginator:
    """
    BillingPaginator walks the billing history page by page.

    Pages are fetched strictly in sequence since each termination
    decision depends on the previous page's size. A failing page
    ends the walk and the records collected so far are returned as
    a valid (partial) result.
    """

    def __init__(
        self,
        provider: "QuotaProvider",
        metrics: "MetricsUpdater | None" = None,
        page_size: "int" = PAGE_SIZE,
    ) -> "None":
        self._provider = provider
        self._metrics = metrics
        self._page_size = page_size

    async def fetch_all(self, max_pages: "int" = DEFAULT_MAX_PAGES) -> "list[BillingRecord]":
        records: "list[BillingRecord]" = []

        for page in range(1, max_pages + 1):
            try:
                batch = await self._provider.fetch_billing_page(page, self._page_size)
            except QuotaError as e:
                logger.warning(
                    "billing_page_failed",
                    provider=self._provider.name,
                    page=page,
                    collected=len(records),
                    error=str(e),
                )
                if self._metrics is not None:
                    self._metrics.inc_fetch_error("billing")
                break
            except Exception:
                logger.exception(
                    "billing_page_failed",
                    provider=self._provider.name,
                    page=page,
                    collected=len(records),
                )
                if self._metrics is not None:
                    self._metrics.inc_fetch_error("billing")
                break

            # empty page: no more data
            if not batch:
                break

            records.extend(batch)

            # short page: this was the last one
            if len(batch) < self._page_size:
                break

        logger.debug(
            "billing_fetch_done",
            provider=self._provider.name,
            record_count=len(records),
        )
        return records
