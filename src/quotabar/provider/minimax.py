from typing import Any

import httpx
import structlog

from quotabar.errors import AuthError, DataError, TransportError
from quotabar.models import BillingRecord

logger = structlog.get_logger()

DOMESTIC_BASE_URL = "https://www.minimaxi.com"
OVERSEAS_BASE_URL = "https://www.minimax.io"

QUOTA_PATH = "/v1/api/openplatform/coding_plan/remains"
SUBSCRIPTION_PATH = "/v1/api/openplatform/charge/combo/cycle_audio_resource_package"
BILLING_PATH = "/account/amount"

# request timeout in seconds, no retries
REQUEST_TIMEOUT = 10.0


def _to_int(value: "Any") -> "int":
    """
    lenient integer parse for billing fields, which may arrive as
    numbers or numeric strings. Anything else counts as 0.
    """
    if isinstance(value, bool) or value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return 0


class MiniMaxProvider:
    """
    MiniMaxProvider implements the QuotaProvider protocol for the
    MiniMax coding plan API. One instance wraps one account; the
    domestic and overseas sites differ only by base_url.
    """

    def __init__(
        self,
        token: "str",
        group_id: "str",
        base_url: "str" = DOMESTIC_BASE_URL,
        name: "str" = "domestic",
        timeout: "float" = REQUEST_TIMEOUT,
    ) -> "None":
        self._group_id = group_id
        self._base_url = base_url.rstrip("/")
        self._name = name
        self._client: "httpx.AsyncClient" = httpx.AsyncClient(
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
        )

    @property
    def name(self) -> "str":
        return self._name

    async def close(self) -> "None":
        """
        closes the underlying HTTP client.
        """
        await self._client.aclose()

    async def _get(self, path: "str", params: "dict[str, Any]") -> "dict[str, Any]":
        """
        issues a single GET and maps every failure onto the
        QuotaError taxonomy.
        """
        url = f"{self._base_url}{path}"
        params = {**params, "GroupId": self._group_id}

        logger.debug("minimax_request", account=self._name, url=url)
        try:
            resp = await self._client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise TransportError(
                "Request timeout. Please check your network connection."
            ) from e
        except httpx.TransportError as e:
            raise TransportError(
                f"Network error. Please check your internet connection. ({e})"
            ) from e

        if resp.status_code == 401:
            raise AuthError(
                "Invalid token or unauthorized. Please check your credentials."
            )

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"API request failed with status {resp.status_code}"
            ) from e

        try:
            data = resp.json()
        except ValueError as e:
            raise DataError(f"API returned a non-JSON body for {path}") from e

        if not isinstance(data, dict):
            raise DataError(f"API returned an unexpected body for {path}")
        return data

    async def fetch_quota(self) -> "dict[str, Any]":
        return await self._get(QUOTA_PATH, {})

    async def fetch_subscription(self) -> "dict[str, Any]":
        return await self._get(
            SUBSCRIPTION_PATH,
            {
                "biz_line": 2,
                "cycle_type": 1,
                "resource_package_type": 7,
            },
        )

    async def fetch_billing_page(
        self,
        page: "int",
        limit: "int",
    ) -> "list[BillingRecord]":
        """
        fetches one page of billing records. Pages are 1-based.
        """
        data = await self._get(
            BILLING_PATH,
            {"page": page, "limit": limit, "aggregate": "false"},
        )

        raw_records = data.get("charge_records") or []
        if not isinstance(raw_records, list):
            raise DataError("billing payload has a malformed charge_records list")

        records = [
            BillingRecord(
                consumed_tokens=max(_to_int(raw.get("consume_token")), 0),
                created_at=_to_int(raw.get("created_at")),
            )
            for raw in raw_records
            if isinstance(raw, dict)
        ]
        logger.debug(
            "minimax_billing_page",
            account=self._name,
            page=page,
            record_count=len(records),
        )
        return records
