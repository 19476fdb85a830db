from dataclasses import dataclass


class QuotaError(Exception):
    """
    base class for failures on the primary quota path. These are
    surfaced to the caller and never retried.
    """


class ConfigurationError(QuotaError):
    """
    credentials are missing.
    """


class AuthError(QuotaError):
    """
    the upstream API rejected the credentials.
    """


class TransportError(QuotaError):
    """
    timeout, connectivity failure or unexpected HTTP status.
    """


class DataError(QuotaError):
    """
    a well-formed response is missing expected fields.
    """


@dataclass(frozen=True, slots=True)
class BestEffortMiss:
    """
    BestEffortMiss is returned (never raised) by auxiliary lookups
    that failed. It is falsy so it cannot be mistaken for a payload.
    """

    source: "str"
    reason: "str"

    def __bool__(self) -> "bool":
        return False
