"""Typed errors surfaced by discover_relevant_messages."""

from enum import Enum


class ErrorKind(str, Enum):
    AUTH_EXPIRED = "auth_expired"
    QUOTA_EXCEEDED = "quota_exceeded"
    RATE_LIMITED = "rate_limited"
    GENERIC = "generic"


# 403 reasons Gmail uses for usage limits rather than permissions
_QUOTA_REASONS = frozenset({
    "quotaExceeded",
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "dailyLimitExceeded",
    "limitExceeded",
})


class DiscoveryError(Exception):
    """Discovery could not run. The message keeps the underlying cause's text."""

    kind = ErrorKind.GENERIC

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AuthExpiredError(DiscoveryError):
    """The access token was rejected (HTTP 401); the user must reconnect."""

    kind = ErrorKind.AUTH_EXPIRED


class QuotaExceededError(DiscoveryError):
    """Gmail API quota used up (HTTP 403 quota variant)."""

    kind = ErrorKind.QUOTA_EXCEEDED


class RateLimitedError(DiscoveryError):
    """Too many requests (HTTP 429); the caller may retry later."""

    kind = ErrorKind.RATE_LIMITED


def error_from_status(status: int, message: str, reason: str | None = None) -> DiscoveryError:
    """Map a Gmail HTTP failure onto the discovery error taxonomy.

    A 403 counts as a quota failure unless Gmail names a non-quota reason
    (e.g. ``insufficientPermissions``).
    """
    if status == 401:
        return AuthExpiredError(
            "Gmail access token expired. Please reconnect your account.", status=status
        )
    if status == 403 and (reason is None or reason in _QUOTA_REASONS):
        return QuotaExceededError(
            "Gmail API quota exceeded. Please try again later.", status=status
        )
    if status == 429:
        return RateLimitedError(
            "Too many requests. Please wait a moment and try again.", status=status
        )
    return DiscoveryError(f"Failed to fetch emails from Gmail: {message}", status=status)
