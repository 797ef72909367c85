"""
Custom exception hierarchy for the Decision Maker application.

This module defines all custom exceptions to provide better error handling
and more informative error messages throughout the application.
"""


class DecisionMakerError(Exception):
    """Base exception for all Decision Maker errors."""

    status_code = 500

    def __init__(self, message: str, user_message: str | None = None):
        """
        Initialize exception.

        Args:
            message: Internal error message for logging
            user_message: User-friendly message for display (optional)
        """
        super().__init__(message)
        self.user_message = user_message or message


class ConfigurationError(DecisionMakerError):
    """Raised when an API key, client ID or other setting is missing."""

    pass


class ValidationError(DecisionMakerError):
    """Raised when user input validation fails."""

    status_code = 400


class UpstreamError(DecisionMakerError):
    """Raised when a third-party API call fails."""

    def __init__(
        self,
        service: str,
        message: str,
        status: int | None = None,
        user_message: str | None = None,
        body: str | None = None,
    ):
        super().__init__(message, user_message=user_message or upstream_user_message(service, status))
        self.service = service
        self.status = status
        self.body = body
        self.status_code = status if status and status >= 400 else 502


class SpotifyAuthError(UpstreamError):
    """Raised when Spotify rejects the stored access token."""

    def __init__(self, message: str = "Spotify HTTP 401"):
        super().__init__(
            "Spotify",
            message,
            status=401,
            user_message="Spotify session expired. Login again to refresh your personalized shows.",
        )


class LocationUnavailableError(DecisionMakerError):
    """Raised when the user's location is unknown or was denied."""

    status_code = 400


class RateLimitError(UpstreamError):
    """Raised when an upstream rate limit is exceeded (HTTP 429)."""

    def __init__(self, service: str, retry_after: int | None = None):
        wait = f", retry after {retry_after} seconds" if retry_after else ""
        super().__init__(service, f"{service} rate limit exceeded{wait}", status=429)
        self.retry_after = retry_after


class DatabaseError(DecisionMakerError):
    """Raised when database operations fail."""

    pass


def upstream_user_message(service: str, status: int | None) -> str:
    if status is None:
        return f"We couldn't reach {service}. Check your connection and try again."
    if status == 401:
        return f"{service} rejected the credentials. Check your API key or token."
    if status == 403:
        return f"{service} denied access to this request."
    if status == 404:
        return f"{service} could not find what was requested."
    if status == 429:
        return f"{service} rate limit reached. Try again later."
    return f"{service} request failed with status {status}."
