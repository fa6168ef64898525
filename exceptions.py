"""
Custom exception hierarchy for the mod provider backend.

All exceptions inherit from ModProviderError so route handlers can catch one
type and turn it into a JSON error body with a suggested HTTP status.

Exception Hierarchy:
    ModProviderError (base)
    ├── ValidationError
    ├── ProviderNotFoundError
    ├── ProviderNotConfiguredError
    ├── UnsupportedOperationError
    ├── ResourceNotFoundError
    └── UpstreamError
        ├── UpstreamHTTPError
        └── DownloadUnavailableError

Usage:
    from exceptions import ProviderNotFoundError

    raise ProviderNotFoundError("curseforge")

    try:
        await service.search("modtale", params)
    except ProviderNotConfiguredError as e:
        logger.warning(f"Provider not ready: {e}")
"""

from typing import Optional, Dict, Any


class ModProviderError(Exception):
    """
    Base exception for all mod provider errors.

    Attributes:
        message: Human-readable error message
        detail: Optional dict with additional error context
        status_code: Suggested HTTP status code (for API errors)
    """

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for JSON serialization."""
        result = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.detail:
            result["detail"] = self.detail
        return result


class ValidationError(ModProviderError):
    """
    Raised when request input validation fails.

    Examples:
        raise ValidationError("API key is required")
        raise ValidationError("Invalid classification", detail={"value": "FOO"})
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=400)


class ProviderNotFoundError(ModProviderError):
    """Raised when no adapter is registered under the requested provider id."""

    def __init__(self, provider_id: str):
        super().__init__(
            f"Provider not found: {provider_id}",
            detail={"provider": provider_id},
            status_code=404,
        )
        self.provider_id = provider_id


class ProviderNotConfiguredError(ModProviderError):
    """Raised when the provider exists but has no usable credential yet."""

    def __init__(self, provider_id: str):
        super().__init__(
            f"Provider {provider_id} is not configured. Please set up the API key.",
            detail={"provider": provider_id},
            status_code=409,
        )
        self.provider_id = provider_id


class UnsupportedOperationError(ModProviderError):
    """
    Raised when a provider lacks an optional capability.

    Examples:
        raise UnsupportedOperationError("curseforge", "slug-based lookup")
    """

    def __init__(self, provider_id: str, operation: str):
        super().__init__(
            f"Provider {provider_id} does not support {operation}",
            detail={"provider": provider_id, "operation": operation},
            status_code=404,
        )
        self.provider_id = provider_id
        self.operation = operation


class ResourceNotFoundError(ModProviderError):
    """
    Raised when a requested resource doesn't exist.

    Examples:
        raise ResourceNotFoundError("Version v9 not found for project p1")
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=404)


class UpstreamError(ModProviderError):
    """
    Base exception for marketplace failures (transport errors, malformed bodies).
    """

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        provider: Optional[str] = None,
        status_code: int = 502,
    ):
        if provider and detail is None:
            detail = {"provider": provider}
        elif provider and detail:
            detail["provider"] = provider

        super().__init__(message, detail=detail, status_code=status_code)
        self.provider = provider


class UpstreamHTTPError(UpstreamError):
    """
    Raised when a marketplace answers with a non-success HTTP status.

    Examples:
        raise UpstreamHTTPError("CurseForge API error: HTTP 500", upstream_status=500)
    """

    def __init__(
        self,
        message: str,
        *,
        upstream_status: int,
        provider: Optional[str] = None,
        detail: Optional[Dict[str, Any]] = None,
    ):
        detail = dict(detail or {})
        detail["upstream_status"] = upstream_status
        # A missing upstream entity is a 404 for our caller too
        status_code = 404 if upstream_status == 404 else 502
        super().__init__(message, detail=detail, provider=provider, status_code=status_code)
        self.upstream_status = upstream_status


class DownloadUnavailableError(UpstreamError):
    """Raised when no download URL can be resolved for a version."""


def map_upstream_status(
    status_code: int, provider: Optional[str] = None, message: str = ""
) -> UpstreamHTTPError:
    """
    Convert an upstream HTTP status code + message into an UpstreamHTTPError.

    Args:
        status_code: HTTP status code returned by the marketplace
        provider: Provider id the request was made for
        message: Response text or short explanation

    Returns:
        UpstreamHTTPError with a readable message for the status class
    """
    if status_code == 401:
        reason = "Unauthorized (check the API key)"
    elif status_code == 403:
        reason = "Forbidden"
    elif status_code == 404:
        reason = "Not Found"
    elif status_code == 429:
        reason = "Rate limited"
    elif 500 <= status_code <= 599:
        reason = "Server Error"
    else:
        reason = "Request failed"

    text = f"HTTP {status_code}: {reason}"
    if message:
        text = f"{text} - {message[:200]}"
    return UpstreamHTTPError(text, upstream_status=status_code, provider=provider)
