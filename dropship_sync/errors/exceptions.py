"""Custom exception hierarchy for feed ingestion and catalog sync errors."""
from typing import Any, Dict, Optional


class DropshipError(Exception):
    """Base exception for all dropship sync errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize error with message and optional structured details."""
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ---------------------------------------------------------------------------
# Configuration (fails closed, no network call is attempted)
# ---------------------------------------------------------------------------

class ConfigInvalid(DropshipError):
    """Raised when the configured API location cannot be used."""
    pass


class HostNotAllowed(ConfigInvalid):
    """Raised when the API host is not in the allow-list."""
    pass


class InsecureScheme(ConfigInvalid):
    """Raised when the API URL is not HTTPS."""
    pass


class InvalidEndpoint(ConfigInvalid):
    """Raised when the feed endpoint path fails validation."""
    pass


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class AuthFailure(DropshipError):
    """Raised when a bearer token cannot be obtained."""
    pass


class MissingCredentials(AuthFailure):
    """Raised when username or password is empty."""
    pass


class InvalidTokenResponse(AuthFailure):
    """Raised when the token endpoint returns something that is not a token."""
    pass


# ---------------------------------------------------------------------------
# Feed retrieval
# ---------------------------------------------------------------------------

class FeedFailure(DropshipError):
    """Raised when the product feed cannot be retrieved or decoded."""
    pass


class HttpError(FeedFailure):
    """Raised when the feed endpoint answers with a non-200 status."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(
            message or f"Feed HTTP {status_code}",
            details={"status_code": status_code},
        )


class FeedTooLarge(FeedFailure):
    """Raised when the feed body exceeds the size cap."""
    pass


class InvalidFeedFormat(FeedFailure):
    """Raised when the feed body is not a JSON document."""
    pass


# ---------------------------------------------------------------------------
# Sync and per-item errors
# ---------------------------------------------------------------------------

class SyncError(DropshipError):
    """Raised when a reconciliation run fails."""
    pass


class ItemInvalid(DropshipError):
    """Raised for a malformed, oversize or SKU-less import item."""
    pass


class DuplicateSku(DropshipError):
    """Raised when an item's SKU already exists in the catalog."""

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU {sku} already imported, skipped.", details={"sku": sku})


class CatalogError(DropshipError):
    """Raised when the catalog collaborator rejects a write."""
    pass
