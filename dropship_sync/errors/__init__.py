"""Error handling module."""
from dropship_sync.errors.exceptions import (
    DropshipError,
    ConfigInvalid,
    HostNotAllowed,
    InsecureScheme,
    InvalidEndpoint,
    AuthFailure,
    MissingCredentials,
    InvalidTokenResponse,
    FeedFailure,
    HttpError,
    FeedTooLarge,
    InvalidFeedFormat,
    SyncError,
    ItemInvalid,
    DuplicateSku,
    CatalogError,
)

__all__ = [
    "DropshipError",
    "ConfigInvalid",
    "HostNotAllowed",
    "InsecureScheme",
    "InvalidEndpoint",
    "AuthFailure",
    "MissingCredentials",
    "InvalidTokenResponse",
    "FeedFailure",
    "HttpError",
    "FeedTooLarge",
    "InvalidFeedFormat",
    "SyncError",
    "ItemInvalid",
    "DuplicateSku",
    "CatalogError",
]
