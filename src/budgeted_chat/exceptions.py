"""Custom exceptions for budgeted-chat.

Every error carries an ``http_status`` class attribute so the transport
layer can map it to a response code without inspecting the message.
"""


class ChatServiceError(Exception):
    """Base exception for all chat service errors."""

    http_status = 500


class InvalidRequestError(ChatServiceError):
    """Raised when a chat request is malformed or incomplete."""

    http_status = 400


class MissingInputError(InvalidRequestError):
    """Raised when a request carries neither a prompt nor any messages."""


class UploadError(ChatServiceError):
    """Base exception for upload validation failures."""

    http_status = 400


class EmptyUploadError(UploadError):
    """Raised when an upload batch contains no files."""


class EmptyFileError(UploadError):
    """Raised when a file in an upload batch has zero length."""


class UnsupportedFormatError(UploadError):
    """Raised when a file's name or type is not accepted by the provider."""

    http_status = 415


class ProviderError(ChatServiceError):
    """Raised for unexpected failures reported by an AI provider."""

    http_status = 502


class AuthError(ProviderError):
    """Raised when the provider rejects the configured credentials."""

    http_status = 401


class RateLimitedError(ProviderError):
    """Raised when the provider quota is exhausted.

    Transient: callers may retry later. Nothing in this package retries.
    """

    http_status = 429


class UpstreamRejectedError(ProviderError):
    """Raised when the provider considers the request malformed."""

    http_status = 400


class ExtractionFailedError(ChatServiceError):
    """Raised when no text could be recovered from an uploaded document."""

    http_status = 422


class UnsupportedOperationError(ChatServiceError):
    """Raised when an adapter does not implement a capability."""

    http_status = 501


class ConfigurationError(ChatServiceError):
    """Raised when configuration is missing or invalid.

    This typically occurs when:
    - An API key is not set for the selected provider
    - A numeric setting cannot be parsed
    """


class UnsupportedProviderError(ConfigurationError):
    """Raised when the configured provider name is not a known provider."""


class PricingDataError(ConfigurationError):
    """Raised when pricing data is missing or invalid.

    This typically occurs when:
    - pricing.json is malformed or missing
    - A pattern references a model that has no price entry
    """
