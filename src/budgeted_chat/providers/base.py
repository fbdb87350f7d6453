"""Abstract base class for AI provider adapters."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from ..exceptions import (
    AuthError,
    ChatServiceError,
    EmptyUploadError,
    InvalidRequestError,
    ProviderError,
    RateLimitedError,
    UpstreamRejectedError,
)
from ..types import (
    ChatRequest,
    CleanupOutcome,
    DeletionSummary,
    StandardizedResponse,
    UploadedFileDescriptor,
    UploadFile,
)

logger = logging.getLogger(__name__)


class ProviderAdapter(ABC):
    """Contract every provider adapter implements.

    Each adapter handles:
    - Translating a normalized ChatRequest into the provider's chat call
    - The provider's file model (upload, extraction, deletion)
    - Mapping provider failures onto the package's error types

    The chat service only ever talks to this interface, so it never
    branches on which provider is configured.
    """

    #: Display label returned by get_provider_name().
    provider_name = ""

    def __init__(self, max_output_tokens: int) -> None:
        self._max_output_tokens = max_output_tokens

    def get_provider_name(self) -> str:
        return self.provider_name

    @abstractmethod
    async def send_chat_request(self, request: ChatRequest) -> StandardizedResponse:
        """Send one chat turn to the provider.

        Args:
            request: Normalized request; ``messages`` must not be empty

        Returns:
            StandardizedResponse with content, usage and tokens used

        Raises:
            InvalidRequestError: If ``request.messages`` is empty
            AuthError: If the provider rejects the credentials
            RateLimitedError: If the provider quota is exhausted
            UpstreamRejectedError: If the provider rejects the request as malformed
            ProviderError: For any other provider failure
        """
        ...

    @abstractmethod
    async def upload_files(self, files: Sequence[UploadFile]) -> list:
        """Upload files to provider storage.

        Returns:
            One UploadedFileDescriptor per file, in input order

        Raises:
            EmptyUploadError: If ``files`` is empty
            EmptyFileError: If a file has zero length
            UnsupportedFormatError: If a file type is not accepted
        """
        ...

    @abstractmethod
    async def delete_file(self, file_id: str) -> CleanupOutcome:
        """Best-effort deletion. Never raises; failures are logged."""
        ...

    @abstractmethod
    async def delete_all_files(self) -> DeletionSummary:
        """Delete every file stored under this account, one at a time."""
        ...

    @abstractmethod
    async def extract_text_from_file(self, file_id: str) -> str:
        ...

    @abstractmethod
    async def download_file(self, file_id: str) -> str:
        ...

    async def close(self) -> None:
        """Closes any underlying network resources."""
        return

    # ------------------------------------------------------------------ #
    # Shared helpers                                                       #
    # ------------------------------------------------------------------ #

    def _output_token_limit(self, request: ChatRequest) -> int:
        return request.max_output_tokens or self._max_output_tokens

    @staticmethod
    def _require_messages(request: ChatRequest) -> None:
        if not request.messages:
            raise InvalidRequestError("messages is required and cannot be empty")

    @staticmethod
    def _require_files(files: Sequence[UploadFile]) -> None:
        if not files:
            raise EmptyUploadError("No files to upload")

    def _cleanup_failed(self, file_id: str, exc: Exception) -> CleanupOutcome:
        logger.warning(
            "File deletion failed",
            extra={"provider": self.provider_name, "file_id": file_id, "error": str(exc)},
        )
        return CleanupOutcome(file_id=file_id, deleted=False, error=str(exc))


def status_code_of(exc: BaseException) -> Optional[int]:
    """HTTP status carried by an SDK exception, if any."""
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def map_provider_error(exc: Exception, provider: str) -> ChatServiceError:
    """Translate an SDK exception into the package error taxonomy.

    Errors that already belong to the taxonomy are returned unchanged.
    """
    if isinstance(exc, ChatServiceError):
        return exc
    status = status_code_of(exc)
    detail = str(exc) or exc.__class__.__name__
    if status == 401:
        return AuthError(f"{provider} API key is invalid or missing")
    if status == 429:
        return RateLimitedError(f"{provider} API rate limit reached. Please retry later.")
    if status == 400:
        return UpstreamRejectedError(f"Invalid request sent to {provider}: {detail}")
    return ProviderError(f"{provider} error: {detail}")


def coerce_text(content: Any) -> str:
    """Decode whatever an SDK download call returned into text."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, (bytes, bytearray)):
        return bytes(content).decode("utf-8", errors="replace")
    for attr in ("content", "text"):
        value = getattr(content, attr, None)
        if isinstance(value, (str, bytes, bytearray)):
            return coerce_text(value)
    read = getattr(content, "read", None)
    if callable(read):
        return coerce_text(read())
    return str(content)
