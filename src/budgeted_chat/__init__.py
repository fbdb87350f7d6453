"""Budgeted Chat - provider-agnostic chat service with per-user spend limits.

Routes chat turns to one configured AI provider (OpenAI ChatGPT or
Mistral), prices every exchange from the provider-reported usage and
refuses further requests once a user's accumulated cost reaches their
ceiling.

Example:
    >>> from budgeted_chat import ChatService, ServiceConfig, SqliteUsageStore
    >>>
    >>> config = ServiceConfig.from_env(dotenv_path=".env")
    >>> service = ChatService(config, SqliteUsageStore("usage.db"))
    >>>
    >>> result = await service.process_chat_request(
    ...     {"messages": [{"role": "user", "content": "Hello!"}]},
    ...     model="mistral-small-latest",
    ... )
    >>> print(result.content, result.cost)
    >>>
    >>> # Attach documents: upload first, then reference the ids
    >>> uploaded = await service.upload_files([UploadFile(data, "report.pdf")])
    >>> result = await service.process_chat_request(
    ...     {"prompt": "Summarize the report", "file_ids": [uploaded[0].provider_file_id]}
    ... )
"""

from .config import ProviderName, ServiceConfig
from .cost.calculator import CostCalculator
from .cost.pricing import PricingTable
from .exceptions import (
    AuthError,
    ChatServiceError,
    ConfigurationError,
    EmptyFileError,
    EmptyUploadError,
    ExtractionFailedError,
    InvalidRequestError,
    MissingInputError,
    PricingDataError,
    ProviderError,
    RateLimitedError,
    UnsupportedFormatError,
    UnsupportedOperationError,
    UnsupportedProviderError,
    UploadError,
    UpstreamRejectedError,
)
from .providers.base import ProviderAdapter
from .providers.factory import build_adapter
from .providers.mistral_adapter import MistralAdapter
from .providers.openai_adapter import OpenAIAdapter
from .security.permissions import PermissionResolver
from .service import ChatService
from .tracking.sqlite_store import SqliteUsageStore
from .tracking.store import InMemoryUsageStore, UsageStore
from .types import (
    ChatRequest,
    CleanupOutcome,
    DeletionSummary,
    FeatureFlags,
    ServiceChatResponse,
    StandardizedMessage,
    StandardizedResponse,
    StandardizedUsage,
    UploadedFileDescriptor,
    UploadFile,
    UserAccount,
)

__version__ = "0.3.0"

__all__ = [
    "ChatService",
    "ServiceConfig",
    "ProviderName",
    "ProviderAdapter",
    "MistralAdapter",
    "OpenAIAdapter",
    "build_adapter",
    "CostCalculator",
    "PricingTable",
    "UsageStore",
    "InMemoryUsageStore",
    "SqliteUsageStore",
    "PermissionResolver",
    "ChatRequest",
    "CleanupOutcome",
    "DeletionSummary",
    "FeatureFlags",
    "ServiceChatResponse",
    "StandardizedMessage",
    "StandardizedResponse",
    "StandardizedUsage",
    "UploadedFileDescriptor",
    "UploadFile",
    "UserAccount",
    "ChatServiceError",
    "InvalidRequestError",
    "MissingInputError",
    "UploadError",
    "EmptyUploadError",
    "EmptyFileError",
    "UnsupportedFormatError",
    "ProviderError",
    "AuthError",
    "RateLimitedError",
    "UpstreamRejectedError",
    "ExtractionFailedError",
    "UnsupportedOperationError",
    "ConfigurationError",
    "UnsupportedProviderError",
    "PricingDataError",
]
