"""Chat orchestration with per-user spend limits."""

import logging
import math
from typing import Any, Callable, List, Mapping, Optional, Sequence

from .config import ServiceConfig
from .cost.calculator import CostCalculator
from .cost.pricing import PricingTable
from .exceptions import InvalidRequestError, MissingInputError
from .providers.base import ProviderAdapter
from .providers.factory import build_adapter
from .security.identity import get_os_username
from .tracking.store import UsageStore
from .types import (
    ROLES,
    ChatRequest,
    CleanupOutcome,
    DeletionSummary,
    ServiceChatResponse,
    StandardizedMessage,
    UploadedFileDescriptor,
    UploadFile,
)

logger = logging.getLogger(__name__)

# Raw request keys that may carry provider file ids, in lookup order.
_FILE_REFERENCE_KEYS = ("file_ids", "fileReferences")


class ChatService:
    """Single entry point for chat turns, whatever the configured provider.

    For each chat turn the service checks the user's spend ceiling,
    normalizes the raw request, delegates to the provider adapter, prices
    the reported usage and records tokens and cost against the user.

    Example:
        >>> from budgeted_chat import ChatService, InMemoryUsageStore, ServiceConfig
        >>>
        >>> config = ServiceConfig.from_env()
        >>> service = ChatService(config, InMemoryUsageStore())
        >>> result = await service.process_chat_request({"prompt": "Hello!"})
        >>> print(result.to_dict())
    """

    def __init__(
        self,
        config: ServiceConfig,
        store: UsageStore,
        adapter: Optional[ProviderAdapter] = None,
        identity: Callable[[], str] = get_os_username,
        calculator: Optional[CostCalculator] = None,
    ) -> None:
        """Initialize ChatService.

        Args:
            config: Service configuration
            store: Per-user permission and usage store
            adapter: Provider adapter. Built from ``config`` when None.
            identity: Callable returning the acting user's name
            calculator: Cost calculator. Defaults to one over
                ``config.pricing_config`` (or the bundled price table).

        Raises:
            UnsupportedProviderError: If ``config.provider`` is unknown
            ConfigurationError: If the provider's API key is missing
            PricingDataError: If the pricing file cannot be loaded
        """
        self._config = config
        self._store = store
        self._adapter = adapter if adapter is not None else build_adapter(config)
        self._identity = identity
        self._calculator = calculator or CostCalculator(PricingTable(config.pricing_config))

    @property
    def adapter(self) -> ProviderAdapter:
        return self._adapter

    async def process_chat_request(
        self, raw_request: Optional[Mapping[str, Any]], model: Optional[str] = None
    ) -> ServiceChatResponse:
        """Process one chat turn for the acting user.

        Args:
            raw_request: ``{"prompt": str}`` or ``{"messages": [...]}``, plus
                optional ``file_ids`` and ``max_tokens``
            model: Model identifier. Defaults to ``config.default_model``.

        Returns:
            ServiceChatResponse. When the user's spend has reached their
            ceiling the response is empty, ``limit_reached`` is True and
            the provider is not called.

        Raises:
            MissingInputError: If neither a prompt nor messages are given
            InvalidRequestError: If the request is malformed
            ProviderError: Propagated unchanged from the adapter
        """
        model = model or self._config.default_model
        request_data = _as_request_mapping(raw_request)
        file_ids = _file_references(request_data)

        user_name = self._identity()
        await self._store.ensure_user(user_name)
        await self._store.add_request(user_name)
        if file_ids:
            await self._store.add_request_with_files(user_name)

        total_cost = await self._store.get_total_cost(user_name)
        cost_limit = await self._store.get_cost_limit(user_name)
        if cost_limit is None or not math.isfinite(cost_limit):
            cost_limit = self._config.cost_limit
        if total_cost >= cost_limit:
            logger.warning(
                "User cost limit reached",
                extra={"user_name": user_name, "total_cost": total_cost, "cost_limit": cost_limit},
            )
            return ServiceChatResponse.limit_reached_response()

        request = self._normalize_request(request_data, file_ids, model)
        logger.info(
            "Chat request received",
            extra={
                "provider": self._adapter.get_provider_name(),
                "message_count": len(request.messages),
                "file_count": len(request.file_ids),
            },
        )

        response = await self._adapter.send_chat_request(request)

        cost = self._calculator.compute(response.usage, model)
        if response.tokens_used and math.isfinite(response.tokens_used):
            await self._store.add_tokens(user_name, response.tokens_used)
        if isinstance(cost, (int, float)) and math.isfinite(cost):
            await self._store.add_cost(user_name, cost)

        return ServiceChatResponse(
            content=response.content, usage=response.usage, cost=cost, limit_reached=False
        )

    def _normalize_request(
        self, request_data: Mapping[str, Any], file_ids: List[str], model: str
    ) -> ChatRequest:
        messages = request_data.get("messages")
        prompt = request_data.get("prompt")

        if isinstance(messages, (list, tuple)) and messages:
            standardized = tuple(_standardize_message(m) for m in messages)
        elif isinstance(prompt, str) and prompt:
            standardized = (StandardizedMessage(role="user", content=prompt),)
        else:
            raise MissingInputError("Neither prompt nor messages were provided")

        return ChatRequest(
            messages=standardized,
            model=model,
            file_ids=tuple(file_ids),
            max_output_tokens=_max_tokens(request_data.get("max_tokens")),
        )

    # ------------------------------------------------------------------ #
    # Delegations                                                          #
    # ------------------------------------------------------------------ #

    async def upload_files(self, files: Sequence[UploadFile]) -> List[UploadedFileDescriptor]:
        return await self._adapter.upload_files(files)

    async def delete_file(self, file_id: str) -> CleanupOutcome:
        return await self._adapter.delete_file(file_id)

    async def delete_files(self, file_ids: Optional[Sequence[str]]) -> List[CleanupOutcome]:
        """Delete files one after the other. Failures are reported, not raised."""
        outcomes: List[CleanupOutcome] = []
        for file_id in file_ids or ():
            outcomes.append(await self.delete_file(file_id))
        return outcomes

    async def download_file(self, file_id: str) -> str:
        return await self._adapter.download_file(file_id)

    async def extract_text_from_file(self, file_id: str) -> str:
        return await self._adapter.extract_text_from_file(file_id)

    async def delete_all_files(self) -> DeletionSummary:
        return await self._adapter.delete_all_files()

    def get_provider_name(self) -> str:
        return self._adapter.get_provider_name()

    async def startup_cleanup(self) -> DeletionSummary:
        """Purge every file left at the provider. Never raises."""
        try:
            summary = await self.delete_all_files()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Startup file cleanup failed", extra={"error": str(exc)})
            return DeletionSummary()
        logger.info(
            "Startup file cleanup done",
            extra={
                "provider": self.get_provider_name(),
                "deleted": summary.deleted_count,
                "failed": summary.failed_count,
            },
        )
        return summary

    async def close(self) -> None:
        await self._adapter.close()


def _as_request_mapping(raw_request: Any) -> Mapping[str, Any]:
    if raw_request is None:
        return {}
    if not isinstance(raw_request, Mapping):
        raise InvalidRequestError("Chat request must be a JSON object")
    return raw_request


def _file_references(request_data: Mapping[str, Any]) -> List[str]:
    for key in _FILE_REFERENCE_KEYS:
        value = request_data.get(key)
        if isinstance(value, (list, tuple)) and value:
            return [str(file_id) for file_id in value]
    return []


def _standardize_message(raw: Any) -> StandardizedMessage:
    if not isinstance(raw, Mapping):
        raise InvalidRequestError("Each message must be an object with role and content")
    role = raw.get("role")
    if role not in ROLES:
        role = "user"
    return StandardizedMessage(role=role, content=_flatten_content(raw.get("content")))


def _flatten_content(content: Any) -> str:
    """Reduce string or fragment-list content to plain text."""
    if isinstance(content, str):
        return content
    if not isinstance(content, (list, tuple)):
        return ""
    parts = []
    for fragment in content:
        if isinstance(fragment, str):
            text = fragment
        elif isinstance(fragment, Mapping):
            text = fragment.get("text")
        else:
            text = None
        if isinstance(text, str) and text:
            parts.append(text)
    return "\n".join(parts)


def _max_tokens(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidRequestError("max_tokens must be a positive integer")
    return value
