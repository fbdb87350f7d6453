"""Construction-time provider selection."""

from typing import Callable, Dict

from ..config import ProviderName, ServiceConfig
from .base import ProviderAdapter
from .mistral_adapter import MistralAdapter
from .openai_adapter import OpenAIAdapter


def _build_openai(config: ServiceConfig) -> ProviderAdapter:
    return OpenAIAdapter(api_key=config.api_key, max_output_tokens=config.max_output_tokens)


def _build_mistral(config: ServiceConfig) -> ProviderAdapter:
    return MistralAdapter(
        api_key=config.api_key,
        max_output_tokens=config.max_output_tokens,
        attachment_char_budget=config.attachment_char_budget,
        ocr_model=config.ocr_model,
    )


_PROVIDER_MAP: Dict[ProviderName, Callable[[ServiceConfig], ProviderAdapter]] = {
    ProviderName.CHATGPT: _build_openai,
    ProviderName.MISTRAL: _build_mistral,
}


def build_adapter(config: ServiceConfig) -> ProviderAdapter:
    """Create the adapter for the configured provider.

    Args:
        config: Service configuration. ``config.provider`` picks the adapter.

    Returns:
        A ready-to-use ProviderAdapter

    Raises:
        UnsupportedProviderError: If the provider name is unknown
        ConfigurationError: If the provider's API key is missing
    """
    return _PROVIDER_MAP[ProviderName.parse(config.provider)](config)
