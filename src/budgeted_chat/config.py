"""Service configuration.

``ServiceConfig`` is built once at the composition boundary (usually with
:meth:`ServiceConfig.from_env`) and handed to :class:`~budgeted_chat.service.ChatService`.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError, UnsupportedProviderError

DEFAULT_COST_LIMIT = 2.0
DEFAULT_MAX_OUTPUT_TOKENS = 4096
DEFAULT_ATTACHMENT_CHAR_BUDGET = 5000
DEFAULT_OCR_MODEL = "mistral-ocr-latest"


class ProviderName(str, Enum):
    """Closed set of supported AI providers."""

    CHATGPT = "chatgpt"
    MISTRAL = "mistral"

    @classmethod
    def parse(cls, value: "str | ProviderName") -> "ProviderName":
        """Resolve a configured provider name, accepting known aliases.

        Raises:
            UnsupportedProviderError: If the name matches no provider.
        """
        if isinstance(value, ProviderName):
            return value
        name = str(value or "").strip().lower()
        name = _PROVIDER_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            known = ", ".join(sorted(p.value for p in cls))
            raise UnsupportedProviderError(
                f"Unsupported provider: {value!r}. Known providers: {known}"
            ) from None


_PROVIDER_ALIASES = {"openai": "chatgpt"}

_API_KEY_ENV = {
    ProviderName.CHATGPT: "OPENAI_API_KEY",
    ProviderName.MISTRAL: "MISTRAL_API_KEY",
}

_DEFAULT_MODEL = {
    ProviderName.CHATGPT: "gpt-4o-mini",
    ProviderName.MISTRAL: "mistral-large-latest",
}


@dataclass(frozen=True)
class ServiceConfig:
    """Configuration for one chat service instance.

    Attributes:
        provider: Provider the service talks to for its whole lifetime.
        api_key: Credential for that provider.
        default_model: Model used when the caller does not pick one.
            Defaults to the provider's standard model.
        max_output_tokens: Response length cap sent to the provider.
        cost_limit: Spend ceiling (USD) for users with no ceiling of their own.
        attachment_char_budget: Characters of extracted text kept per attached file.
        ocr_model: Model used for document text extraction.
        pricing_config: Optional path to an alternative pricing JSON file.
    """

    provider: ProviderName = ProviderName.MISTRAL
    api_key: Optional[str] = None
    default_model: Optional[str] = None
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    cost_limit: float = DEFAULT_COST_LIMIT
    attachment_char_budget: int = DEFAULT_ATTACHMENT_CHAR_BUDGET
    ocr_model: str = DEFAULT_OCR_MODEL
    pricing_config: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "provider", ProviderName.parse(self.provider))
        if not self.default_model:
            object.__setattr__(self, "default_model", _DEFAULT_MODEL[self.provider])
        if self.max_output_tokens <= 0:
            raise ConfigurationError("max_output_tokens must be a positive integer")
        if self.cost_limit < 0:
            raise ConfigurationError("cost_limit cannot be negative")
        if self.attachment_char_budget <= 0:
            raise ConfigurationError("attachment_char_budget must be a positive integer")

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None,
    ) -> "ServiceConfig":
        """Build a config from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ`` (tests).
            dotenv_path: Optional ``.env`` file loaded into ``os.environ``
                first. Existing variables are not overridden.

        Raises:
            UnsupportedProviderError: If ``CHAT_PROVIDER`` is unknown.
            ConfigurationError: If a numeric variable cannot be parsed.
        """
        if dotenv_path is not None:
            load_dotenv(dotenv_path=dotenv_path, override=False)
        env = os.environ if environ is None else environ

        provider = ProviderName.parse(env.get("CHAT_PROVIDER", ProviderName.MISTRAL.value))
        return cls(
            provider=provider,
            api_key=env.get(_API_KEY_ENV[provider]) or None,
            default_model=env.get("CHAT_MODEL") or _DEFAULT_MODEL[provider],
            max_output_tokens=_env_number(env, "MAX_OUTPUT_TOKENS", DEFAULT_MAX_OUTPUT_TOKENS, int),
            cost_limit=_env_number(env, "COST_LIMIT_USD", DEFAULT_COST_LIMIT, float),
            attachment_char_budget=_env_number(
                env, "ATTACHMENT_CHAR_BUDGET", DEFAULT_ATTACHMENT_CHAR_BUDGET, int
            ),
            ocr_model=env.get("MISTRAL_OCR_MODEL", DEFAULT_OCR_MODEL),
            pricing_config=env.get("PRICING_CONFIG_PATH") or None,
        )


def _env_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
