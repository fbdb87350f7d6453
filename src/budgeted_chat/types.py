"""Normalized types shared by the adapters and the chat service."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

ROLES = ("user", "assistant", "system")


@dataclass(frozen=True)
class StandardizedMessage:
    """One conversation turn. ``role`` is one of ``user``, ``assistant``, ``system``."""

    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ChatRequest:
    """Normalized chat request handed to a provider adapter.

    Attributes:
        messages: Conversation in order, earliest first. Never empty once
            built by the chat service.
        file_ids: Provider-issued identifiers of attached files.
        model: Model identifier forwarded to the provider.
        max_output_tokens: Optional cap on the response length. Adapters
            fall back to their configured maximum when unset.
    """

    messages: Tuple[StandardizedMessage, ...]
    model: str
    file_ids: Tuple[str, ...] = ()
    max_output_tokens: Optional[int] = None


@dataclass(frozen=True)
class StandardizedUsage:
    """Provider-reported token usage. Any field may be missing."""

    total_tokens: Optional[int] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    cached_prompt_tokens: Optional[int] = None

    def to_dict(self) -> Dict[str, Optional[int]]:
        return {
            "total_tokens": self.total_tokens,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "cached_prompt_tokens": self.cached_prompt_tokens,
        }


@dataclass(frozen=True)
class StandardizedResponse:
    """Provider response in the shape every adapter returns."""

    content: str = ""
    usage: Optional[StandardizedUsage] = None
    tokens_used: int = 0


@dataclass(frozen=True)
class UploadFile:
    """Raw file payload as received from the transport layer."""

    data: bytes
    filename: str
    size: Optional[int] = None
    content_type: Optional[str] = None

    @property
    def size_bytes(self) -> int:
        return self.size if self.size is not None else len(self.data)


@dataclass(frozen=True)
class UploadedFileDescriptor:
    """A file stored at the provider.

    ``provider_file_id`` stops being valid once the file is deleted or
    expires; callers should treat a stale id as a failed reference.
    """

    display_name: str
    size_bytes: int
    provider_file_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.display_name,
            "size": self.size_bytes,
            "file_id": self.provider_file_id,
        }


@dataclass(frozen=True)
class CleanupOutcome:
    """Advisory result of a best-effort deletion. Never affects a chat result."""

    file_id: str
    deleted: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class DeletionSummary:
    """Result of a bulk deletion."""

    deleted_count: int = 0
    failed_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"deleted": self.deleted_count, "failed": self.failed_count}


@dataclass(frozen=True)
class ServiceChatResponse:
    """Result of one processed chat turn."""

    content: str
    usage: Optional[StandardizedUsage]
    cost: float
    limit_reached: bool = False

    @classmethod
    def limit_reached_response(cls) -> "ServiceChatResponse":
        return cls(content="", usage=None, cost=0.0, limit_reached=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "usage": self.usage.to_dict() if self.usage is not None else None,
            "cost": self.cost,
            "limitReached": self.limit_reached,
        }


@dataclass
class UserAccount:
    """Per-user permission flags and usage counters."""

    user_name: str
    can_use_app: bool = False
    can_import_files: bool = False
    total_requests: int = 0
    total_requests_with_files: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    max_cost: Optional[float] = 2.0


@dataclass(frozen=True)
class FeatureFlags:
    """Feature permissions for one user."""

    can_use_app: bool = False
    can_import_files: bool = False

    @classmethod
    def deny_all(cls) -> "FeatureFlags":
        return cls(can_use_app=False, can_import_files=False)


@dataclass(frozen=True)
class AttachmentContext:
    """Document text spliced into a chat turn, plus cleanup diagnostics."""

    text: str = ""
    processed: int = 0
    failed: Tuple[str, ...] = ()
    cleanups: Tuple[CleanupOutcome, ...] = field(default_factory=tuple)
