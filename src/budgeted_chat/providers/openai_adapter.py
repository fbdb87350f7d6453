"""ChatGPT adapter: files are attached to the chat call by reference."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..exceptions import ConfigurationError, UnsupportedOperationError
from ..types import (
    ChatRequest,
    CleanupOutcome,
    DeletionSummary,
    StandardizedMessage,
    StandardizedResponse,
    StandardizedUsage,
    UploadedFileDescriptor,
    UploadFile,
)
from .base import ProviderAdapter, coerce_text, map_provider_error
from .documents import DIRECT_CHAT_POLICY, file_extension

logger = logging.getLogger(__name__)

FILES_INTRO = "Here are the files to take into account:"
EMPTY_PROMPT_FALLBACK = "Answer using the provided files where relevant."
_LIST_PAGE_SIZE = 100


class OpenAIAdapter(ProviderAdapter):
    """Adapter for the OpenAI API (ChatGPT).

    OpenAI has no extraction endpoint: uploaded files are attached to the
    chat call itself. PDFs go to Chat Completions as file content parts;
    any other file type triggers the Responses API with ``file_search``
    over a temporary vector store, which is deleted after the call.

    A small file-id -> (name, extension) cache remembers uploaded file
    types so the path decision rarely needs a metadata round-trip.
    """

    provider_name = "ChatGPT"

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_output_tokens: int = 4096,
        client: Any = None,
    ) -> None:
        """Initialize OpenAIAdapter.

        Args:
            api_key: OpenAI API key. Required unless ``client`` is given.
            max_output_tokens: Default response length cap.
            client: Pre-built ``openai.AsyncOpenAI`` client (or a test double).

        Raises:
            ConfigurationError: If neither ``api_key`` nor ``client`` is given.
        """
        super().__init__(max_output_tokens)
        if client is None:
            if not api_key:
                raise ConfigurationError("OpenAIAdapter: api_key is required")
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=api_key)
        self._client = client
        self._file_meta: Dict[str, Tuple[str, str]] = {}

    async def close(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------ #
    # Files                                                                #
    # ------------------------------------------------------------------ #

    async def upload_files(self, files: Sequence[UploadFile]) -> List[UploadedFileDescriptor]:
        self._require_files(files)
        DIRECT_CHAT_POLICY.validate_all(files)

        results: List[UploadedFileDescriptor] = []
        for upload in files:
            try:
                uploaded = await self._client.files.create(
                    file=(upload.filename, upload.data),
                    purpose="assistants",
                )
            except Exception as exc:
                logger.error(
                    "OpenAI upload failed",
                    extra={"upload_name": upload.filename, "error": str(exc)},
                )
                raise map_provider_error(exc, self.provider_name) from exc

            self._file_meta[uploaded.id] = (upload.filename, file_extension(upload.filename))
            results.append(
                UploadedFileDescriptor(
                    display_name=upload.filename,
                    size_bytes=upload.size_bytes,
                    provider_file_id=uploaded.id,
                )
            )

        logger.info("Files uploaded", extra={"provider": self.provider_name, "count": len(results)})
        return results

    async def extract_text_from_file(self, file_id: str) -> str:
        raise UnsupportedOperationError("OpenAI does not expose a text extraction endpoint for files")

    async def download_file(self, file_id: str) -> str:
        try:
            content = await self._client.files.content(file_id)
        except Exception as exc:
            raise map_provider_error(exc, self.provider_name) from exc
        return coerce_text(content)

    async def delete_file(self, file_id: str) -> CleanupOutcome:
        try:
            await self._client.files.delete(file_id)
        except Exception as exc:  # noqa: BLE001
            return self._cleanup_failed(file_id, exc)
        self._file_meta.pop(file_id, None)
        return CleanupOutcome(file_id=file_id, deleted=True)

    async def delete_all_files(self) -> DeletionSummary:
        try:
            file_ids = await self._list_file_ids()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not list OpenAI files", extra={"error": str(exc)})
            return DeletionSummary()

        deleted = failed = 0
        for file_id in file_ids:
            outcome = await self.delete_file(file_id)
            if outcome.deleted:
                deleted += 1
            else:
                failed += 1
        return DeletionSummary(deleted_count=deleted, failed_count=failed)

    async def _list_file_ids(self) -> List[str]:
        ids: List[str] = []
        after: Optional[str] = None
        while True:
            kwargs: Dict[str, Any] = {"limit": _LIST_PAGE_SIZE}
            if after is not None:
                kwargs["after"] = after
            page = await self._client.files.list(**kwargs)
            data = list(getattr(page, "data", None) or [])
            ids.extend(f.id for f in data)
            if not data or not getattr(page, "has_more", False):
                return ids
            after = data[-1].id

    # ------------------------------------------------------------------ #
    # Chat                                                                 #
    # ------------------------------------------------------------------ #

    async def send_chat_request(self, request: ChatRequest) -> StandardizedResponse:
        self._require_messages(request)

        try:
            if request.file_ids and await self._has_non_pdf(request.file_ids):
                response = await self._send_with_file_search(request)
            else:
                response = await self._send_chat_completion(request)
        except Exception as exc:
            logger.error("OpenAI chat call failed", extra={"error": str(exc)})
            raise map_provider_error(exc, self.provider_name) from exc

        logger.info(
            "Chat response generated",
            extra={
                "provider": self.provider_name,
                "model": request.model,
                "usage_prompt_tokens": response.usage.prompt_tokens if response.usage else None,
                "usage_completion_tokens": (
                    response.usage.completion_tokens if response.usage else None
                ),
                "response_length": len(response.content),
            },
        )
        return response

    async def _has_non_pdf(self, file_ids: Sequence[str]) -> bool:
        for file_id in file_ids:
            meta = self._file_meta.get(file_id)
            if meta is None:
                try:
                    info = await self._client.files.retrieve(file_id)
                except Exception:  # noqa: BLE001
                    # Unknown type: file_search handles every format.
                    return True
                name = getattr(info, "filename", "") or ""
                meta = (name, file_extension(name))
                self._file_meta[file_id] = meta
            if meta[1] != "pdf":
                return True
        return False

    async def _send_chat_completion(self, request: ChatRequest) -> StandardizedResponse:
        messages: List[Dict[str, Any]] = [
            {"role": m.role, "content": [{"type": "text", "text": m.content}]}
            for m in request.messages
        ]
        if request.file_ids:
            messages.append(
                {
                    "role": "user",
                    "content": [{"type": "text", "text": FILES_INTRO}]
                    + [{"type": "file", "file": {"file_id": str(fid)}} for fid in request.file_ids],
                }
            )

        response = await self._client.chat.completions.create(
            model=request.model,
            messages=messages,
            max_completion_tokens=self._output_token_limit(request),
        )

        choices = getattr(response, "choices", None) or []
        reply = (choices[0].message.content if choices else None) or ""
        usage = getattr(response, "usage", None)
        standardized = None
        tokens_used = 0
        if usage is not None:
            standardized = StandardizedUsage(
                total_tokens=usage.total_tokens,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                cached_prompt_tokens=_cached_tokens(usage, "prompt_tokens_details"),
            )
            tokens_used = usage.total_tokens or usage.completion_tokens or 0

        return StandardizedResponse(
            content=str(reply).strip(), usage=standardized, tokens_used=tokens_used
        )

    async def _send_with_file_search(self, request: ChatRequest) -> StandardizedResponse:
        vector_store = await self._client.vector_stores.create(name="session-store")
        try:
            await self._client.vector_stores.file_batches.create_and_poll(
                vector_store_id=vector_store.id,
                file_ids=[str(fid) for fid in request.file_ids],
            )
            prompt = _flatten_transcript(request.messages)
            response = await self._client.responses.create(
                model=request.model,
                input=prompt or EMPTY_PROMPT_FALLBACK,
                tools=[{"type": "file_search", "vector_store_ids": [vector_store.id]}],
                max_output_tokens=self._output_token_limit(request),
            )
        finally:
            await self._delete_vector_store(vector_store.id)

        usage = getattr(response, "usage", None)
        standardized = None
        tokens_used = 0
        if usage is not None:
            standardized = StandardizedUsage(
                total_tokens=usage.total_tokens,
                prompt_tokens=usage.input_tokens,
                completion_tokens=usage.output_tokens,
                cached_prompt_tokens=_cached_tokens(usage, "input_tokens_details"),
            )
            tokens_used = usage.total_tokens or usage.output_tokens or usage.input_tokens or 0

        return StandardizedResponse(
            content=_response_output_text(response), usage=standardized, tokens_used=tokens_used
        )

    async def _delete_vector_store(self, vector_store_id: str) -> None:
        try:
            await self._client.vector_stores.delete(vector_store_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Vector store deletion failed",
                extra={"vector_store_id": vector_store_id, "error": str(exc)},
            )


def _flatten_transcript(messages: Sequence[StandardizedMessage]) -> str:
    blocks = [f"[{m.role.upper()}]\n{m.content}" for m in messages if m.content.strip()]
    return "\n\n".join(blocks).strip()


def _response_output_text(response: Any) -> str:
    text = getattr(response, "output_text", None)
    if isinstance(text, str):
        return text.strip()
    parts = []
    for item in getattr(response, "output", None) or []:
        for block in getattr(item, "content", None) or []:
            if getattr(block, "type", None) == "output_text":
                parts.append(getattr(block, "text", "") or "")
    return "".join(parts).strip()


def _cached_tokens(usage: Any, details_field: str) -> Optional[int]:
    details = getattr(usage, details_field, None)
    cached = getattr(details, "cached_tokens", None)
    return cached if isinstance(cached, int) else None
