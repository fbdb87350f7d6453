"""Mistral adapter: OCR-centric upload-then-extract file model."""

import logging
from typing import Any, List, Optional, Sequence

from ..exceptions import ChatServiceError, ConfigurationError, ExtractionFailedError, ProviderError
from ..types import (
    AttachmentContext,
    ChatRequest,
    CleanupOutcome,
    DeletionSummary,
    StandardizedResponse,
    StandardizedUsage,
    UploadedFileDescriptor,
    UploadFile,
)
from .base import ProviderAdapter, coerce_text, map_provider_error
from .documents import OCR_POLICY
from .ocr import decode_ocr_result

logger = logging.getLogger(__name__)

DEFAULT_CHAT_MODEL = "mistral-large-latest"
DOCUMENTS_HEADER = "\n\n--- ATTACHED DOCUMENTS ---\n"
TRUNCATION_MARKER = "\n[... content truncated ...]"


class MistralAdapter(ProviderAdapter):
    """Adapter for the Mistral AI API.

    Files are uploaded with ``purpose="ocr"``. When a chat turn references
    files, their text is extracted through the OCR endpoint, truncated to
    ``attachment_char_budget`` characters each, and appended to the last
    user message. Each file is then deleted from Mistral storage on a
    best-effort basis.
    """

    provider_name = "Mistral"

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_output_tokens: int = 4096,
        attachment_char_budget: int = 5000,
        ocr_model: str = "mistral-ocr-latest",
        client: Any = None,
    ) -> None:
        """Initialize MistralAdapter.

        Args:
            api_key: Mistral API key. Required unless ``client`` is given.
            max_output_tokens: Default response length cap.
            attachment_char_budget: Characters of OCR text kept per file.
            ocr_model: Model used by the OCR endpoint.
            client: Pre-built ``mistralai.Mistral`` client (or a test double).

        Raises:
            ConfigurationError: If neither ``api_key`` nor ``client`` is given.
        """
        super().__init__(max_output_tokens)
        if client is None:
            if not api_key:
                raise ConfigurationError("MistralAdapter: api_key is required")
            from mistralai import Mistral

            client = Mistral(api_key=api_key)
        self._client = client
        self._attachment_char_budget = attachment_char_budget
        self._ocr_model = ocr_model

    # ------------------------------------------------------------------ #
    # Files                                                                #
    # ------------------------------------------------------------------ #

    async def upload_files(self, files: Sequence[UploadFile]) -> List[UploadedFileDescriptor]:
        self._require_files(files)
        # Validate the whole batch before anything reaches provider storage.
        OCR_POLICY.validate_all(files)

        results: List[UploadedFileDescriptor] = []
        for upload in files:
            try:
                uploaded = await self._client.files.upload_async(
                    file={"file_name": upload.filename, "content": upload.data},
                    purpose="ocr",
                )
            except Exception as exc:
                logger.error(
                    "Mistral upload failed",
                    extra={"upload_name": upload.filename, "error": str(exc)},
                )
                error = map_provider_error(exc, self.provider_name)
                raise type(error)(f"Upload failed for {upload.filename}: {error}") from exc
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
        """Extract a file's text with the OCR endpoint.

        Raises:
            ExtractionFailedError: If OCR fails or yields no text
        """
        try:
            response = await self._client.ocr.process_async(
                model=self._ocr_model,
                document={"type": "file", "file_id": file_id},
            )
        except Exception as exc:
            raise ExtractionFailedError(f"OCR error for file {file_id}: {exc}") from exc

        if response is None:
            raise ExtractionFailedError(f"Empty OCR response for file {file_id}")

        result = decode_ocr_result(response, file_id=file_id)
        logger.debug(
            "OCR text extracted",
            extra={"file_id": file_id, "shape": result.shape, "chars": len(result.text)},
        )
        return result.text

    async def download_file(self, file_id: str) -> str:
        try:
            content = await self._client.files.download_async(file_id=file_id)
        except Exception as exc:
            raise map_provider_error(exc, self.provider_name) from exc
        return coerce_text(content)

    async def delete_file(self, file_id: str) -> CleanupOutcome:
        try:
            await self._client.files.delete_async(file_id=file_id)
        except Exception as exc:  # noqa: BLE001
            return self._cleanup_failed(file_id, exc)
        return CleanupOutcome(file_id=file_id, deleted=True)

    async def delete_all_files(self) -> DeletionSummary:
        try:
            file_ids = await self._list_file_ids()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not list Mistral files", extra={"error": str(exc)})
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
        page = 0
        while True:
            response = await self._client.files.list_async(page=page, page_size=100)
            data = list(getattr(response, "data", None) or [])
            ids.extend(f.id for f in data)
            total = getattr(response, "total", None)
            if not data or not isinstance(total, int) or len(ids) >= total:
                return ids
            page += 1

    # ------------------------------------------------------------------ #
    # Chat                                                                 #
    # ------------------------------------------------------------------ #

    async def send_chat_request(self, request: ChatRequest) -> StandardizedResponse:
        self._require_messages(request)

        messages = [m.to_dict() for m in request.messages]
        if request.file_ids:
            context = await self._build_attachment_context(request.file_ids)
            _append_to_last_user_message(messages, context.text)
            cleanup_failed = sum(1 for c in context.cleanups if not c.deleted)
            logger.log(
                logging.WARNING if context.failed or cleanup_failed else logging.INFO,
                "Attachments processed",
                extra={
                    "processed": context.processed,
                    "failed": len(context.failed),
                    "failed_file_ids": list(context.failed),
                    "cleanup_failed": cleanup_failed,
                },
            )

        try:
            response = await self._client.chat.complete_async(
                model=request.model or DEFAULT_CHAT_MODEL,
                messages=messages,
                max_tokens=self._output_token_limit(request),
            )
        except Exception as exc:
            logger.error("Mistral chat call failed", extra={"error": str(exc)})
            raise map_provider_error(exc, self.provider_name) from exc

        choices = getattr(response, "choices", None) or []
        if not choices or getattr(choices[0], "message", None) is None:
            raise ProviderError("Mistral returned an invalid or empty response")

        content = _message_text(choices[0].message.content)
        usage = _standardize_usage(getattr(response, "usage", None))

        logger.info(
            "Chat response generated",
            extra={
                "provider": self.provider_name,
                "model": request.model,
                "usage_prompt_tokens": usage.prompt_tokens if usage else None,
                "usage_completion_tokens": usage.completion_tokens if usage else None,
                "response_length": len(content),
            },
        )
        return StandardizedResponse(
            content=content,
            usage=usage,
            tokens_used=(usage.total_tokens or 0) if usage else 0,
        )

    async def _build_attachment_context(self, file_ids: Sequence[str]) -> AttachmentContext:
        """Extract, truncate and label each attached file, then delete it."""
        text = DOCUMENTS_HEADER
        processed = 0
        failed: List[str] = []
        cleanups: List[CleanupOutcome] = []

        for file_id in file_ids:
            try:
                extracted = await self.extract_text_from_file(file_id)
            except ChatServiceError as exc:
                logger.warning(
                    "Attachment extraction failed", extra={"file_id": file_id, "error": str(exc)}
                )
                text += f"\n[File: {file_id}] - extraction failed\n"
                failed.append(file_id)
                continue

            text += f"\n[File: {file_id}]\n{self._truncate(extracted)}\n"
            processed += 1
            cleanups.append(await self.delete_file(file_id))

        return AttachmentContext(
            text=text, processed=processed, failed=tuple(failed), cleanups=tuple(cleanups)
        )

    def _truncate(self, text: str) -> str:
        if len(text) <= self._attachment_char_budget:
            return text
        return text[: self._attachment_char_budget] + TRUNCATION_MARKER


def _append_to_last_user_message(messages: List[dict], context: str) -> None:
    for message in reversed(messages):
        if message["role"] == "user":
            message["content"] += context
            return
    messages.append({"role": "user", "content": context.lstrip("\n")})


def _message_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    # Newer models may answer with a list of typed chunks.
    parts = []
    for chunk in content:
        if isinstance(chunk, str):
            parts.append(chunk)
        else:
            text = chunk.get("text") if isinstance(chunk, dict) else getattr(chunk, "text", None)
            if isinstance(text, str):
                parts.append(text)
    return "".join(parts)


def _standardize_usage(usage: Any) -> Optional[StandardizedUsage]:
    if usage is None:
        return None
    return StandardizedUsage(
        total_tokens=getattr(usage, "total_tokens", None),
        prompt_tokens=getattr(usage, "prompt_tokens", None),
        completion_tokens=getattr(usage, "completion_tokens", None),
    )
