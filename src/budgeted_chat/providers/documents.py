"""Upload validation rules for each provider's file model."""

from dataclasses import dataclass
from typing import FrozenSet, Optional, Sequence, Tuple

from ..exceptions import EmptyFileError, UnsupportedFormatError
from ..types import UploadFile


def file_extension(filename: str) -> str:
    """Lower-cased extension without the dot ("" if there is none)."""
    name = (filename or "").strip().lower()
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class DocumentPolicy:
    """Which files a provider accepts.

    A file is accepted when its extension is listed, or when its MIME type
    contains one of ``mime_fragments`` / starts with one of ``mime_prefixes``.
    Extensions in ``rejected_extensions`` are refused regardless of MIME type.
    """

    label: str
    extensions: FrozenSet[str]
    mime_fragments: Tuple[str, ...] = ()
    mime_prefixes: Tuple[str, ...] = ()
    rejected_extensions: FrozenSet[str] = frozenset()

    def is_supported(self, filename: str, content_type: Optional[str] = None) -> bool:
        ext = file_extension(filename)
        if ext in self.rejected_extensions:
            return False
        if ext in self.extensions:
            return True
        mime = (content_type or "").lower()
        if not mime:
            return False
        return any(fragment in mime for fragment in self.mime_fragments) or any(
            mime.startswith(prefix) for prefix in self.mime_prefixes
        )

    def validate(self, upload: UploadFile) -> None:
        """Raise if ``upload`` cannot be sent to this provider.

        Raises:
            EmptyFileError: If the payload is empty
            UnsupportedFormatError: If the file type is not accepted
        """
        if not upload.data:
            raise EmptyFileError(f"File is empty: {upload.filename}")
        if not self.is_supported(upload.filename, upload.content_type):
            accepted = ", ".join(sorted(ext.upper() for ext in self.extensions))
            raise UnsupportedFormatError(
                f"Unsupported format: {upload.filename}. Accepted formats: {accepted}"
            )

    def validate_all(self, uploads: Sequence[UploadFile]) -> None:
        for upload in uploads:
            self.validate(upload)


# Files attached by reference to chat / file_search calls.
DIRECT_CHAT_POLICY = DocumentPolicy(
    label="ChatGPT",
    extensions=frozenset({"txt", "md", "csv", "json", "pdf", "doc", "docx"}),
)

# Mistral OCR reads PDF, DOCX and images. Plain text is rejected by the OCR endpoint.
OCR_POLICY = DocumentPolicy(
    label="Mistral",
    extensions=frozenset({"pdf", "docx", "png", "jpg", "jpeg", "webp"}),
    mime_fragments=("pdf", "wordprocessingml", "vnd.openxmlformats"),
    mime_prefixes=("image/",),
    rejected_extensions=frozenset({"txt"}),
)
