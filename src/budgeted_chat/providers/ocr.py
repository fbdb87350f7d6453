"""Decoding of OCR results whose shape is not contractually stable.

The OCR endpoint has been observed to return text as an array of content
blocks, as one string, or as a list of pages. Each shape is a decoder
tried in a fixed order; the first one that recognizes the payload wins.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Tuple

from ..exceptions import ExtractionFailedError

SEPARATOR = "\n\n"

# Keys that may hold text inside a content block or a page, in lookup order.
_BLOCK_TEXT_KEYS = ("text", "content", "markdown")
_PAGE_TEXT_KEYS = ("content", "text", "markdown")


@dataclass(frozen=True)
class OcrText:
    """Text recovered from an OCR result and the shape it came from."""

    shape: str
    text: str


def as_mapping(response: Any) -> Any:
    """Turn an SDK model into plain data; other values pass through."""
    for dump in ("model_dump", "dict"):
        method = getattr(response, dump, None)
        if callable(method):
            try:
                return method()
            except TypeError:
                continue
    return response


def _text_of(item: Any, keys: Tuple[str, ...]) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, Mapping):
        for key in keys:
            value = item.get(key)
            if isinstance(value, str) and value:
                return value
    return ""


def _join(parts: List[str]) -> str:
    return SEPARATOR.join(part for part in parts if part)


def _content_blocks(payload: Mapping) -> Optional[str]:
    contents = payload.get("contents")
    if not isinstance(contents, list):
        return None
    return _join([_text_of(block, _BLOCK_TEXT_KEYS) for block in contents])


def _content_string(payload: Mapping) -> Optional[str]:
    contents = payload.get("contents")
    if not isinstance(contents, str):
        return None
    return contents


def _pages(payload: Mapping) -> Optional[str]:
    pages = payload.get("pages")
    if not isinstance(pages, list):
        return None
    return _join([_text_of(page, _PAGE_TEXT_KEYS) for page in pages])


_DECODERS: Tuple[Tuple[str, Callable[[Mapping], Optional[str]]], ...] = (
    ("content_blocks", _content_blocks),
    ("content_string", _content_string),
    ("pages", _pages),
)


def decode_ocr_result(response: Any, file_id: str = "") -> OcrText:
    """Recover text from an OCR response.

    Args:
        response: Raw OCR response (SDK model, mapping or string)
        file_id: File the response belongs to, used in error messages

    Returns:
        OcrText naming the matched shape

    Raises:
        ExtractionFailedError: If no recognized shape yields any text
    """
    if isinstance(response, str):
        if response:
            return OcrText(shape="raw_string", text=response)
        raise ExtractionFailedError(f"OCR returned no text for file {file_id}")

    payload = as_mapping(response)
    if not isinstance(payload, Mapping):
        raise ExtractionFailedError(f"Unrecognized OCR response for file {file_id}")

    for shape, decode in _DECODERS:
        text = decode(payload)
        if text is None:
            continue
        if text:
            return OcrText(shape=shape, text=text)
        break

    raise ExtractionFailedError(
        f"The file {file_id} could not be processed by OCR: "
        "unsupported format or corrupted file"
    )
