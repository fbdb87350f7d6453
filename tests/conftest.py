"""Pytest configuration and shared fixtures."""

import itertools
from types import SimpleNamespace
from typing import Dict, List
from unittest.mock import AsyncMock, Mock

import pytest

from budgeted_chat.config import ServiceConfig
from budgeted_chat.providers.base import ProviderAdapter
from budgeted_chat.tracking.store import InMemoryUsageStore
from budgeted_chat.types import (
    CleanupOutcome,
    DeletionSummary,
    StandardizedResponse,
    StandardizedUsage,
    UploadedFileDescriptor,
)


class StubAdapter(ProviderAdapter):
    """Adapter double that records requests and returns a canned response."""

    provider_name = "Stub"

    def __init__(self, response=None, error=None):
        super().__init__(max_output_tokens=4096)
        self.response = response or StandardizedResponse(
            content="hi there",
            usage=StandardizedUsage(total_tokens=15, prompt_tokens=10, completion_tokens=5),
            tokens_used=15,
        )
        self.error = error
        self.requests = []
        self.deleted: List[str] = []

    @property
    def call_count(self):
        return len(self.requests)

    async def send_chat_request(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response

    async def upload_files(self, files):
        self._require_files(files)
        return [
            UploadedFileDescriptor(f.filename, f.size_bytes, f"stub-{i}")
            for i, f in enumerate(files)
        ]

    async def delete_file(self, file_id):
        self.deleted.append(file_id)
        return CleanupOutcome(file_id=file_id, deleted=True)

    async def delete_all_files(self):
        return DeletionSummary(deleted_count=2, failed_count=1)

    async def extract_text_from_file(self, file_id):
        return f"text of {file_id}"

    async def download_file(self, file_id):
        return f"content of {file_id}"


class FakeMistralFiles:
    """In-memory stand-in for the Mistral Files API, paged like the real one."""

    def __init__(self):
        self.stored: Dict[str, dict] = {}
        self.fail_delete = set()
        self._ids = itertools.count(1)

    async def upload_async(self, file, purpose):
        file_id = f"file-{next(self._ids)}"
        self.stored[file_id] = {"name": file["file_name"], "content": file["content"]}
        return SimpleNamespace(id=file_id, filename=file["file_name"], purpose=purpose)

    async def list_async(self, page=0, page_size=100):
        ids = sorted(self.stored)
        chunk = ids[page * page_size : (page + 1) * page_size]
        return SimpleNamespace(data=[SimpleNamespace(id=i) for i in chunk], total=len(ids))

    async def delete_async(self, file_id):
        if file_id in self.fail_delete or file_id not in self.stored:
            raise RuntimeError(f"cannot delete {file_id}")
        del self.stored[file_id]
        return SimpleNamespace(id=file_id, deleted=True)

    async def download_async(self, file_id):
        return SimpleNamespace(content=self.stored[file_id]["content"])


def make_mistral_chat_response(content="Bonjour", prompt_tokens=12, completion_tokens=8):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        ),
    )


@pytest.fixture
def mistral_client():
    """Mock Mistral client with in-memory files and mocked chat/OCR."""
    client = Mock()
    client.files = FakeMistralFiles()
    client.chat.complete_async = AsyncMock(return_value=make_mistral_chat_response())
    client.ocr.process_async = AsyncMock(
        return_value={"pages": [{"markdown": "Page one"}, {"markdown": "Page two"}]}
    )
    return client


@pytest.fixture
def openai_client():
    """Mock AsyncOpenAI client."""
    client = Mock()
    client.files.create = AsyncMock(return_value=SimpleNamespace(id="file-abc"))
    client.files.retrieve = AsyncMock(return_value=SimpleNamespace(filename="report.pdf"))
    client.files.content = AsyncMock(return_value=SimpleNamespace(content=b"hello"))
    client.files.delete = AsyncMock(return_value=SimpleNamespace(deleted=True))
    client.files.list = AsyncMock(
        return_value=SimpleNamespace(data=[], has_more=False)
    )
    client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="  Answer  "))],
            usage=SimpleNamespace(
                prompt_tokens=100,
                completion_tokens=20,
                total_tokens=120,
                prompt_tokens_details=SimpleNamespace(cached_tokens=40),
            ),
        )
    )
    client.vector_stores.create = AsyncMock(return_value=SimpleNamespace(id="vs-1"))
    client.vector_stores.delete = AsyncMock()
    client.vector_stores.file_batches.create_and_poll = AsyncMock()
    client.responses.create = AsyncMock(
        return_value=SimpleNamespace(
            output_text="From the files",
            usage=SimpleNamespace(
                input_tokens=300,
                output_tokens=50,
                total_tokens=350,
                input_tokens_details=SimpleNamespace(cached_tokens=0),
            ),
        )
    )
    return client


@pytest.fixture
def store():
    return InMemoryUsageStore()


@pytest.fixture
def stub_adapter():
    return StubAdapter()


@pytest.fixture
def config():
    """Config for a service wired with an injected adapter."""
    return ServiceConfig(provider="mistral", api_key="test-key", default_model="mistral-small")
