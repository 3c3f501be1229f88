"""
Shared pytest fixtures for memosync tests.

Provides fake memos, a recording AI backend, and a retry policy that
never sleeps.
"""

from datetime import timezone
from pathlib import Path

import pytest

from memosync.config import SyncConfig
from memosync.retry import RetryPolicy
from memosync.storage import LocalStorage
from memosync.types import RemoteRecord, ResourceRef


class RecordingBackend:
    """AI backend that records calls and returns canned answers."""

    def __init__(self, summary="A short summary", tags=None, digest="A good week"):
        self.summary = summary
        self.tags = ["idea", "work"] if tags is None else tags
        self.digest = digest
        self.calls: list[tuple[str, object]] = []

    def generate_summary(self, text: str, language: str = "zh") -> str:
        self.calls.append(("summary", text))
        return self.summary

    def generate_tags(self, text: str) -> list[str]:
        self.calls.append(("tags", text))
        return list(self.tags)

    def generate_weekly_digest(self, texts: list[str]) -> str:
        self.calls.append(("digest", list(texts)))
        return self.digest


class FailingBackend(RecordingBackend):
    """Backend whose every call raises."""

    def __init__(self, error: Exception | None = None):
        super().__init__()
        self.error = error or RuntimeError("model exploded")

    def generate_summary(self, text, language="zh"):
        self.calls.append(("summary", text))
        raise self.error

    def generate_tags(self, text):
        self.calls.append(("tags", text))
        raise self.error

    def generate_weekly_digest(self, texts):
        self.calls.append(("digest", list(texts)))
        raise self.error


def make_record(
    name: str = "memos/1",
    content: str = "Today I learned about ISO week numbering.",
    create_time: str = "2024-05-15T12:00:00Z",
    update_time: str = "2024-05-16T08:30:00Z",
    visibility: str = "PUBLIC",
    resources: tuple = (),
) -> RemoteRecord:
    return RemoteRecord(
        name=name,
        uid=name.split("/")[-1],
        content=content,
        create_time=create_time,
        update_time=update_time,
        visibility=visibility,
        resources=tuple(resources),
    )


def make_resource(name: str = "resources/9", filename: str = "photo.png",
                  type: str = "image/png") -> ResourceRef:
    return ResourceRef(name=name, filename=filename, type=type)


def memo_json(name: str, create_time: str, content: str = "hello from memos") -> dict:
    """One element of the API's memos array."""
    return {
        "name": name,
        "uid": name.split("/")[-1],
        "content": content,
        "visibility": "PRIVATE",
        "createTime": create_time,
        "updateTime": create_time,
        "displayTime": create_time,
        "creator": "users/1",
        "rowStatus": "NORMAL",
        "pinned": False,
        "resources": [],
        "tags": [],
    }


@pytest.fixture
def storage(tmp_path: Path) -> LocalStorage:
    return LocalStorage(tmp_path)


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by the retry policy, in order."""
    return []


@pytest.fixture
def no_sleep_retry(sleeps) -> RetryPolicy:
    """RetryPolicy that records delays instead of sleeping."""
    return RetryPolicy(sleep=sleeps.append)


@pytest.fixture
def utc():
    return timezone.utc


@pytest.fixture
def config(tmp_path: Path) -> SyncConfig:
    return SyncConfig(
        path=tmp_path,
        api_url="https://memos.example.com/api/v1",
        access_token="token-123",
        sync_limit=10,
    )
