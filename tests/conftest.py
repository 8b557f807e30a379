"""Shared fixtures: in-memory storage and a simulated Gemini endpoint."""

from typing import Any, Optional, Union

import httpx
import pytest

from reelkeeper.services.classifier import ReelClassifier
from reelkeeper.services.session import Session
from reelkeeper.storage.credentials import CredentialStore
from reelkeeper.storage.kv import MemoryKeyValueStore

TEST_API_KEY = "AIzaTestKey0123456789"


def gemini_payload(text: str) -> dict[str, Any]:
    """generateContent response body carrying one answer text."""
    return {
        "candidates": [
            {"content": {"role": "model", "parts": [{"text": text}]}, "finishReason": "STOP"}
        ]
    }


class FakeGemini:
    """Answers generateContent requests per model and records every call."""

    def __init__(self) -> None:
        self.behaviours: dict[str, Union[httpx.Response, Exception, str]] = {}
        self.calls: list[str] = []
        self.requests: list[httpx.Request] = []

    def answer(self, model: str, text: str) -> None:
        self.behaviours[model] = text

    def fail(self, model: str, status: int = 500, body: Optional[Any] = None) -> None:
        self.behaviours[model] = httpx.Response(status, json=body if body is not None else {})

    def raise_error(self, model: str, exc: Exception) -> None:
        self.behaviours[model] = exc

    def handler(self, request: httpx.Request) -> httpx.Response:
        model = request.url.path.rsplit("/", 1)[-1].split(":")[0]
        self.calls.append(model)
        self.requests.append(request)
        behaviour = self.behaviours.get(model)
        if behaviour is None:
            return httpx.Response(404, json={"error": {"message": f"unknown model {model}"}})
        if isinstance(behaviour, Exception):
            raise behaviour
        if isinstance(behaviour, httpx.Response):
            return behaviour
        return httpx.Response(200, json=gemini_payload(behaviour))


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def gemini() -> FakeGemini:
    return FakeGemini()


@pytest.fixture
def credentials(kv: MemoryKeyValueStore) -> CredentialStore:
    return CredentialStore(kv)


@pytest.fixture
def api_key(credentials: CredentialStore) -> str:
    credentials.set(TEST_API_KEY)
    return TEST_API_KEY


@pytest.fixture
def classifier(credentials: CredentialStore, gemini: FakeGemini) -> ReelClassifier:
    client = httpx.Client(transport=httpx.MockTransport(gemini.handler))
    return ReelClassifier(credentials, http_client=client)


@pytest.fixture
def session(kv: MemoryKeyValueStore, classifier: ReelClassifier):
    session = Session(kv, classifier)
    yield session
    session.close()
