"""Shared pytest fixtures for the Muse generation layer tests."""

import asyncio
import base64
import os
import sys
from typing import Any, Dict, List, Optional

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from completion_gateway import CompletionGateway  # noqa: E402
from models import ModelCandidate  # noqa: E402


# ============================================================================
# Provider payload builders
# ============================================================================

def build_text_payload(
    text: str = "",
    calls: Optional[List[Dict[str, Any]]] = None,
    sources: Optional[List[Dict[str, str]]] = None,
) -> Dict[str, Any]:
    parts: List[Dict[str, Any]] = []
    if text:
        parts.append({"text": text})
    for call in calls or []:
        parts.append({"functionCall": call})
    candidate: Dict[str, Any] = {"content": {"role": "model", "parts": parts}, "finishReason": "STOP"}
    if sources:
        candidate["groundingMetadata"] = {"groundingChunks": [{"web": source} for source in sources]}
    return {"candidates": [candidate]}


def build_audio_payload(audio: bytes = b"\x00\x01\x02\x03") -> Dict[str, Any]:
    return {
        "candidates": [{
            "content": {"parts": [{
                "inlineData": {"mimeType": "audio/L16;rate=24000", "data": base64.b64encode(audio).decode("ascii")}
            }]}
        }]
    }


def build_image_payload(data_base64: str = "aW1hZ2U=", caption: str = "") -> Dict[str, Any]:
    parts: List[Dict[str, Any]] = []
    if caption:
        parts.append({"text": caption})
    parts.append({"inlineData": {"mimeType": "image/png", "data": data_base64}})
    return {"candidates": [{"content": {"parts": parts}}]}


# ============================================================================
# Collaborator fakes
# ============================================================================

class Delayed:
    """Scripted transport step that answers (or raises) after a delay."""

    def __init__(self, seconds: float, outcome: Any):
        self.seconds = seconds
        self.outcome = outcome


class ScriptedTransport:
    """
    Provider transport that replays a per-model script.

    Each step is a payload dict (returned), an exception (raised) or a
    Delayed wrapper around either. Calls are recorded in order.
    """

    def __init__(self, script: Optional[Dict[str, List[Any]]] = None):
        self.script = {model: list(steps) for model, steps in (script or {}).items()}
        self.calls: List[Dict[str, Any]] = []
        self.completed: List[str] = []

    def add(self, model_id: str, *steps: Any) -> "ScriptedTransport":
        self.script.setdefault(model_id, []).extend(steps)
        return self

    @property
    def called_models(self) -> List[str]:
        return [call["model_id"] for call in self.calls]

    async def call(self, model_id: str, contents: List[Dict[str, Any]], config: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append({"model_id": model_id, "contents": contents, "config": config})
        steps = self.script.get(model_id)
        if not steps:
            raise AssertionError(f"Unexpected call to {model_id}")
        step = steps.pop(0)
        if isinstance(step, Delayed):
            await asyncio.sleep(step.seconds)
            step = step.outcome
        self.completed.append(model_id)
        if isinstance(step, BaseException):
            raise step
        return step


class FakeBuffer:
    def __init__(self, text: str = ""):
        self._text = text
        self.operations: List[str] = []

    @property
    def text(self) -> str:
        return self._text

    def replace(self, text: str) -> None:
        self.operations.append("replace")
        self._text = text

    def append(self, text: str) -> None:
        self.operations.append("append")
        self._text += text


class RecordingSink:
    def __init__(self):
        self.notifications: List[tuple] = []

    def upgrade_required(self, subject, reason, message) -> None:
        self.notifications.append((subject, reason, message))


class MemoryStore:
    """In-memory persistence collaborator; kinds listed in failing raise on access."""

    def __init__(self, data: Optional[Dict[str, List[Dict[str, Any]]]] = None, failing: tuple = ()):
        self.data = {kind: list(rows) for kind, rows in (data or {}).items()}
        self.failing = set(failing)
        self.saved: List[tuple] = []

    async def save(self, kind: str, entity: Dict[str, Any]) -> None:
        if kind in self.failing:
            raise ConnectionError(f"storage offline for {kind}")
        self.saved.append((kind, entity))
        self.data.setdefault(kind, []).append(entity)

    async def load(self, kind: str) -> List[Dict[str, Any]]:
        if kind in self.failing:
            raise ConnectionError(f"storage offline for {kind}")
        return list(self.data.get(kind, []))

    async def delete(self, kind: str, entity_id: str) -> None:
        self.data[kind] = [row for row in self.data.get(kind, []) if row.get("id") != entity_id]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def transport():
    return ScriptedTransport()


@pytest.fixture
def gateway(transport):
    return CompletionGateway(transport=transport)


@pytest.fixture
def candidates():
    """Three fast candidates in chain order."""
    return [
        ModelCandidate(identifier="model-a", timeout_ms=1000),
        ModelCandidate(identifier="model-b", timeout_ms=1000),
        ModelCandidate(identifier="model-c", timeout_ms=1000),
    ]


@pytest.fixture
def buffer():
    return FakeBuffer("Once upon a time.")


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def text_payload():
    return build_text_payload


@pytest.fixture
def audio_payload():
    return build_audio_payload


@pytest.fixture
def image_payload():
    return build_image_payload


@pytest.fixture
def delayed():
    return Delayed


@pytest.fixture
def make_store():
    return MemoryStore
