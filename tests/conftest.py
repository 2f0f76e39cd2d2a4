"""Shared pytest fixtures for relay tests."""

import copy
import hashlib
import math
import os
import re
import sys

import pytest

# Ensure the package is importable without installation
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from omi_relay.config import DEFAULT_CONFIG


class FakeCompletion:
    """Stands in for CompletionClient; records every call."""

    def __init__(self, answer="The answer is 4."):
        self.answer = answer
        self.calls: list[tuple[str, list]] = []
        self.closed = False

    async def complete(self, question, context=None):
        self.calls.append((question, list(context or [])))
        if isinstance(self.answer, Exception):
            raise self.answer
        return self.answer

    async def close(self):
        self.closed = True


class FakeNotifier:
    """Stands in for NotificationDispatcher; records every message."""

    def __init__(self, status=200):
        self.status = status
        self.sent: list[tuple[str, str]] = []
        self.closed = False

    async def send(self, user_id, message):
        self.sent.append((user_id, message))
        if isinstance(self.status, Exception):
            raise self.status
        return self.status

    async def close(self):
        self.closed = True


class FakeEmbedder:
    """Bag-of-words hashing embedder: texts sharing words land close together."""

    dim = 64

    def __init__(self):
        self.calls: list[str] = []

    def vector(self, text):
        vec = [0.0] * self.dim
        for word in re.findall(r"[a-z0-9']+", text.lower()):
            idx = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dim
            vec[idx] += 1.0
        norm = math.sqrt(sum(v * v for v in vec)) or 1.0
        return [v / norm for v in vec]

    async def embed(self, text):
        self.calls.append(text)
        return self.vector(text)


@pytest.fixture
def config(tmp_path):
    """Config with credentials set and storage under tmp_path."""
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["openai"]["api_key"] = "sk-test"
    cfg["omi"]["app_id"] = "app-123"
    cfg["omi"]["app_secret"] = "secret-xyz"
    cfg["memory"]["db_path"] = str(tmp_path / "memories")
    return cfg


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def memory_store(tmp_path, embedder):
    from omi_relay.memory_store import MemoryStore
    return MemoryStore(db_path=str(tmp_path / "memories"), embedder=embedder)


@pytest.fixture
def relay(config, completion, notifier):
    """Relay with fake completion/notification and no memory store."""
    from omi_relay.relay import Relay
    return Relay.from_config(config, completion=completion, notifier=notifier, memory_store=None)


@pytest.fixture
def client(config, relay):
    from fastapi.testclient import TestClient
    from omi_relay.receiver import create_app
    return TestClient(create_app(config, relay=relay))
