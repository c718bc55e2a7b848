import json
import sys
from pathlib import Path

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

# Add project root to the path to allow imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ai.adapters.registry import build_registry
from core.config import AppSettings, Config, ProvidersConfig, load_config
from core.memory import SessionStore


class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis`` with a manual clock."""

    def __init__(self):
        self.data = {}
        self.now = 0.0
        self.fail_reads = False
        self.fail_writes = False
        self.set_calls = []
        self.closed = False

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def get(self, key):
        if self.fail_reads:
            raise RedisConnectionError("Connection refused")
        entry = self.data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self.now >= expires_at:
            del self.data[key]
            return None
        return value

    async def set(self, key, value, ex=None):
        if self.fail_writes:
            raise RedisConnectionError("Connection refused")
        self.set_calls.append((key, value, ex))
        self.data[key] = (value, self.now + ex if ex else None)
        return True

    async def ping(self):
        if self.fail_reads:
            raise RedisConnectionError("Connection refused")
        return True

    async def aclose(self):
        self.closed = True

    def stored(self, key):
        """Decoded transcript stored under ``key`` (ignores expiry)."""
        return json.loads(self.data[key][0])


class ProviderStub:
    """Records outbound provider requests and answers with a canned reply."""

    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.body, (dict, list)):
            return httpx.Response(self.status_code, json=self.body)
        return httpx.Response(self.status_code, text=self.body or "")

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


def gemini_reply(text):
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def openai_reply(text):
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def anthropic_reply(text):
    return {"content": [{"type": "text", "text": text}]}


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def store(fake_redis):
    return SessionStore(fake_redis)


@pytest.fixture
def app_settings():
    return AppSettings(
        _env_file=None,
        GEMINI_API_KEY="test-gemini",
        LLAMA_API_KEY="test-llama",
        CLAUDE_API_KEY="test-claude",
        CHATGPT_API_KEY="test-chatgpt",
        REDIS_ADDR="localhost:6379",
    )


@pytest.fixture
def config(app_settings):
    return Config(app=app_settings, providers=load_config("providers", ProvidersConfig))


@pytest.fixture
def provider_stub():
    return ProviderStub(body=gemini_reply("hello"))


@pytest.fixture
def http_client(provider_stub):
    return httpx.AsyncClient(transport=httpx.MockTransport(provider_stub))


@pytest.fixture
def registry(config, http_client):
    return build_registry(config, http_client)
