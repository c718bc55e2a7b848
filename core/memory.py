"""Session transcripts kept in Redis.

Each session id is a single key whose value is the JSON array of its
messages. Every write replaces the whole transcript and resets the expiry.
"""
import json
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from core.config import CHAT_HISTORY_TTL, AppSettings
from core.errors import StoreUnavailable
from core.logging import logger


class Role(str, Enum):
    """Canonical message roles."""
    USER = "user"
    AI = "ai"
    SYSTEM = "system"


class Message(BaseModel):
    """A single conversation turn. Roles are not restricted to ``Role``."""
    model_config = ConfigDict(frozen=True)

    role: str
    text: str


Transcript = List[Message]

_transcript_adapter = TypeAdapter(List[Message])


def _redis_url(addr: str, db: int) -> str:
    if "://" in addr:
        return addr
    return f"redis://{addr}/{db}"


def create_redis_client(settings: AppSettings) -> Optional[aioredis.Redis]:
    """Builds a pooled Redis client, or None when no address is configured."""
    if not settings.REDIS_ADDR:
        logger.warning("REDIS_ADDR not set. Running in stateless mode.")
        return None
    return aioredis.Redis.from_url(
        _redis_url(settings.REDIS_ADDR, settings.REDIS_DB),
        password=settings.REDIS_PASSWORD,
        socket_timeout=settings.REDIS_TIMEOUT,
        socket_connect_timeout=settings.REDIS_TIMEOUT,
        decode_responses=True,
    )


class SessionStore:
    def __init__(self, client: Optional[aioredis.Redis], ttl: int = CHAT_HISTORY_TTL):
        self._client = client
        self.ttl = ttl

    @property
    def stateless(self) -> bool:
        return self._client is None

    def _require_client(self) -> aioredis.Redis:
        if self._client is None:
            raise StoreUnavailable("Redis client is not initialized")
        return self._client

    async def ping(self) -> bool:
        client = self._require_client()
        try:
            return bool(await client.ping())
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"redis error on ping: {e}") from e

    async def get(self, session_id: str) -> Transcript:
        """Returns the stored transcript, or an empty one if the key is absent."""
        client = self._require_client()
        try:
            raw = await client.get(session_id)
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"redis error retrieving history: {e}") from e

        if raw is None:
            return []
        try:
            data = json.loads(raw)
            # A JSON null decodes to an empty history.
            if data is None:
                return []
            return _transcript_adapter.validate_python(data)
        except (ValueError, PydanticValidationError) as e:
            raise StoreUnavailable(f"error decoding history for session {session_id!r}: {e}") from e

    async def set(self, session_id: str, transcript: Transcript, ttl: Optional[int] = None) -> None:
        """Overwrites the transcript and (re)sets its expiry."""
        client = self._require_client()
        payload = json.dumps([message.model_dump() for message in transcript], ensure_ascii=False)
        try:
            await client.set(session_id, payload, ex=ttl or self.ttl)
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"redis error saving history: {e}") from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
