"""AI Provider Adapters for different LLM services.

Every adapter turns a canonical transcript into one provider's request body,
posts it, and pulls the first reply text out of the provider's envelope.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx

from core.config import ProviderConfig
from core.errors import ConfigError, UpstreamError, UpstreamParseError
from core.logging import logger
from core.memory import Role, Transcript

DEFAULT_TIMEOUT = 30.0


class BaseProvider(ABC):
    """Base class for AI providers."""

    name: str = ""
    # Canonical role -> provider role. Roles missing here are never sent.
    role_map: Dict[str, str] = {
        Role.USER.value: "user",
        Role.AI.value: "assistant",
        Role.SYSTEM.value: "user",
    }

    def __init__(
        self,
        settings: ProviderConfig,
        api_key: Optional[str],
        client: httpx.AsyncClient,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.settings = settings
        self.api_key = api_key
        self.base_url = settings.base_url.rstrip("/")
        self.model = settings.model
        self.timeout = timeout
        self._client = client

    # ------------------------------------------------------------------
    # translate
    # ------------------------------------------------------------------
    def map_roles(self, transcript: Transcript) -> List[Tuple[str, str]]:
        """Returns ``(provider_role, text)`` pairs, skipping unknown roles."""
        mapped = []
        for message in transcript:
            role = self.role_map.get(message.role)
            if role is None:
                logger.warning(
                    f"Skipping message with invalid role for {self.name}: {message.role!r}",
                    extra={"provider": self.name},
                )
                continue
            mapped.append((role, message.text))
        return mapped

    @abstractmethod
    def build_payload(self, transcript: Transcript) -> Dict[str, Any]:
        """Builds the provider-specific request body."""

    @abstractmethod
    def endpoint(self) -> str:
        """Returns the URL the request is posted to."""

    @abstractmethod
    def headers(self) -> Dict[str, str]:
        """Returns the authentication headers for the request."""

    # ------------------------------------------------------------------
    # extract
    # ------------------------------------------------------------------
    @abstractmethod
    def extract_text(self, data: Any) -> str:
        """Pulls the first candidate's text out of the decoded reply."""

    # ------------------------------------------------------------------
    # call
    # ------------------------------------------------------------------
    async def complete(self, transcript: Transcript) -> str:
        """Sends the transcript to the provider and returns the reply text."""
        if not self.api_key:
            raise ConfigError(f"{self.settings.api_key_env} environment variable not set")

        payload = self.build_payload(transcript)
        headers = {"Content-Type": "application/json", **self.headers()}
        logger.debug(
            f"Calling {self.name} ({self.model}) with {len(transcript)} messages",
            extra={"provider": self.name, "model": self.model},
        )

        try:
            response = await self._client.post(
                self.endpoint(),
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"{self.name} API request failed: {e!r}", extra={"provider": self.name})
            raise UpstreamError(self.name, None, str(e) or type(e).__name__) from e

        if not response.is_success:
            logger.error(
                f"{self.name} API returned status code {response.status_code}",
                extra={"provider": self.name},
            )
            raise UpstreamError(self.name, response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamParseError(self.name, f"invalid JSON body: {e}") from e

        return self.extract_text(data)

    def _require_text(self, value: Any) -> str:
        if not isinstance(value, str):
            raise UpstreamParseError(self.name, f"expected text, got {type(value).__name__}")
        return value


class GeminiProvider(BaseProvider):
    """Google Gemini ``generateContent`` API."""

    name = "gemini"
    role_map = {
        Role.USER.value: "user",
        Role.AI.value: "model",
        Role.SYSTEM.value: "user",
    }

    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.api_key}

    def build_payload(self, transcript: Transcript) -> Dict[str, Any]:
        return {
            "contents": [
                {"role": role, "parts": [{"text": text}]}
                for role, text in self.map_roles(transcript)
            ],
            "generationConfig": dict(self.settings.generation),
        }

    def extract_text(self, data: Any) -> str:
        try:
            candidates = data["candidates"]
            parts = candidates[0]["content"]["parts"]
            return self._require_text(parts[0]["text"])
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamParseError(self.name, f"missing candidates[0].content.parts[0].text ({e!r})") from e


class OpenAICompatibleProvider(BaseProvider):
    """Providers speaking the OpenAI ``chat/completions`` dialect."""

    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def build_payload(self, transcript: Transcript) -> Dict[str, Any]:
        return {
            **self.settings.generation,
            "model": self.model,
            "messages": [
                {"role": role, "content": text}
                for role, text in self.map_roles(transcript)
            ],
        }

    def extract_text(self, data: Any) -> str:
        try:
            return self._require_text(data["choices"][0]["message"]["content"])
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamParseError(self.name, f"missing choices[0].message.content ({e!r})") from e


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI API provider (GPT-4o, etc.)."""
    name = "chatgpt"


class PerplexityProvider(OpenAICompatibleProvider):
    """Perplexity API provider serving Llama models."""
    name = "llama"


class AnthropicProvider(BaseProvider):
    """Anthropic Messages API provider (Claude 3 Opus, Sonnet, etc.)."""

    name = "claude"
    api_version = "2023-06-01"

    def endpoint(self) -> str:
        return f"{self.base_url}/messages"

    def headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
        }

    def build_payload(self, transcript: Transcript) -> Dict[str, Any]:
        payload = {"max_tokens": 1024, **self.settings.generation}
        payload["model"] = self.model
        payload["messages"] = [
            {"role": role, "content": text}
            for role, text in self.map_roles(transcript)
        ]
        return payload

    def extract_text(self, data: Any) -> str:
        try:
            return self._require_text(data["content"][0]["text"])
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamParseError(self.name, f"missing content[0].text ({e!r})") from e


# Model identifier -> adapter class
PROVIDER_TYPES = {
    "gemini": GeminiProvider,
    "llama": PerplexityProvider,
    "claude": AnthropicProvider,
    "chatgpt": OpenAIProvider,
}


def create_provider(
    provider_type: str,
    settings: ProviderConfig,
    api_key: Optional[str],
    client: httpx.AsyncClient,
    timeout: float = DEFAULT_TIMEOUT,
) -> BaseProvider:
    """Create a provider instance by type."""
    provider_class = PROVIDER_TYPES.get(provider_type.lower())
    if not provider_class:
        raise ConfigError(f"Unknown provider type: {provider_type}")

    return provider_class(settings, api_key, client, timeout=timeout)
