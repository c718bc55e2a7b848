"""Request router: validates a canonical chat request and dispatches it.

The router owns no state. It picks the adapter for ``modelName`` from the
registry before anything touches the session store, then hands the turn to
the conversation assembler.
"""
from dataclasses import dataclass
from typing import Dict, Optional

from ai.adapters.registry import ProviderRegistry
from ai.conversation import ConversationAssembler
from core.errors import (
    GatewayError,
    UnknownModel,
    UpstreamError,
    UpstreamParseError,
    ValidationError,
)
from core.logging import logger
from core.memory import Message, Role
from core.monitoring import record_request, record_upstream_error

__all__ = ["ChatRequest", "ChatRouter"]


@dataclass
class ChatRequest:
    """Canonical chat request."""
    session_id: str
    model_name: str
    new_message: Optional[Message]


class ChatRouter:
    def __init__(self, registry: ProviderRegistry, assembler: ConversationAssembler) -> None:
        self._registry = registry
        self._assembler = assembler

    @staticmethod
    def validate(request: ChatRequest) -> Message:
        """Checks required fields and returns the message to append."""
        if not request.session_id or not request.session_id.strip():
            raise ValidationError("Missing sessionId or message content")
        message = request.new_message
        if message is None or not message.text:
            raise ValidationError("Missing sessionId or message content")
        if not message.role or not message.role.strip():
            message = Message(role=Role.USER.value, text=message.text)
        return message

    async def handle(self, request: ChatRequest) -> Dict[str, str]:
        try:
            message = self.validate(request)
            provider = self._registry.get(request.model_name)
        except (ValidationError, UnknownModel) as e:
            # Keep metric labels bounded to configured identifiers.
            model = request.model_name if request.model_name in self._registry else "unknown"
            record_request(model, "rejected")
            logger.info(f"Rejected chat request: {e}", extra={"session_id": request.session_id})
            raise

        logger.info(
            f"Chat turn: model={request.model_name}",
            extra={"session_id": request.session_id, "provider": provider.name},
        )
        try:
            text = await self._assembler.run(request.session_id, provider, message)
        except UpstreamParseError:
            record_upstream_error(provider.name, "parse")
            record_request(request.model_name, "error")
            raise
        except UpstreamError as e:
            record_upstream_error(provider.name, "http" if e.status is not None else "transport")
            record_request(request.model_name, "error")
            raise
        except GatewayError:
            record_request(request.model_name, "error")
            raise

        record_request(request.model_name, "ok")
        return {"text": text}
