"""Conversation assembly for a single chat turn.

    load -> seed system prompt (first turn only) -> append user turn
         -> provider call -> append AI turn -> persist -> reply

Persistence failures are logged and never surfaced: by then the reply exists.
Two concurrent turns on the same session id both read the same transcript and
the later write wins.
"""
from typing import Optional

from ai.adapters.providers import BaseProvider
from core.config import DEFAULT_SYSTEM_PROMPT
from core.errors import HistoryUnavailable, StoreUnavailable
from core.logging import logger
from core.memory import Message, Role, SessionStore
from core.monitoring import record_history_write_failure


class ConversationAssembler:
    def __init__(
        self,
        store: SessionStore,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        ttl: Optional[int] = None,
    ):
        self.store = store
        self.system_prompt = system_prompt
        self.ttl = ttl or store.ttl

    async def run(self, session_id: str, provider: BaseProvider, new_message: Message) -> str:
        """Runs one turn against ``provider`` and returns the AI's text."""
        log_ctx = {"session_id": session_id, "provider": provider.name}

        try:
            history = await self.store.get(session_id)
        except StoreUnavailable as e:
            logger.error(f"Error loading history: {e}", extra=log_ctx)
            raise HistoryUnavailable("Internal server error retrieving history") from e

        if not history:
            history.append(Message(role=Role.SYSTEM.value, text=self.system_prompt))

        history.append(new_message)

        ai_text = await provider.complete(list(history))

        history.append(Message(role=Role.AI.value, text=ai_text))

        try:
            await self.store.set(session_id, history, self.ttl)
        except StoreUnavailable as e:
            record_history_write_failure()
            logger.error(f"Error saving history, reply still returned: {e}", extra=log_ctx)
        else:
            logger.debug(f"Saved {len(history)} messages", extra=log_ctx)

        return ai_text
