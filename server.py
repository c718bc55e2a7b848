"""HTTP entry point for the chat gateway.

Run with:
    chat-gateway            (or: python server.py)

Env vars:
    GEMINI_API_KEY, LLAMA_API_KEY, CLAUDE_API_KEY, CHATGPT_API_KEY
    REDIS_ADDR (unset: stateless mode, history is unavailable)
"""
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

import httpx
import prometheus_client as prom
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ai.adapters.registry import ProviderRegistry, build_registry, create_http_client
from ai.adapters.router import ChatRequest, ChatRouter
from ai.conversation import ConversationAssembler
from core.config import Config, load_settings
from core.errors import ConfigError, GatewayError, StoreUnavailable, ValidationError
from core.logging import logger, setup_logging
from core.memory import Message, SessionStore, create_redis_client
from core.monitoring import health_check

# ---------------------------------------------------------------------------
# Pydantic Schemas
# ---------------------------------------------------------------------------


class ContentItem(BaseModel):
    role: str = ""
    text: str = ""


class ChatBody(BaseModel):
    sessionId: str = ""
    modelName: str = ""
    # Holds only the new turn; the server owns the rest of the transcript.
    contents: List[ContentItem] = Field(default_factory=list)


class ChatReply(BaseModel):
    text: str


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    config: Config,
    store: Optional[SessionStore] = None,
    registry: Optional[ProviderRegistry] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Builds the FastAPI app. Store, registry and HTTP client are injectable."""
    http_client = http_client or create_http_client(config.providers.timeout_seconds)
    if store is None:
        store = SessionStore(create_redis_client(config.app), ttl=config.app.CHAT_HISTORY_TTL)
    registry = registry or build_registry(config, http_client)
    assembler = ConversationAssembler(store, config.app.SYSTEM_PROMPT, config.app.CHAT_HISTORY_TTL)
    chat_router = ChatRouter(registry, assembler)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not store.stateless:
            try:
                await store.ping()
            except StoreUnavailable as e:
                logger.critical(f"Failed to connect to Redis at {config.app.REDIS_ADDR}: {e}")
                raise
            logger.info(f"Successfully connected to Redis: {config.app.REDIS_ADDR}")
        yield
        await http_client.aclose()
        await store.close()

    app = FastAPI(title="Chat Gateway", version="1.0.0", lifespan=lifespan)
    app.state.config = config
    app.state.store = store
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"text": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def invalid_payload_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"text": "Invalid request payload"})

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------

    @app.post("/chat", response_model=ChatReply)
    async def chat(body: ChatBody):
        new_message = None
        if body.contents:
            first = body.contents[0]
            new_message = Message(role=first.role, text=first.text)
        return await chat_router.handle(ChatRequest(body.sessionId, body.modelName, new_message))

    @app.get("/chat/history")
    async def chat_history(sessionId: Optional[str] = None):
        if not sessionId:
            raise ValidationError("Missing sessionId query parameter")
        transcript = await store.get(sessionId)
        return [message.model_dump() for message in transcript]

    @app.options("/chat")
    @app.options("/chat/history")
    async def preflight():
        return Response(status_code=200)

    @app.get("/health")
    async def health():
        return await health_check(store)

    @app.get("/metrics")
    async def metrics():
        return Response(prom.generate_latest(), media_type=prom.CONTENT_TYPE_LATEST)

    return app


def main() -> None:
    setup_logging()
    try:
        config = load_settings()
    except ConfigError as e:
        logger.critical(f"FATAL: Could not load configuration. {e}")
        sys.exit(1)

    setup_logging(config.app.LOG_LEVEL, config.app.LOG_DIR)
    app = create_app(config)
    logger.info(f"Server starting on http://{config.app.HOST}:{config.app.PORT}")
    uvicorn.run(app, host=config.app.HOST, port=config.app.PORT, log_config=None)


if __name__ == "__main__":
    main()
