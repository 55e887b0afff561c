"""FastAPI app factory + lifespan (startup/shutdown)."""

import logging
import os
import time
from contextlib import asynccontextmanager

import config
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agent.conversation_store import ConversationStore
from agent.errors import AgentError
from agent.llm import AnthropicAdapter
from agent.orchestrator import Orchestrator
from agent.pending_requests import PendingRequestBroker
from agent.tool_registry import build_tool_registry
from content_api import WordPressClient, create_cache
from . import routes

logger = logging.getLogger("gutenberg_agent")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    # Startup
    gateway = AnthropicAdapter(
        config.get_api_key(),
        model=config.MODEL,
        base_url=config.LLM_BASE_URL,
        timeout_ms=config.LLM_TIMEOUT_MS,
        thinking_budget=config.THINKING_BUDGET_TOKENS,
    )
    cache = create_cache(config.REDIS_URL, ttl=config.CACHE_TTL, enabled=config.REDIS_ENABLED)
    await cache.connect()

    content = None
    if config.WORDPRESS_URL:
        content = WordPressClient(
            config.WORDPRESS_URL,
            config.WORDPRESS_USER,
            config.WORDPRESS_APP_PASSWORD,
            cache=cache,
            timeout=config.WORDPRESS_TIMEOUT,
        )
        try:
            await content.test_connection()
        except AgentError as e:
            logger.warning(f"WordPress API not reachable at startup: {e.message}")
    else:
        logger.warning("WORDPRESS_URL is not set; content tools will fail")

    broker = PendingRequestBroker()
    conversations = ConversationStore(
        max_age_hours=config.CONVERSATION_MAX_AGE_HOURS,
        sweep_interval_seconds=config.CONVERSATION_SWEEP_SECONDS,
    )
    registry = build_tool_registry()
    routes.orchestrator = Orchestrator(
        gateway,
        registry,
        broker,
        conversations,
        content=content,
        templates_dir=config.TEMPLATES_DIR,
    )
    routes.conversations = conversations
    routes.broker = broker
    routes._start_time = time.time()
    await broker.start_cleanup_loop()
    await conversations.start_cleanup_loop()
    logger.info(f"Orchestrator ready with {len(registry)} tools")

    yield

    # Shutdown
    await conversations.stop_cleanup_loop()
    await broker.destroy()
    if content is not None:
        await content.close()
    await cache.close()
    await gateway.close()


def _error_body(message: str, exc: AgentError | None = None) -> dict:
    body = {"success": False, "error": message}
    if exc is not None:
        body["kind"] = exc.kind.value
        if exc.details:
            body["details"] = exc.details
    return body


def create_app() -> FastAPI:
    """Build and return the configured FastAPI application."""
    app = FastAPI(
        title="Gutenberg Agent API",
        description="LLM agent that edits WordPress content through Gutenberg blocks",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS - restrict origins in production, allow all in development
    cors_origins = os.getenv("CORS_ORIGINS", "").strip()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins.split(",") if cors_origins else ["*"],
        allow_credentials=bool(cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AgentError)
    async def agent_error_handler(request: Request, exc: AgentError):
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg', 'invalid request')}" if field else "Invalid request"
        return JSONResponse(status_code=400, content=_error_body(message))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content=_error_body("Internal server error"))

    app.include_router(routes.router)
    return app
