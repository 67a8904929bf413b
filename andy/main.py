"""
FastAPI application — the Andy entry point.

The lifespan hook is the composition root: it loads config, sets up logging,
and builds the one document store, orchestrator and session service the
process uses. Handlers reach them through app.state; nothing is looked up
from module globals.
"""

import logging
import math
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from andy import __version__
from andy.attachments import attachment_from_dict
from andy.backends.base import BaseProvider
from andy.backends.registry import ProviderRegistry
from andy.config import get_config
from andy.errors import AppError, NotFound, RateLimited, ValidationFailed
from andy.orchestrator import ChatOrchestrator
from andy.storage.backends import store_from_config
from andy.storage.session_store import SessionService


def _setup_logging(cfg: dict):
    log_cfg = cfg.get("logging", {})
    level = getattr(logging, str(log_cfg.get("level", "INFO")).upper(), logging.INFO)
    log_file = log_cfg.get("file")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def create_app(
    cfg: dict | None = None,
    providers: ProviderRegistry | dict[str, BaseProvider] | None = None,
) -> FastAPI:
    """
    Build the app. cfg defaults to config.yaml; providers default to the
    ones described in cfg (tests pass fakes).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle."""
        conf = cfg if cfg is not None else get_config()
        _setup_logging(conf)
        logger = logging.getLogger(__name__)

        store = store_from_config(conf)
        app.state.config = conf
        app.state.store = store
        app.state.orchestrator = ChatOrchestrator.from_config(conf, store=store, providers=providers)
        app.state.sessions = SessionService.from_config(conf, store)

        rl = conf.get("rate_limit", {})
        logger.info(
            "Andy started — providers %s, storage %s, rate limit %s/%smin (%s)",
            app.state.orchestrator.providers.names(),
            conf.get("storage", {}).get("backend", "memory"),
            rl.get("max_requests"), rl.get("per_minute"), rl.get("scope", "global"),
        )
        yield
        logger.info("Andy shutting down")

    app = FastAPI(
        title="Andy",
        description="Conversational finance and tax assistant",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        headers = {}
        if isinstance(exc, RateLimited) and exc.retry_after_ms:
            headers["Retry-After"] = str(math.ceil(exc.retry_after_ms / 1000))
        return JSONResponse({"error": exc.to_dict()}, status_code=exc.status, headers=headers)

    # -----------------------------------------------------------------------
    # Chat
    # -----------------------------------------------------------------------

    @app.post("/api/v1/chat")
    async def chat(request: Request):
        """Process one message: {"user_id", "message", "attachments"?}."""
        body = await _json_body(request)
        user_id = str(body.get("user_id") or "")
        message = body.get("message")
        if not isinstance(message, str):
            raise ValidationFailed("Field 'message' must be a string", code="EMPTY_MESSAGE")
        raw_attachments = body.get("attachments") or []
        if not isinstance(raw_attachments, list):
            raise ValidationFailed("Field 'attachments' must be a list", code="INVALID_ATTACHMENT")
        attachments = [attachment_from_dict(a) for a in raw_attachments]

        response = await request.app.state.orchestrator.process_message(user_id, message, attachments)
        return JSONResponse(response.to_dict())

    @app.get("/api/v1/context/{user_id}")
    async def get_context(request: Request, user_id: str):
        ctx = await request.app.state.orchestrator.context_store.get_context(user_id)
        return JSONResponse(ctx.to_dict())

    # -----------------------------------------------------------------------
    # Sessions
    # -----------------------------------------------------------------------

    @app.post("/api/v1/sessions")
    async def create_session(request: Request):
        body = await _json_body(request)
        user_id = str(body.get("user_id") or "")
        if not user_id:
            raise ValidationFailed("Field 'user_id' is required", code="INVALID_USER")
        session = await request.app.state.sessions.create_new_session(
            user_id, body.get("type") or "general"
        )
        return JSONResponse(session.to_dict(), status_code=201)

    @app.get("/api/v1/sessions/{session_id}")
    async def get_session(request: Request, session_id: str):
        session = await request.app.state.sessions.get_session_context(session_id)
        if session is None:
            raise NotFound(f"Session not found: {session_id}")
        return JSONResponse(session.to_dict())

    @app.patch("/api/v1/sessions/{session_id}")
    async def update_session(request: Request, session_id: str):
        body = await _json_body(request)
        sessions: SessionService = request.app.state.sessions
        if await sessions.get_session_context(session_id) is None:
            raise NotFound(f"Session not found: {session_id}")
        await sessions.update_session_context(session_id, body)
        return JSONResponse({"ok": True})

    @app.get("/api/v1/users/{user_id}/sessions")
    async def list_sessions(request: Request, user_id: str):
        sessions = await request.app.state.sessions.get_user_sessions(user_id)
        return JSONResponse({"sessions": [s.to_dict() for s in sessions], "count": len(sessions)})

    # -----------------------------------------------------------------------
    # Ops
    # -----------------------------------------------------------------------

    @app.get("/health")
    async def health(request: Request):
        orchestrator: ChatOrchestrator = request.app.state.orchestrator
        return JSONResponse({
            "status": "ok",
            "version": __version__,
            "providers": await orchestrator.providers.health(),
        })

    @app.get("/api/v1/stats")
    async def stats(request: Request):
        orchestrator: ChatOrchestrator = request.app.state.orchestrator
        return JSONResponse({
            **orchestrator.stats,
            "cache_entries": len(orchestrator.cache),
            "active_users": orchestrator.context_store.user_count(),
            "storage": request.app.state.store.get_stats(),
        })

    return app


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError as e:
        raise ValidationFailed("Request body must be JSON", code="INVALID_BODY") from e
    if not isinstance(body, dict):
        raise ValidationFailed("Request body must be a JSON object", code="INVALID_BODY")
    return body


app = create_app()
