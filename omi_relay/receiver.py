"""FastAPI webhook receiver for Omi transcript events.

Omi sends: POST /omi-webhook
Body: {"session_id": "...", "segments": [{"text": "...", "speaker": "SPEAKER_00",
       "start": 10.0, "end": 15.0}]}
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from omi_relay.config import load_config, missing_credentials
from omi_relay.errors import RelayError, RequestValidationFailed
from omi_relay.models import WebhookPayload
from omi_relay.relay import Relay, help_guide

logger = logging.getLogger(__name__)

MISSING_FIELDS = "Missing required fields: session_id and segments array are required"


def _parse_payload(data) -> WebhookPayload:
    try:
        return WebhookPayload.model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise RequestValidationFailed(MISSING_FIELDS, {"fields": fields}) from e


def create_app(config: dict | None = None, relay: Relay | None = None) -> FastAPI:
    """Build the app. ``relay`` is wired from ``config`` unless given."""
    config = config if config is not None else load_config()
    relay = relay or Relay.from_config(config)
    started_at = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for name in missing_credentials(config):
            logger.warning(f"{name} environment variable is not set")
        logger.info("Server ready to receive Omi webhooks")
        yield
        await relay.close()

    app = FastAPI(title="Omi AI Relay", version="0.1.0", lifespan=lifespan)
    app.state.relay = relay
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Error handlers ──────────────────────────────────────────────

    @app.exception_handler(RelayError)
    async def relay_error(request: Request, exc: RelayError):
        if exc.status_code >= 500:
            logger.error(f"[ERROR] {request.url.path}: {exc.message} {exc.details}")
        else:
            logger.warning(f"[ERROR] {request.url.path}: {exc.message}")
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse({"error": "Not Found", "message": "Endpoint not found"}, status_code=404)
        return JSONResponse({"error": str(exc.detail), "message": str(exc.detail)}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(
            {"error": "Internal Server Error", "message": "Something went wrong on the server"},
            status_code=500,
        )

    # ── Routes ──────────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        detector = relay.detector
        oc = config.get("openai", {})
        limiter = relay.rate_limiter
        return {
            "status": "OK",
            "message": "Omi AI Chat Plugin is running",
            "uptime_seconds": round(time.time() - started_at, 1),
            "wake_phrases": detector.wake_phrases,
            "help_keywords": detector.help_keywords,
            "trigger_policy": detector.policy.value,
            "extraction_policy": relay.extractor.policy.value,
            "api": {
                "provider": "openai",
                "model": oc.get("model"),
                "max_tokens": oc.get("max_tokens"),
                "temperature": oc.get("temperature"),
                "assistant_mode": bool(oc.get("assistant_id")),
                "tools": ["web_search"] if oc.get("assistant_id") else [],
            },
            "rate_limiting": {
                "enabled": limiter is not None,
                "max_requests": limiter.max_requests if limiter is not None else None,
                "window_seconds": limiter.window_seconds if limiter is not None else None,
            },
            "memory": {"enabled": relay.memory_store is not None},
            "conversation_context": {
                "max_turns": relay.context_store.max_turns,
                "active_sessions": len(relay.context_store),
            },
        }

    @app.get("/help")
    async def help_endpoint():
        return help_guide(relay.detector)

    @app.get("/conversation/{session_id}")
    async def conversation(session_id: str):
        history = await relay.context_store.get(session_id)
        return {
            "session_id": session_id,
            "conversation_history": [t.to_dict() for t in history],
            "message_count": len(history),
            "has_context": bool(history),
        }

    @app.get("/rate-limit/{user_id}")
    async def rate_limit(user_id: str):
        if relay.rate_limiter is None:
            return {"user_id": user_id, "enabled": False}
        return {"enabled": True, **relay.rate_limiter.status(user_id).to_dict()}

    @app.post("/omi-webhook")
    async def omi_webhook(request: Request):
        try:
            data = await request.json()
        except ValueError:
            raise RequestValidationFailed("Request body must be valid JSON")
        payload = _parse_payload(data)
        return await relay.handle(payload)

    return app
