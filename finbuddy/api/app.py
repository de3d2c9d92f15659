"""
HTTP API for the Advisors

Each advisor is exposed at POST /functions/<route>, the same paths the
web client already calls. The caller's session token arrives in the
Authorization header; the user id comes only from that token.

Error mapping:
- AuthenticationError   -> 401 {"error": "No authorization header" | "Unauthorized"}
- RateLimitedError      -> 429 {"error": "Rate limit exceeded. Please try again in a moment."}
- PaymentRequiredError  -> 402 {"error": "AI service requires payment. Please contact support."}
- SpeechServiceError    -> its own status (401 bad key, 429, else 500)
- malformed request body -> 400
- anything else         -> 500 {"error": <message>}

Nothing is retried.
"""

from typing import Any, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from finbuddy import __version__
from finbuddy.audit import AuditLogger
from finbuddy.config import get_settings
from finbuddy.orchestrator import AppComponents, create_app_components
from finbuddy.services.auth import AuthenticationError
from finbuddy.services.llm import LLMServiceError, PaymentRequiredError, RateLimitedError
from finbuddy.services.speech import SpeechRequest, SpeechService, SpeechServiceError
from finbuddy.services.storage import StorageError

logger = structlog.get_logger(__name__)


def error_response(error: Exception) -> JSONResponse:
    """Translate an exception into the JSON error body the client expects."""
    if isinstance(error, AuthenticationError):
        status = 401
    elif isinstance(error, (RateLimitedError, PaymentRequiredError, SpeechServiceError)):
        status = error.status_code
    elif isinstance(error, ValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request",
                "details": error.errors(include_url=False, include_context=False, include_input=False),
            },
        )
    else:
        status = 500

    if status == 500:
        if isinstance(error, (StorageError, LLMServiceError, SpeechServiceError)):
            logger.error("function_failed", error_type=type(error).__name__, error=str(error))
        else:
            logger.exception("function_crashed", error=str(error))

    return JSONResponse(status_code=status, content={"error": str(error) or "Unknown error"})


async def audit_failure(audit_logger: AuditLogger, error: Exception, user_id: str, route: str) -> None:
    """
    Record failures the advisors do not already describe.

    Gateway errors are covered by advisor_failed; storage and speech
    outages and crashes get their own event so they stand out in the
    audit sheet.
    """
    if isinstance(error, StorageError):
        await audit_logger.log_external_service_error("google_sheets", str(error), user_id=user_id)
    elif isinstance(error, SpeechServiceError):
        await audit_logger.log_external_service_error("elevenlabs", str(error), user_id=user_id)
    elif not isinstance(error, (LLMServiceError, ValidationError)):
        await audit_logger.log_error(
            type(error).__name__,
            str(error),
            details={"function": route},
            user_id=user_id,
        )


async def read_payload(request: Request) -> Optional[dict]:
    """Request body as a dict, or None when there is none."""
    body = await request.body()
    if not body:
        return None
    try:
        payload = await request.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


async def speak(speech: SpeechService, payload: Optional[dict]) -> JSONResponse:
    """Synthesize the requested text; the audio comes back base64-encoded."""
    request = SpeechRequest.model_validate(payload or {})
    if not request.text.strip():
        return JSONResponse(status_code=400, content={"error": "Text is required"})
    audio = await speech.synthesize(request.text, request.voice_id)
    return JSONResponse(content={"audioContent": audio})


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        components: Pre-built components (tests inject in-memory storage
            and a fake gateway). Built from settings when omitted.
    """
    components = components or create_app_components()
    settings = get_settings().app

    app = FastAPI(title="FinBuddy", version=__version__)
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "version": __version__,
            "functions": sorted([
                *components.advisors,
                components.assistant.route,
                components.speech.route,
            ]),
        }

    @app.post("/functions/{route}")
    async def call_function(
        route: str,
        request: Request,
        authorization: Optional[str] = Header(None),
    ):
        advisor = components.advisor(route)
        if advisor is None and route not in (components.assistant.route, components.speech.route):
            return JSONResponse(status_code=404, content={"error": f"Unknown function: {route}"})

        try:
            user = components.verifier.verify(authorization)
        except AuthenticationError as e:
            await components.audit_logger.log_auth_failed(str(e))
            return error_response(e)

        payload = await read_payload(request)
        try:
            if route == components.speech.route:
                return await speak(components.speech, payload)
            if advisor is None:
                lines = await components.assistant.stream(user.user_id, payload)
                return StreamingResponse(lines, media_type="text/event-stream")
            return JSONResponse(content=await advisor.run(user.user_id, payload))
        except Exception as e:
            await audit_failure(components.audit_logger, e, user.user_id, route)
            return error_response(e)

    return app


def main() -> None:
    """Run the API with uvicorn."""
    settings = get_settings().app
    uvicorn.run(
        "finbuddy.api.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.debug_mode,
    )


if __name__ == "__main__":
    main()
