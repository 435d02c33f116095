from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse, Response

from .analytics import AnalyticsRecorder, iso_now
from .assistant import AssistantClient
from .cache import ResponseCache
from .config import Settings, load_settings
from .errors import ChatError
from .hardening import IPGate, client_key_from_request, log_event, setup_logging
from .pipeline import ChatPipeline
from .store import KVStore, RestKVStore


@asynccontextmanager
async def lifespan(_app: FastAPI):
    _startup_runtime()
    yield


app = FastAPI(title="Recruiting Chat Gateway", lifespan=lifespan)

SETTINGS: Settings | None = None
GATE: IPGate | None = None
CACHE: ResponseCache | None = None
STORE: KVStore | None = None
RECORDER: AnalyticsRecorder | None = None
ASSISTANT: Any = None


class ChatRequest(BaseModel):
    message: Any = None
    threadId: Optional[str] = None


class ChatResponse(BaseModel):
    reply: str
    threadId: str
    scrollToForm: bool
    cached: bool
    success: bool = True


def _startup_runtime() -> None:
    global SETTINGS, GATE, CACHE, STORE, RECORDER, ASSISTANT
    setup_logging()
    SETTINGS = load_settings()
    GATE = IPGate(
        max_requests=SETTINGS.rl_max_requests,
        window_seconds=SETTINGS.rl_window_seconds,
        ban_seconds=SETTINGS.rl_ban_seconds,
    )
    CACHE = ResponseCache(
        ttl_seconds=SETTINGS.cache_ttl_seconds,
        max_size=SETTINGS.cache_max_size,
        similarity_threshold=SETTINGS.cache_similarity_threshold,
    )
    STORE = None
    if SETTINGS.kv_rest_api_url and SETTINGS.kv_rest_api_token:
        STORE = RestKVStore(SETTINGS.kv_rest_api_url, SETTINGS.kv_rest_api_token)
    RECORDER = AnalyticsRecorder(STORE, prefix=SETTINGS.analytics_prefix)
    ASSISTANT = AssistantClient(
        base_url=SETTINGS.openai_base_url,
        api_key=SETTINGS.openai_api_key,
        assistant_id=SETTINGS.assistant_id,
        model=SETTINGS.assistant_model,
        name=SETTINGS.assistant_name,
        timeout_s=SETTINGS.assistant_timeout_s,
        poll_interval_s=SETTINGS.run_poll_interval_s,
        max_wait_s=SETTINGS.run_max_wait_s,
    )
    log_event(
        "startup_complete",
        analyticsEnabled=STORE is not None,
        assistantPinned=bool(SETTINGS.assistant_id),
        openaiKeyPresent=bool(SETTINGS.openai_api_key),
        rlWindowSeconds=SETTINGS.rl_window_seconds,
        rlMaxRequests=SETTINGS.rl_max_requests,
        rlBanSeconds=SETTINGS.rl_ban_seconds,
        rateLimitingDisabled=SETTINGS.rate_limiting_disabled,
        cacheTtlSeconds=SETTINGS.cache_ttl_seconds,
        cacheMaxSize=SETTINGS.cache_max_size,
        maxMessageLength=SETTINGS.max_message_length,
    )


def _cors_headers() -> dict[str, str]:
    origin = SETTINGS.allowed_origin if SETTINGS is not None else "*"
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Access-Control-Max-Age": "86400",
    }


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    content: dict[str, Any] = {"error": message, "success": False}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


@app.middleware("http")
async def cors_headers_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    response = await call_next(request)
    for key, value in _cors_headers().items():
        response.headers[key] = value
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 405:
        return _error(405, "Method not allowed")
    return _error(exc.status_code, str(exc.detail))


def _health_payload() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    return _health_payload()


@app.get("/health")
async def health() -> dict[str, str]:
    return _health_payload()


@app.options("/chat")
@app.options("/analytics")
async def preflight() -> Response:
    return Response(status_code=200)


def _pipeline() -> ChatPipeline:
    if SETTINGS is None or GATE is None or CACHE is None or RECORDER is None:
        raise RuntimeError("Service not initialized")
    return ChatPipeline(SETTINGS, GATE, CACHE, RECORDER, ASSISTANT)


def _parse_chat_request(body: Any) -> ChatRequest:
    if not isinstance(body, dict):
        return ChatRequest()
    try:
        return ChatRequest.model_validate(body)
    except PydanticValidationError:
        # Unusable threadId; the message still goes through the content filter.
        return ChatRequest(message=body.get("message"))


@app.post("/chat", response_model=ChatResponse)
async def chat(request: Request) -> JSONResponse:
    # Body is parsed by hand so the gate runs before any validation error.
    client_key = client_key_from_request(request.headers, request.client.host if request.client else None)
    try:
        body = await request.json()
    except ValueError:
        body = None
    payload = _parse_chat_request(body)
    thread_id = (payload.threadId or "").strip() or None

    try:
        result = await _pipeline().handle(payload.message, thread_id, client_key)
    except ChatError as exc:
        log_event("chat_error", client=client_key, error=type(exc).__name__, status=exc.status_code, detail=exc.detail)
        return _error(exc.status_code, exc.message)
    except Exception as exc:
        log_event("chat_error", client=client_key, error=type(exc).__name__, detail=str(exc))
        return _error(500, "Failed to process request", details=str(exc))
    response = ChatResponse(
        reply=result.reply,
        threadId=result.thread_id,
        scrollToForm=result.scroll_to_form,
        cached=result.cached,
    )
    return JSONResponse(status_code=200, content=response.model_dump())


@app.get("/analytics")
async def analytics() -> JSONResponse:
    if RECORDER is None or RECORDER.store is None:
        return _error(500, "Analytics store not configured", totalQuestions=0, uniqueQuestions=0, questions=[])
    try:
        report = await RECORDER.list_questions()
    except Exception as exc:
        log_event("analytics_error", error=str(exc), errorType=type(exc).__name__)
        return _error(500, "Failed to fetch analytics", details=str(exc), timestamp=iso_now())

    log_event("analytics_listed", total=report.total, unique=report.unique, truncated=report.truncated)
    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "totalQuestions": report.total,
            "uniqueQuestions": report.unique,
            "questions": report.questions,
            "timestamp": iso_now(),
            "note": "Partial data - limited to prevent timeout" if report.truncated else "Complete data",
        },
    )
