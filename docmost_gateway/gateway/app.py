from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from docmost_gateway.backend.client import DocmostClient
from docmost_gateway.config.settings import PasswordCredential, Settings, load_settings
from docmost_gateway.constants import (
    DISCOVERY_PROTOCOL,
    MAX_BODY_BYTES,
    SERVER_NAME,
    SERVER_VERSION,
)
from docmost_gateway.gateway.dispatch import ToolDispatcher
from docmost_gateway.gateway.protocol import ProtocolAdapter, rpc_error
from docmost_gateway.infra.errors import GatewayBaseError, ValidationError
from docmost_gateway.infra.logging import setup_logging
from docmost_gateway.tools.registry import ToolRegistry

logger = structlog.get_logger()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, Accept",
}

_LOGGED_HEADERS = ("user-agent", "host", "content-type", "x-forwarded-for", "x-forwarded-proto")


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Log stray task failures instead of letting them go unnoticed."""
    logger.error(
        "unhandled_async_error",
        message=context.get("message"),
        exc_info=context.get("exception"),
    )


async def _open_client(settings: Settings) -> DocmostClient:
    """Build the backend client and, without a static token, log in once."""
    credential = settings.docmost.credential
    client = DocmostClient.from_credential(
        settings.docmost.base_url,
        credential,
        timeout_s=settings.docmost.request_timeout_s,
        max_sidebar_pages=settings.docmost.max_sidebar_pages,
    )
    if isinstance(credential, PasswordCredential):
        logger.info("docmost_login_started", email=credential.email)
        try:
            await client.login(credential.email, credential.password)
        except BaseException:
            await client.aclose()
            raise
    return client


router = APIRouter()


def _adapter(request: Request) -> ProtocolAdapter:
    return request.app.state.adapter


async def _read_json(request: Request) -> Any:
    """Decode the request body as JSON. An empty body decodes to {}."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > MAX_BODY_BYTES:
        raise ValidationError("Request body is too large.", code="BODY_TOO_LARGE")
    chunks: list[bytes] = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > MAX_BODY_BYTES:
            raise ValidationError("Request body is too large.", code="BODY_TOO_LARGE")
        chunks.append(chunk)
    raw = b"".join(chunks)
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise ValidationError("The body must be valid JSON.", code="PARSE_ERROR") from e


@router.get("/")
async def index(request: Request) -> dict[str, Any]:
    return {"message": f"{SERVER_NAME} running", "tools": _adapter(request).tools}


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/mcp/tools")
async def list_tools(request: Request) -> dict[str, Any]:
    return {"tools": _adapter(request).tools}


@router.post("/mcp/tool-call")
async def tool_call(request: Request) -> JSONResponse:
    try:
        body = await _read_json(request)
    except GatewayBaseError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    status, payload = await _adapter(request).handle_tool_call(body)
    return JSONResponse(payload, status_code=status)


@router.post("/")
@router.post("/mcp")
async def json_rpc(request: Request) -> JSONResponse:
    try:
        body = await _read_json(request)
    except GatewayBaseError as e:
        logger.warning("rpc_body_rejected", code=e.code, error=str(e))
        return JSONResponse(rpc_error(None, str(e)))
    return JSONResponse(await _adapter(request).handle_envelope(body))


@router.get("/.well-known/mcp")
@router.get("/mcp/.well-known/mcp")
async def discovery(request: Request) -> dict[str, Any]:
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme
    host = request.headers.get("host") or f"0.0.0.0:{request.app.state.settings.gateway.port}"
    base = f"{proto}://{host}"
    return {
        "protocol": DISCOVERY_PROTOCOL,
        "endpoints": {
            "tools": f"{base}/mcp/tools",
            "call": f"{base}/mcp/tool-call",
        },
    }


def create_app(
    settings: Settings | None = None,
    *,
    client: DocmostClient | None = None,
) -> FastAPI:
    """Build the gateway application.

    settings are loaded from the environment at startup when not given.
    A supplied client is used as-is (no login) and is not closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan: settings → backend client (+login) → registry → adapter."""
        active = settings or load_settings()
        setup_logging(
            json_output=active.logging.json_output, log_level=active.logging.level,
        )
        asyncio.get_running_loop().set_exception_handler(_log_loop_exception)

        backend = client or await _open_client(active)

        registry = ToolRegistry(read_only=active.gateway.read_only)
        dispatcher = ToolDispatcher(client=backend, registry=registry)

        app.state.settings = active
        app.state.client = backend
        app.state.registry = registry
        app.state.adapter = ProtocolAdapter(dispatcher)
        logger.info(
            "gateway_started",
            host=active.gateway.host,
            port=active.gateway.port,
            base_url=active.docmost.base_url,
            read_only=registry.read_only,
            tools=registry.names(),
        )
        if registry.read_only:
            logger.info("read_only_mode_enabled", msg="Write tools are not available.")

        yield

        if client is None:
            await backend.aclose()
        logger.info("gateway_stopped")

    app = FastAPI(title="Docmost Gateway", version=SERVER_VERSION, lifespan=lifespan)

    @app.middleware("http")
    async def access_log(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            headers={name: request.headers.get(name) for name in _LOGGED_HEADERS},
        )
        return await call_next(request)

    # Outermost: preflights are answered before access_log and the routes.
    @app.middleware("http")
    async def cors(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)
        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            message = "Route not found"
        elif exc.status_code == 405:
            message = "Method not allowed"
        else:
            message = str(exc.detail)
        return JSONResponse({"error": message}, status_code=exc.status_code)

    app.include_router(router)
    return app


app = create_app()
