from __future__ import annotations

from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from docmost_gateway.constants import (
    ENVELOPE_ERROR_CODE,
    JSONRPC_VERSION,
    SERVER_NAME,
    SERVER_VERSION,
)
from docmost_gateway.gateway.dispatch import ToolDispatcher
from docmost_gateway.infra.errors import GatewayBaseError, ProtocolError, ValidationError

logger = structlog.get_logger()

INTERNAL_ERROR_MESSAGE = "An internal error occurred"

RequestId = Any


class RPCRequest(BaseModel):
    """JSON-RPC style envelope. method determines which params to expect."""

    model_config = ConfigDict(extra="ignore")

    jsonrpc: str = Field(min_length=1)
    method: str = Field(min_length=1)
    id: RequestId = None
    params: Any = None


class CallToolParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    arguments: Any = None


class RPCResult(BaseModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId = None
    result: Any


class RPCErrorData(BaseModel):
    code: int
    message: str


class RPCError(BaseModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId = None
    error: RPCErrorData


def rpc_error(request_id: Any, message: str) -> dict[str, Any]:
    """Envelope error response. Every envelope failure uses the same code."""
    return RPCError(
        id=request_id,
        error=RPCErrorData(code=ENVELOPE_ERROR_CODE, message=message),
    ).model_dump()


def parse_rpc_request(body: Any) -> RPCRequest:
    """Validate a decoded JSON body as an envelope.

    Raises ProtocolError when the body is not an object, or jsonrpc/method are missing.
    """
    if not isinstance(body, dict):
        raise ProtocolError("Invalid JSON-RPC request: body must be a JSON object.")
    if not body.get("jsonrpc") or not body.get("method"):
        raise ProtocolError("Invalid JSON-RPC request: jsonrpc and method are required.")
    try:
        return RPCRequest.model_validate(body)
    except PydanticValidationError as e:
        raise ProtocolError(f"Invalid JSON-RPC request: {e}") from e


class ProtocolAdapter:
    """Translates the two inbound request shapes into dispatcher calls.

    Direct shape:   {"tool": ..., "params": {...}} → {"result": ...} | {"error": ...}
    Envelope shape: {"jsonrpc", "method", "id", "params"} → {"jsonrpc", "id", "result" | "error"}
    """

    def __init__(self, dispatcher: ToolDispatcher) -> None:
        self._dispatcher = dispatcher

    @property
    def tools(self) -> list[dict[str, Any]]:
        return self._dispatcher.registry.to_payload()

    async def handle_tool_call(self, body: Any) -> tuple[int, dict[str, Any]]:
        """Return (http_status, payload) for a direct-shape request."""
        try:
            if not isinstance(body, dict):
                raise ValidationError("Request body must be a JSON object.")
            result = await self._dispatcher.dispatch(body.get("tool"), body.get("params"))
        except GatewayBaseError as e:
            logger.warning("tool_call_error", code=e.code, error=str(e))
            return 400, {"error": str(e)}
        except Exception:
            logger.exception("tool_call_unhandled_error")
            return 500, {"error": INTERNAL_ERROR_MESSAGE}
        return 200, {"result": result}

    async def handle_envelope(self, body: Any) -> dict[str, Any]:
        """Return the envelope response for a JSON-RPC style request. Never raises."""
        request_id = body.get("id") if isinstance(body, dict) else None
        try:
            request = parse_rpc_request(body)
            result = await self._call_method(request)
        except GatewayBaseError as e:
            logger.warning("rpc_error", code=e.code, error=str(e), request_id=request_id)
            return rpc_error(request_id, str(e))
        except Exception:
            logger.exception("rpc_unhandled_error", request_id=request_id)
            return rpc_error(request_id, INTERNAL_ERROR_MESSAGE)
        return RPCResult(id=request.id, result=result).model_dump()

    async def _call_method(self, request: RPCRequest) -> Any:
        if request.method == "initialize":
            return {
                "capabilities": {"tools": {"list": True, "call": True}},
                "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            }
        if request.method == "list_tools":
            return {"tools": self.tools}
        if request.method == "call_tool":
            if request.params is not None and not isinstance(request.params, dict):
                raise ValidationError("call_tool params must be an object.")
            try:
                call = CallToolParams.model_validate(request.params or {})
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid call_tool params: {e}") from e
            result = await self._dispatcher.dispatch(call.name, call.arguments)
            return {"content": result}
        raise ProtocolError(
            f"Unknown JSON-RPC method: {request.method}", code="METHOD_NOT_FOUND",
        )
