"""Tests for ProtocolAdapter: direct tool-call shape and JSON-RPC envelope shape."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from docmost_gateway.backend.client import DocmostClient
from docmost_gateway.constants import ENVELOPE_ERROR_CODE
from docmost_gateway.gateway.dispatch import ToolDispatcher
from docmost_gateway.gateway.protocol import ProtocolAdapter, parse_rpc_request, rpc_error
from docmost_gateway.infra.errors import BackendError, ProtocolError
from docmost_gateway.tools.registry import ToolRegistry


def _make_adapter(*, read_only: bool = False) -> tuple[ProtocolAdapter, MagicMock]:
    client = MagicMock(spec=DocmostClient)
    dispatcher = ToolDispatcher(client=client, registry=ToolRegistry(read_only=read_only))
    return ProtocolAdapter(dispatcher), client


# ---------------------------------------------------------------------------
# Envelope parsing
# ---------------------------------------------------------------------------


class TestParseRpcRequest:
    def test_valid_request(self):
        request = parse_rpc_request({"jsonrpc": "2.0", "method": "list_tools", "id": 7})
        assert request.method == "list_tools"
        assert request.id == 7
        assert request.params is None

    @pytest.mark.parametrize(
        "body",
        [
            {"jsonrpc": "2.0", "id": 1},
            {"method": "list_tools", "id": 1},
            {"jsonrpc": "", "method": "list_tools"},
            ["jsonrpc", "method"],
            "list_tools",
        ],
    )
    def test_malformed_envelope(self, body):
        with pytest.raises(ProtocolError):
            parse_rpc_request(body)

    def test_params_and_id_accept_any_json_value(self):
        request = parse_rpc_request(
            {"jsonrpc": "2.0", "method": "list_tools", "id": 1.5, "params": []},
        )
        assert request.id == 1.5
        assert request.params == []

    def test_rpc_error_shape(self):
        assert rpc_error("abc", "boom") == {
            "jsonrpc": "2.0",
            "id": "abc",
            "error": {"code": ENVELOPE_ERROR_CODE, "message": "boom"},
        }

    def test_rpc_error_echoes_id_verbatim(self):
        assert rpc_error(1.5, "boom")["id"] == 1.5
        assert rpc_error(None, "boom")["id"] is None


# ---------------------------------------------------------------------------
# Envelope handling
# ---------------------------------------------------------------------------


class TestEnvelope:
    @pytest.mark.asyncio
    async def test_list_tools(self):
        adapter, _ = _make_adapter()

        response = await adapter.handle_envelope({"jsonrpc": "2.0", "method": "list_tools", "id": 1})

        assert response == {"jsonrpc": "2.0", "id": 1, "result": {"tools": adapter.tools}}
        assert len(response["result"]["tools"]) == 6

    @pytest.mark.asyncio
    async def test_list_tools_read_only(self):
        adapter, _ = _make_adapter(read_only=True)

        response = await adapter.handle_envelope({"jsonrpc": "2.0", "method": "list_tools", "id": "x"})

        names = [tool["name"] for tool in response["result"]["tools"]]
        assert "create_page" not in names
        assert "update_page" not in names

    @pytest.mark.asyncio
    async def test_initialize(self):
        adapter, _ = _make_adapter()

        response = await adapter.handle_envelope({"jsonrpc": "2.0", "method": "initialize", "id": 0})

        assert response["id"] == 0
        assert response["result"]["capabilities"] == {"tools": {"list": True, "call": True}}
        assert response["result"]["serverInfo"]["name"] == "docmost-gateway"

    @pytest.mark.asyncio
    async def test_call_tool_wraps_content(self):
        adapter, client = _make_adapter()
        client.get_page.return_value = {"id": "p1", "title": "Home"}

        response = await adapter.handle_envelope({
            "jsonrpc": "2.0",
            "method": "call_tool",
            "id": "req-1",
            "params": {"name": "get_page", "arguments": {"pageId": "p1"}},
        })

        assert response == {
            "jsonrpc": "2.0",
            "id": "req-1",
            "result": {"content": {"id": "p1", "title": "Home"}},
        }
        client.get_page.assert_awaited_once_with("p1")

    @pytest.mark.asyncio
    async def test_call_tool_without_arguments(self):
        adapter, client = _make_adapter()
        client.list_spaces.return_value = []

        response = await adapter.handle_envelope({
            "jsonrpc": "2.0", "method": "call_tool", "id": 3, "params": {"name": "list_spaces"},
        })

        assert response["result"] == {"content": []}

    @pytest.mark.asyncio
    async def test_list_tools_ignores_array_params_and_echoes_fractional_id(self):
        adapter, _ = _make_adapter()

        response = await adapter.handle_envelope(
            {"jsonrpc": "2.0", "method": "list_tools", "id": 1.5, "params": []},
        )

        assert response["id"] == 1.5
        assert "error" not in response
        assert response["result"]["tools"][0]["name"] == "list_spaces"

    @pytest.mark.asyncio
    async def test_call_tool_rejects_non_object_params(self):
        adapter, client = _make_adapter()

        response = await adapter.handle_envelope(
            {"jsonrpc": "2.0", "method": "call_tool", "id": 4, "params": [1, 2]},
        )

        assert response["id"] == 4
        assert response["error"] == {
            "code": ENVELOPE_ERROR_CODE, "message": "call_tool params must be an object.",
        }
        client.list_spaces.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_method_uses_fixed_code_and_echoes_id(self):
        adapter, _ = _make_adapter()

        response = await adapter.handle_envelope({"jsonrpc": "2.0", "id": 5})

        assert response["id"] == 5
        assert response["error"]["code"] == ENVELOPE_ERROR_CODE
        assert "result" not in response

    @pytest.mark.asyncio
    async def test_unknown_method_named_in_error(self):
        adapter, _ = _make_adapter()

        response = await adapter.handle_envelope({"jsonrpc": "2.0", "method": "tools/destroy", "id": 9})

        assert response["error"] == {
            "code": ENVELOPE_ERROR_CODE,
            "message": "Unknown JSON-RPC method: tools/destroy",
        }

    @pytest.mark.asyncio
    async def test_policy_error_surfaced_in_envelope(self):
        adapter, client = _make_adapter(read_only=True)

        response = await adapter.handle_envelope({
            "jsonrpc": "2.0",
            "method": "call_tool",
            "id": 2,
            "params": {"name": "create_page", "arguments": {"title": "T", "content": "C", "spaceId": "s"}},
        })

        assert response["error"]["code"] == ENVELOPE_ERROR_CODE
        assert "READ_ONLY" in response["error"]["message"]
        client.create_page.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_tool_surfaced_in_envelope(self):
        adapter, _ = _make_adapter()

        response = await adapter.handle_envelope({
            "jsonrpc": "2.0", "method": "call_tool", "id": 2, "params": {"name": "nope"},
        })

        assert response["error"]["message"] == "Unknown tool: nope"

    @pytest.mark.asyncio
    async def test_backend_error_surfaced_in_envelope(self):
        adapter, client = _make_adapter()
        client.list_spaces.side_effect = BackendError("Docmost returned 500: boom", status=500)

        response = await adapter.handle_envelope({
            "jsonrpc": "2.0", "method": "call_tool", "id": 4, "params": {"name": "list_spaces"},
        })

        assert response["error"]["message"] == "Docmost returned 500: boom"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic(self):
        adapter, client = _make_adapter()
        client.list_spaces.side_effect = RuntimeError("secret detail")

        response = await adapter.handle_envelope({
            "jsonrpc": "2.0", "method": "call_tool", "id": 4, "params": {"name": "list_spaces"},
        })

        assert response["error"]["message"] == "An internal error occurred"
        assert "secret" not in response["error"]["message"]

    @pytest.mark.asyncio
    async def test_non_object_body(self):
        adapter, _ = _make_adapter()

        response = await adapter.handle_envelope([1, 2, 3])

        assert response["id"] is None
        assert response["error"]["code"] == ENVELOPE_ERROR_CODE


# ---------------------------------------------------------------------------
# Direct shape
# ---------------------------------------------------------------------------


class TestDirectToolCall:
    @pytest.mark.asyncio
    async def test_success(self):
        adapter, client = _make_adapter()
        client.search_pages.return_value = [{"id": "p1"}]

        status, payload = await adapter.handle_tool_call(
            {"tool": "search_pages", "params": {"query": "roadmap"}},
        )

        assert status == 200
        assert payload == {"result": [{"id": "p1"}]}

    @pytest.mark.asyncio
    async def test_missing_tool(self):
        adapter, _ = _make_adapter()

        status, payload = await adapter.handle_tool_call({"params": {}})

        assert status == 400
        assert payload == {"error": 'The "tool" field is required.'}

    @pytest.mark.asyncio
    async def test_read_only_rejection(self):
        adapter, _ = _make_adapter(read_only=True)

        status, payload = await adapter.handle_tool_call(
            {"tool": "update_page", "params": {"pageId": "p1", "payload": {}}},
        )

        assert status == 400
        assert "READ_ONLY" in payload["error"]

    @pytest.mark.asyncio
    async def test_non_object_body(self):
        adapter, _ = _make_adapter()

        status, payload = await adapter.handle_tool_call("list_spaces")

        assert status == 400
        assert "JSON object" in payload["error"]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_500(self):
        adapter, client = _make_adapter()
        client.list_spaces = AsyncMock(side_effect=KeyError("boom"))

        status, payload = await adapter.handle_tool_call({"tool": "list_spaces"})

        assert status == 500
        assert payload == {"error": "An internal error occurred"}
