"""Core dispatch: tool lookup → read-only policy → parameter extraction → backend call.

Shared by both inbound shapes (direct tool-call and JSON-RPC envelope).
Unknown tools and bad parameters raise ValidationError; write tools in
read-only mode raise PolicyError before any parameter is looked at.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog

from docmost_gateway.backend.client import DocmostClient
from docmost_gateway.infra.errors import PolicyError, ValidationError
from docmost_gateway.tools.registry import ToolRegistry

logger = structlog.get_logger()

ToolHandler = Callable[[DocmostClient, Mapping[str, Any]], Awaitable[Any]]


async def _list_spaces(client: DocmostClient, params: Mapping[str, Any]) -> Any:
    return await client.list_spaces()


async def _list_pages(client: DocmostClient, params: Mapping[str, Any]) -> Any:
    return await client.list_pages(params.get("spaceId"))


async def _get_page(client: DocmostClient, params: Mapping[str, Any]) -> Any:
    return await client.get_page(params.get("pageId"))


async def _search_pages(client: DocmostClient, params: Mapping[str, Any]) -> Any:
    return await client.search_pages(params.get("query"))


async def _create_page(client: DocmostClient, params: Mapping[str, Any]) -> Any:
    return await client.create_page(
        title=params.get("title"),
        content=params.get("content"),
        space_id=params.get("spaceId"),
        folder_id=params.get("folderId"),
    )


async def _update_page(client: DocmostClient, params: Mapping[str, Any]) -> Any:
    return await client.update_page(params.get("pageId"), params.get("payload"))


# Keys must match the names in tools.registry.TOOL_CATALOG.
TOOL_HANDLERS: Mapping[str, ToolHandler] = {
    "list_spaces": _list_spaces,
    "list_pages": _list_pages,
    "get_page": _get_page,
    "search_pages": _search_pages,
    "create_page": _create_page,
    "update_page": _update_page,
}


class ToolDispatcher:
    """Routes a tool name + params to the matching DocmostClient call."""

    def __init__(
        self,
        *,
        client: DocmostClient,
        registry: ToolRegistry,
        handlers: Mapping[str, ToolHandler] = TOOL_HANDLERS,
    ) -> None:
        self._client = client
        self._registry = registry
        self._handlers = handlers

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def dispatch(self, tool_name: str | None, params: Any = None) -> Any:
        """Run one tool call and return the backend result.

        Raises ValidationError, PolicyError, or whatever the backend call raises.
        """
        # 1. Tool lookup
        if not tool_name:
            raise ValidationError('The "tool" field is required.')
        if not isinstance(tool_name, str):
            raise ValidationError(f"Tool name must be a string (got {type(tool_name).__name__}).")
        descriptor = self._registry.get(tool_name)
        handler = self._handlers.get(tool_name)
        if descriptor is None or handler is None:
            raise ValidationError(f"Unknown tool: {tool_name}", code="UNKNOWN_TOOL")

        # 2. Read-only policy
        if self._registry.read_only and descriptor.mutating:
            logger.info("tool_denied_read_only", tool=tool_name)
            raise PolicyError()

        # 3. Parameters
        if params is None:
            params = {}
        if not isinstance(params, Mapping):
            raise ValidationError(
                f"params must be an object (got {type(params).__name__})."
            )

        logger.info("tool_dispatched", tool=tool_name, params=sorted(params))
        return await handler(self._client, params)
