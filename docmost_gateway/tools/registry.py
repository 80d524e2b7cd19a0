from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any

import structlog

logger = structlog.get_logger()


class ToolAccess(StrEnum):
    """Whether a tool only reads from Docmost or also writes to it.

    Write tools are hidden and rejected when the gateway runs read-only.
    """

    read = "read"
    write = "write"


@dataclass(frozen=True)
class ToolDescriptor:
    """An advertised tool: unique name, description and parameter type tags.

    Type tags are "string", "object", or a trailing "?" for optional parameters.
    """

    name: str
    description: str
    params: Mapping[str, str] = field(default_factory=dict)
    access: ToolAccess = ToolAccess.read

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    @property
    def mutating(self) -> bool:
        return self.access is ToolAccess.write

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "params": dict(self.params),
        }


TOOL_CATALOG: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name="list_spaces",
        description="Return the spaces available in Docmost.",
    ),
    ToolDescriptor(
        name="list_pages",
        description="List every page inside a space. Requires spaceId.",
        params={"spaceId": "string"},
    ),
    ToolDescriptor(
        name="get_page",
        description="Fetch a page by its id.",
        params={"pageId": "string"},
    ),
    ToolDescriptor(
        name="search_pages",
        description="Full-text search across pages.",
        params={"query": "string"},
    ),
    ToolDescriptor(
        name="create_page",
        description="Create a new page. Requires title, content and spaceId.",
        params={
            "title": "string",
            "content": "string",
            "spaceId": "string",
            "folderId": "string?",
        },
        access=ToolAccess.write,
    ),
    ToolDescriptor(
        name="update_page",
        description="Update an existing page. Requires pageId and the fields to change.",
        params={"pageId": "string", "payload": "object"},
        access=ToolAccess.write,
    ),
)


class ToolRegistry:
    """Catalog lookup plus the advertised tool set, fixed at construction.

    In read-only mode the write tools stay known (so callers get a policy
    error rather than "unknown tool") but are not advertised.
    """

    def __init__(
        self,
        *,
        read_only: bool = False,
        catalog: tuple[ToolDescriptor, ...] = TOOL_CATALOG,
    ) -> None:
        self._catalog: dict[str, ToolDescriptor] = {}
        for tool in catalog:
            if tool.name in self._catalog:
                raise ValueError(f"Tool already registered: {tool.name}")
            self._catalog[tool.name] = tool

        self._read_only = read_only
        self._active: tuple[ToolDescriptor, ...] = tuple(
            tool for tool in catalog if not (read_only and tool.mutating)
        )
        logger.info(
            "tool_registry_built",
            read_only=read_only,
            tools=[tool.name for tool in self._active],
        )

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def tools(self) -> tuple[ToolDescriptor, ...]:
        """Advertised tools, in catalog order."""
        return self._active

    def names(self) -> list[str]:
        return [tool.name for tool in self._active]

    def get(self, name: str) -> ToolDescriptor | None:
        """Look up any catalog tool, advertised or not. None if unknown."""
        return self._catalog.get(name)

    def is_mutating(self, name: str) -> bool:
        tool = self._catalog.get(name)
        return tool is not None and tool.mutating

    def to_payload(self) -> list[dict[str, Any]]:
        """Advertised tools as JSON-ready dicts."""
        return [tool.to_dict() for tool in self._active]
