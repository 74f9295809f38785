"""Dispatch of tool invocations to the Ollama backend."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import TypeAdapter

from ollama_mcp.exceptions import ToolArgumentError, UnknownTool
from ollama_mcp.ollama.client import OllamaBackend
from ollama_mcp.ollama.types import ChatMessage
from ollama_mcp.tools.catalog import CHAT, DELETE_MODEL, GENERATE, LIST_MODELS, PULL_MODEL, TOOLS
from ollama_mcp.types.tools import CallToolResult, TextContent, Tool

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Mapping[str, Any]], Awaitable[str]]

_messages_adapter: TypeAdapter[list[ChatMessage]] = TypeAdapter(list[ChatMessage])


class ToolRegistry:
    """The fixed tool catalog bound to one backend.

    ``invoke`` raises on failure; converting failures into error results is
    the caller's job.
    """

    def __init__(self, backend: OllamaBackend) -> None:
        self.backend = backend
        self._tools: dict[str, Tool] = {tool.name: tool for tool in TOOLS}
        self._handlers: dict[str, ToolHandler] = {
            LIST_MODELS.name: self._list_models,
            CHAT.name: self._chat,
            GENERATE.name: self._generate,
            PULL_MODEL.name: self._pull_model,
            DELETE_MODEL.name: self._delete_model,
        }

    def list_tools(self) -> list[Tool]:
        return list(TOOLS)

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    async def invoke(self, name: str, arguments: Mapping[str, Any] | None = None) -> CallToolResult:
        """Run a tool and wrap its text output.

        Raises:
            UnknownTool: ``name`` is not in the catalog.
            ToolArgumentError: a required argument is missing.
            BackendUnavailable: the backend call failed.
        """
        tool = self.get_tool(name)
        if tool is None:
            raise UnknownTool(name)

        arguments = arguments or {}
        for key in tool.input_schema.required or []:
            if key not in arguments:
                raise ToolArgumentError(f"Missing required argument: {key}")

        logger.debug("Invoking tool %s", name)
        text = await self._handlers[name](arguments)
        return CallToolResult(content=[TextContent(text=text)])

    async def _list_models(self, arguments: Mapping[str, Any]) -> str:
        models = await self.backend.list_models()
        return json.dumps([model.model_dump(mode="json", exclude_unset=True) for model in models], indent=2)

    async def _chat(self, arguments: Mapping[str, Any]) -> str:
        messages = _messages_adapter.validate_python(arguments["messages"])
        response = await self.backend.chat(arguments["model"], messages)
        return response.message.content

    async def _generate(self, arguments: Mapping[str, Any]) -> str:
        return await self.backend.generate(arguments["model"], arguments["prompt"])

    async def _pull_model(self, arguments: Mapping[str, Any]) -> str:
        model = arguments["model"]
        await self.backend.pull_model(model)
        return f"Successfully pulled model: {model}"

    async def _delete_model(self, arguments: Mapping[str, Any]) -> str:
        model = arguments["model"]
        await self.backend.delete_model(model)
        return f"Successfully deleted model: {model}"
