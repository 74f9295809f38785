from ollama_mcp.tools.catalog import TOOLS
from ollama_mcp.tools.registry import ToolRegistry

__all__ = ["TOOLS", "ToolRegistry"]
