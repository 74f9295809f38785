"""An MCP server exposing a local Ollama installation as tools, over stdio or Streamable HTTP."""

__version__ = "1.0.0"
