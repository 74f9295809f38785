from ollama_mcp.ollama.client import DEFAULT_BASE_URL, OllamaBackend, OllamaClient
from ollama_mcp.ollama.types import ChatMessage, ChatResponse, OllamaModel

__all__ = ["DEFAULT_BASE_URL", "ChatMessage", "ChatResponse", "OllamaBackend", "OllamaClient", "OllamaModel"]
