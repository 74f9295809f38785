"""Request and response shapes of the Ollama HTTP API."""

from typing import Literal

from pydantic import BaseModel, ConfigDict

ChatRole = Literal["system", "user", "assistant"]


class OllamaModel(BaseModel):
    """An entry of ``GET /api/tags``. Unknown fields are preserved."""

    model_config = ConfigDict(extra="allow")

    name: str
    model: str | None = None
    modified_at: str | None = None
    size: int | None = None
    digest: str | None = None
    details: dict[str, object] | None = None


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: ChatRole
    content: str


class ChatResponse(BaseModel):
    """The non-streaming response of ``POST /api/chat``."""

    model_config = ConfigDict(extra="allow")

    model: str | None = None
    created_at: str | None = None
    message: ChatMessage
    done: bool = True
    total_duration: int | None = None
    load_duration: int | None = None
    prompt_eval_count: int | None = None
    prompt_eval_duration: int | None = None
    eval_count: int | None = None
    eval_duration: int | None = None
