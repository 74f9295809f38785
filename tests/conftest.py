from collections.abc import Callable, Sequence

import anyio
import pytest
import sse_starlette
from packaging import version

from ollama_mcp.ollama.types import ChatMessage, ChatResponse, OllamaModel


@pytest.fixture
def anyio_backend():
    return "asyncio"


SSE_STARLETTE_VERSION = version.parse(sse_starlette.__version__)
NEEDS_RESET = SSE_STARLETTE_VERSION < version.parse("3.0.0")


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """Reset sse-starlette's global AppStatus singleton before each test.

    AppStatus.should_exit_event is a global asyncio.Event bound to the first
    event loop that touches it. Only needed for sse-starlette < 3.0.0.
    """
    if not NEEDS_RESET:
        yield
        return

    from sse_starlette.sse import AppStatus

    AppStatus.should_exit_event = anyio.Event()  # type: ignore[attr-defined]
    yield
    AppStatus.should_exit_event = anyio.Event()  # type: ignore[attr-defined]


class StubBackend:
    """In-memory stand-in for the Ollama API.

    ``generate`` answers with a per-instance call counter, which makes session
    reuse observable from the outside.
    """

    def __init__(self, models: list[OllamaModel] | None = None, error: Exception | None = None) -> None:
        self.models = models if models is not None else [OllamaModel(name="llama2", size=3826793677)]
        self.error = error
        self.generate_calls = 0
        self.chats: list[tuple[str, list[ChatMessage]]] = []
        self.pulled: list[str] = []
        self.deleted: list[str] = []

    def _maybe_fail(self) -> None:
        if self.error is not None:
            raise self.error

    async def list_models(self) -> list[OllamaModel]:
        self._maybe_fail()
        return list(self.models)

    async def chat(self, model: str, messages: Sequence[ChatMessage]) -> ChatResponse:
        self._maybe_fail()
        self.chats.append((model, list(messages)))
        return ChatResponse(model=model, message=ChatMessage(role="assistant", content=f"echo: {messages[-1].content}"))

    async def generate(self, model: str, prompt: str) -> str:
        self._maybe_fail()
        self.generate_calls += 1
        return str(self.generate_calls)

    async def pull_model(self, model: str) -> None:
        self._maybe_fail()
        self.pulled.append(model)

    async def delete_model(self, model: str) -> None:
        self._maybe_fail()
        self.deleted.append(model)


@pytest.fixture
def stub_backend_cls() -> Callable[..., StubBackend]:
    return StubBackend


@pytest.fixture
def stub_backend() -> StubBackend:
    return StubBackend()
