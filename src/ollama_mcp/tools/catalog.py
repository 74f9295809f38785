"""Static descriptors of the tools exposed by the server, in declaration order."""

from ollama_mcp.types.tools import JsonSchema, Tool

_MODEL_NAME = {"type": "string", "description": "The name of the Ollama model to use"}

LIST_MODELS = Tool(
    name="ollama_list_models",
    description="List all available Ollama models on the local machine",
    input_schema=JsonSchema(properties={}),
)

CHAT = Tool(
    name="ollama_chat",
    description="Chat with an Ollama model using conversation history",
    input_schema=JsonSchema(
        properties={
            "model": _MODEL_NAME,
            "messages": {
                "type": "array",
                "description": "Array of chat messages with role and content",
                "items": {
                    "type": "object",
                    "properties": {
                        "role": {
                            "type": "string",
                            "enum": ["system", "user", "assistant"],
                            "description": "The role of the message sender",
                        },
                        "content": {"type": "string", "description": "The content of the message"},
                    },
                    "required": ["role", "content"],
                },
            },
        },
        required=["model", "messages"],
    ),
)

GENERATE = Tool(
    name="ollama_generate",
    description="Generate a response from an Ollama model with a single prompt",
    input_schema=JsonSchema(
        properties={
            "model": _MODEL_NAME,
            "prompt": {"type": "string", "description": "The prompt to send to the model"},
        },
        required=["model", "prompt"],
    ),
)

PULL_MODEL = Tool(
    name="ollama_pull_model",
    description="Pull/download a model from the Ollama registry",
    input_schema=JsonSchema(
        properties={
            "model": {"type": "string", "description": "The name of the model to pull (e.g., llama2, mistral)"},
        },
        required=["model"],
    ),
)

DELETE_MODEL = Tool(
    name="ollama_delete_model",
    description="Delete a model from the local Ollama installation",
    input_schema=JsonSchema(
        properties={
            "model": {"type": "string", "description": "The name of the model to delete"},
        },
        required=["model"],
    ),
)

TOOLS: tuple[Tool, ...] = (LIST_MODELS, CHAT, GENERATE, PULL_MODEL, DELETE_MODEL)
