"""Provider/runtime configuration for the model, image, and equation layers.

Architectural role:
    Centralizes model/provider selection and credential lookup for
    `mediabot.llm.client`, `mediabot.image.client`, and `mediabot.llm.tools`.

Model roles:
    - `MODEL_NAME`: conversational model used for replies and tool calls.
    - `REASONING_MODEL_NAME`: model used for classification, parsing, and math.

Determinism:
    Deterministic for a fixed process environment and key files. Values are resolved
    at import time (plus runtime key-file reads in `load_key`).

Failure behavior:
    Missing key material is represented as `None`; `client` raises `AuthError`
    for providers that require a key.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# Primary model routing controls.
PROVIDER = os.getenv("PROVIDER", "openai")
MODEL_NAME = os.getenv("MODEL_NAME", "gpt-4o-mini")
REASONING_MODEL_NAME = os.getenv("REASONING_MODEL_NAME", MODEL_NAME)

CHAT_TEMPERATURE = float(os.getenv("CHAT_TEMPERATURE", "0.7"))
REASONING_TEMPERATURE = 0.0
MAX_COMPLETION_TOKENS = int(os.getenv("MAX_COMPLETION_TOKENS", "1024"))

# OpenAI-compatible and provider-specific endpoint map.
PROVIDERS = {

    "local": {
        "url": "http://127.0.0.1:8080/v1/chat/completions",
        "key_file": None
    },

    "openai": {
        "url": "https://api.openai.com/v1/chat/completions",
        "key_file": "config/openai.key"
    },

    "groq": {
        "url": "https://api.groq.com/openai/v1/chat/completions",
        "key_file": "config/groq.key"
    },

    "openrouter": {
        "url": "https://openrouter.ai/api/v1/chat/completions",
        "key_file": "config/openrouter.key"
    },

    "mistral": {
        "url": "https://api.mistral.ai/v1/chat/completions",
        "key_file": "config/mistral.key"
    },

    "anthropic": {
        "url": "https://api.anthropic.com/v1/messages",
        "key_file": "config/anthropic.key"
    },

}

ANTHROPIC_VERSION = "2023-06-01"

# Per-request transport timeout in seconds. The retry layer applies its own,
# usually shorter, per-attempt timeout on top of this.
REQUEST_TIMEOUT_SECONDS = float(os.getenv("LLM_REQUEST_TIMEOUT_SECONDS", "120"))


def load_key(path):
    """Load API key from environment override or key file.

    Resolution order:
        1. Environment variable inferred from file stem (for example
           `config/openai.key` -> `OPENAI_API_KEY`).
        2. Raw file contents at `path`.

    Args:
        path: Configured key file path or `None`.

    Returns:
        Key string or `None` when not available.
    """
    if not path:
        return None
    key_name = os.path.splitext(os.path.basename(path))[0].upper() + "_API_KEY"
    env_value = os.getenv(key_name)
    if env_value:
        return env_value
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return f.read().strip()


# Image generation settings consumed by `mediabot.image` modules.
IMAGE_PROVIDER = os.getenv("IMAGE_PROVIDER", "openai")
IMAGE_MODEL = os.getenv("IMAGE_MODEL", "dall-e-3")
IMAGE_SIZE = os.getenv("IMAGE_SIZE", "1024x1024")

IMAGE_PROVIDERS = {

    "local": {
        "url": "http://127.0.0.1:7860/v1/images/generations",
        "key_file": None
    },

    "openai": {
        "url": "https://api.openai.com/v1/images/generations",
        "key_file": "config/openai.key"
    },

}

# LaTeX equation renderer.
EQUATIONS_URL = os.getenv("EQUATIONS_URL", "http://127.0.0.1:3000")
EQUATIONS_API_KEY = os.getenv("EQUATIONS_API_KEY")

# Web search tool for the default responder.
SEARCH_API_KEY = os.getenv("SEARCH_API_KEY", "").strip()
WEB_TIMEOUT_SECONDS = float(os.getenv("WEB_TIMEOUT_SECONDS", "12"))
WEB_MAX_RESULTS = int(os.getenv("WEB_MAX_RESULTS", "5"))
