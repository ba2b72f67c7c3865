"""Process composition: wires concrete clients into an `Orchestrator`.

Both adapters call `build_orchestrator()` once at startup. Nothing in the core
constructs its own collaborators, so tests build the same graph from fakes.
"""

from __future__ import annotations

import logging

from mediabot.catalog.radarr import RadarrClient
from mediabot.catalog.sonarr import SonarrClient
from mediabot.core.engine import Orchestrator
from mediabot.image.service import ProviderRenderer
from mediabot.llm.client import ProviderChatModel
from mediabot.llm.provider_config import (
    CHAT_TEMPERATURE,
    MODEL_NAME,
    PROVIDER,
    REASONING_MODEL_NAME,
    REASONING_TEMPERATURE,
)
from mediabot.llm.tools import default_tools
from mediabot.media.request_handler import MediaRequestHandler
from mediabot.media.strategies.base import MediaServices
from mediabot.memory.context_store import ContextStore


logger = logging.getLogger(__name__)


def build_orchestrator() -> Orchestrator:
    chat_model = ProviderChatModel(MODEL_NAME, temperature=CHAT_TEMPERATURE)
    reasoning_model = ProviderChatModel(REASONING_MODEL_NAME, temperature=REASONING_TEMPERATURE)
    context_store = ContextStore()

    movies = RadarrClient()
    shows = SonarrClient()
    services = MediaServices(
        reasoning_model=reasoning_model,
        chat_model=chat_model,
        movies=movies,
        shows=shows,
        context_store=context_store,
    )

    logger.info(
        "Orchestrator wired: provider=%s chat=%s reasoning=%s",
        PROVIDER,
        MODEL_NAME,
        REASONING_MODEL_NAME,
    )
    return Orchestrator(
        chat_model=chat_model,
        reasoning_model=reasoning_model,
        context_store=context_store,
        media_handler=MediaRequestHandler(services),
        renderer=ProviderRenderer(),
        tools=default_tools(),
        closers=(movies.aclose, shows.aclose),
    )
