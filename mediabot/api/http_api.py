"""
HTTP API adapter for MediaBot.

Architectural role:
- Expose the engine to a chat transport over HTTP.
- Validate request bodies with pydantic models.
- Delegate every turn to `Orchestrator.send_message`.

Endpoint responsibilities:
- `POST /v1/messages`: run one turn for `user_id` and return `{content, images}`.
- `DELETE /v1/context/{user_id}`: drop the user's history and media workflow.
- `GET /health`: liveness plus workflow counts.

API request lifecycle (`POST /v1/messages`):
1. Validate `{user_id, user_name?, message}`.
2. Load the user's history from the conversation log.
3. Run the turn, store the updated history.
4. Return reply text and generated images.

Input validation behavior:
- Missing or empty `user_id`/`message` -> HTTP 422 (pydantic).

Error handling strategy:
- Turn failures are already converted to reply text by the engine.

Side effects:
- Loads environment variables at import time via `load_dotenv()`.
- Builds the orchestrator and starts the context cleanup sweep on startup.
"""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI
from pydantic import BaseModel, Field

import mediabot.memory.conversation_manager as conversation_manager
from mediabot.api.composition import build_orchestrator
from mediabot.core.engine import Orchestrator


logger = logging.getLogger(__name__)


# ============================================================
# Request / Response Models
# ============================================================

class MessageRequest(BaseModel):
    user_id: str = Field(min_length=1)
    user_name: str | None = None
    message: str = Field(min_length=1)


class ImagePayload(BaseModel):
    title: str
    url: str
    parent_id: str | None = None


class MessageResponse(BaseModel):
    content: str
    images: list[ImagePayload] = Field(default_factory=list)


class ClearResponse(BaseModel):
    user_id: str
    history_cleared: bool
    context_cleared: bool


# ============================================================
# App Factory
# ============================================================

def create_app(orchestrator_factory: Callable[[], Orchestrator] = build_orchestrator) -> FastAPI:
    """Build the FastAPI app; the orchestrator is created when the app starts."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        orchestrator = orchestrator_factory()
        app.state.orchestrator = orchestrator
        cleanup = asyncio.create_task(orchestrator.context_store.run_cleanup())
        try:
            yield
        finally:
            cleanup.cancel()
            await orchestrator.aclose()

    app = FastAPI(title="MediaBot", lifespan=lifespan)

    @app.get("/health")
    async def health():
        orchestrator: Orchestrator = app.state.orchestrator
        return {"status": "ok", "contexts": orchestrator.context_store.stats()}

    @app.post("/v1/messages", response_model=MessageResponse)
    async def post_message(request: MessageRequest) -> MessageResponse:
        orchestrator: Orchestrator = app.state.orchestrator
        result = await orchestrator.send_message(
            request.message,
            user_id=request.user_id,
            prior_messages=conversation_manager.get_history(request.user_id),
            user_name=request.user_name,
        )
        conversation_manager.replace_history(request.user_id, result.messages)
        return MessageResponse(
            content=result.content,
            images=[
                ImagePayload(title=image.title, url=image.url, parent_id=image.parent_id)
                for image in result.images
            ],
        )

    @app.delete("/v1/context/{user_id}", response_model=ClearResponse)
    async def clear_context(user_id: str) -> ClearResponse:
        orchestrator: Orchestrator = app.state.orchestrator
        return ClearResponse(
            user_id=user_id,
            history_cleared=conversation_manager.clear_history(user_id),
            context_cleared=await orchestrator.clear_user(user_id),
        )

    return app


def main():
    import uvicorn

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    uvicorn.run(
        create_app(),
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
