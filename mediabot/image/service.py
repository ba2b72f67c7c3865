"""Render gateway for generated images and equation images.

Role in pipeline:
    - Receives a `RenderSpec` from the image or math graph node.
    - Dispatches to the blocking provider client in a worker thread.
    - Returns `RenderedImage(url)`.

Caching:
    Equation renders are cached in a small in-process LRU keyed by the LaTeX source.
    Generated images are never cached.

Error handling strategy:
    Exceptions from provider clients propagate. Retries are applied by callers
    through `mediabot.core.retry`.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Protocol

from mediabot.image.client import send_equation_request, send_image_request


logger = logging.getLogger(__name__)

EQUATION_CACHE_SIZE = 100


@dataclass(frozen=True)
class RenderSpec:
    kind: str  # "image" or "equation"
    source: str


@dataclass(frozen=True)
class RenderedImage:
    url: str


class RenderGateway(Protocol):
    async def render(self, spec: RenderSpec) -> RenderedImage:
        ...


class ProviderRenderer:
    """`RenderGateway` backed by the configured image provider and equation service."""

    def __init__(self, cache_size: int = EQUATION_CACHE_SIZE) -> None:
        self._cache: OrderedDict[str, RenderedImage] = OrderedDict()
        self._cache_size = cache_size

    async def render(self, spec: RenderSpec) -> RenderedImage:
        if spec.kind == "equation":
            return await self._render_equation(spec.source)
        if spec.kind == "image":
            url = await asyncio.to_thread(send_image_request, spec.source)
            return RenderedImage(url=url)
        raise ValueError(f"Unknown render kind: {spec.kind}")

    async def _render_equation(self, latex: str) -> RenderedImage:
        cached = self._cache.get(latex)
        if cached is not None:
            self._cache.move_to_end(latex)
            logger.debug("Returning cached equation image")
            return cached

        url = await asyncio.to_thread(send_equation_request, latex)
        image = RenderedImage(url=url)
        self._cache[latex] = image
        if len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)
        return image
