"""Interceptor pipeline wrapping every HTTP round-trip."""

from __future__ import annotations

import logging

from .cache import ResponseCache
from .hooks import AFTER_EXECUTE, BEFORE_EXECUTE, HookContext, ObserverRegistry
from .logging import redact_url
from .models import HttpRequest, HttpResponse
from .transport import CachedResponseTransport, HttpTransport

logger = logging.getLogger(__name__)


class InterceptorPipeline:
    def __init__(
        self,
        hooks: ObserverRegistry,
        cache: ResponseCache,
        transport: HttpTransport,
        user_agent: str,
    ) -> None:
        self.hooks = hooks
        self.cache = cache
        self.transport = transport
        self.user_agent = user_agent

    async def execute(self, request: HttpRequest) -> HttpResponse:
        request.headers["User-Agent"] = self.user_agent

        context = HookContext(req=request)
        await self.hooks.notify(BEFORE_EXECUTE, context)
        request = context.req

        transport = self.transport
        cached = await self.cache.lookup(request)
        if cached:
            transport = CachedResponseTransport(cached)

        response = await transport.send(request)
        logger.debug("%s %s -> %s", request.method, redact_url(request.url), response.status)

        context = HookContext(req=request, res=response)
        await self.hooks.notify(AFTER_EXECUTE, context)
        response = context.res

        await self.cache.update(request, response)
        return response
