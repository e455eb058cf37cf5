"""HTTP transport used to send operation requests."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .errors import TransportError
from .logging import redact_headers, redact_url
from .models import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


class HttpTransport:
    def __init__(self, client_options: Optional[Dict[str, Any]] = None) -> None:
        self.client_options = {"timeout": 30, **(client_options or {})}
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(**self.client_options)
        return self._client

    async def send(self, request: HttpRequest) -> HttpResponse:
        logger.debug(
            "%s %s headers=%s",
            request.method,
            redact_url(request.url),
            redact_headers(request.headers),
        )
        try:
            if request.form is not None or request.files:
                response = await self.client.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    data=request.form,
                    files=request.files or None,
                )
            else:
                response = await self.client.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    content=request.body,
                )
        except httpx.HTTPError as exc:
            raise TransportError(
                f"{request.method} {redact_url(request.url)} failed: {exc}"
            ) from exc

        return HttpResponse.build(
            url=str(response.url),
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            text=response.text,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class CachedResponseTransport:
    """Serves a cached response payload instead of doing network I/O."""

    def __init__(self, cached: Dict[str, Any]) -> None:
        self.cached = cached

    async def send(self, request: HttpRequest) -> HttpResponse:
        logger.debug(
            "Returning cached response for %s %s", request.method, redact_url(request.url)
        )
        response = HttpResponse.from_cache(self.cached)
        if not response.url:
            response.url = request.url
        return response
