"""Response caching for GET operations."""

from __future__ import annotations

import inspect
import logging
import re
import time
from typing import Any, Dict, Optional, Protocol, Tuple
from urllib.parse import quote, urlencode

from .config import CacheSettings
from .errors import CacheError
from .logging import redact_url
from .models import HttpRequest, HttpResponse
from .registry import ModelRegistry

logger = logging.getLogger(__name__)

_SCHEME_AND_HOST = re.compile(r"^[^:]+://[^/]+")


class CacheStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any, ttl: float) -> Any: ...


class MemoryCache:
    """In-process cache with per-entry expiry."""

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        cached = self._entries.get(key)
        if not cached:
            return None
        expires_at, value = cached
        if time.time() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        now = time.time()
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        self._entries[key] = (now + ttl, value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def cache_key(request: HttpRequest) -> Optional[str]:
    if request.method.lower() != "get":
        return None
    base = _SCHEME_AND_HOST.sub("", request.url)
    headers = urlencode(list(request.headers.items()), quote_via=quote)
    return f"{base};{headers}"


class ResponseCache:
    def __init__(
        self,
        settings: Optional[CacheSettings],
        registry: ModelRegistry,
        source_name: str = "",
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.source_name = source_name
        self._store: Any = None
        self._resolved = False

    @property
    def enabled(self) -> bool:
        return self.settings is not None

    def store(self) -> Optional[Any]:
        """Resolve the cache handle, looking up named models on first use."""
        if self.settings is None:
            return None
        if self._resolved:
            return self._store

        model = self.settings.model
        if isinstance(model, str):
            handle = self.registry.get_model(model)
            if handle is None:
                logger.warning(
                    "Model %r not found, caching is disabled for OpenAPI datasource %s",
                    model,
                    self.source_name,
                )
            model = handle
        self._store = model
        self._resolved = True
        return self._store

    async def lookup(self, request: HttpRequest) -> Optional[Dict[str, Any]]:
        store = self.store()
        if store is None:
            return None
        key = cache_key(request)
        if key is None:
            return None
        try:
            value = await _maybe_await(store.get(key))
        except Exception as exc:
            raise CacheError(f"Cache lookup failed for {redact_url(request.url)}: {exc}") from exc
        if not value:
            return None
        logger.debug("Cache hit for %s", redact_url(request.url))
        return value

    async def update(self, request: HttpRequest, response: HttpResponse) -> None:
        store = self.store()
        if store is None:
            return
        key = cache_key(request)
        if key is None:
            return
        try:
            await _maybe_await(store.set(key, response.to_cache(), ttl=self.settings.ttl))
        except Exception as exc:
            raise CacheError(f"Cache store failed for {redact_url(request.url)}: {exc}") from exc


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value
