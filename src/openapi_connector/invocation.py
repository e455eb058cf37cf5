"""Callable wrappers generated for each OpenAPI operation."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from .binder import ArgumentBinder
from .errors import HttpError
from .models import HttpResponse, Operation

if TYPE_CHECKING:
    from .connector import OpenApiConnector

logger = logging.getLogger(__name__)

Callback = Callable[[Optional[BaseException], Any], Any]
ResponseTransform = Callable[[HttpResponse, Dict[str, Any]], Any]


def transform_response(response: HttpResponse, operation_spec: Dict[str, Any]) -> Any:
    """Return the parsed body of a successful response, raise otherwise."""
    if response.status < 400:
        return response.body
    raise HttpError(f"{response.status} {response.status_text}", details=response)


class OperationMethod:
    """One generated method; every name of an operation shares the same instance."""

    def __init__(
        self,
        connector: "OpenApiConnector",
        operation: Operation,
        binder: ArgumentBinder,
        transform: Optional[ResponseTransform] = None,
    ) -> None:
        self.connector = connector
        self.operation = operation
        self.binder = binder
        self.transform = transform
        self.__name__ = operation.operation_id
        self.__doc__ = operation.spec.get("description") or operation.spec.get("summary")

    @property
    def arg_names(self) -> List[str]:
        return list(self.binder.arg_names)

    def __repr__(self) -> str:
        return f"<OperationMethod {self.operation.method.upper()} {self.operation.path}>"

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        response = await self._invoke(*args, **kwargs)
        if self.transform is None:
            return response
        return await _maybe_await(self.transform(response, self.operation.spec))

    def with_callback(self, *args: Any, callback: Callback, **kwargs: Any) -> Optional[asyncio.Task]:
        """Invoke the operation and report ``(error, result)`` to ``callback``.

        Scheduled on the running loop when there is one; otherwise the call
        completes on a private loop before returning, and the pooled HTTP
        client bound to that loop is closed with it.
        """
        coroutine = self._invoke_with_callback(args, kwargs, callback)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._run_detached(coroutine))
            return None
        return loop.create_task(coroutine)

    async def _run_detached(self, coroutine: Any) -> None:
        try:
            await coroutine
        finally:
            await self.connector.transport.aclose()

    async def _invoke_with_callback(
        self, args: Any, kwargs: Dict[str, Any], callback: Callback
    ) -> None:
        try:
            response = await self._invoke(*args, **kwargs)
        except Exception as exc:
            callback(exc, None)
            return

        result: Any = response
        if self.transform is not None:
            try:
                result = await _maybe_await(self.transform(response, self.operation.spec))
            except Exception as exc:
                # Transform failures are not reported in the callback convention.
                logger.debug(
                    "Ignoring response transform error for %s: %s",
                    self.operation.operation_id,
                    exc,
                )
                result = response
        callback(None, result)

    async def _invoke(self, *args: Any, **kwargs: Any) -> HttpResponse:
        params, options = self.binder.bind(*args, **kwargs)
        return await self.connector.send(self.operation, params, options)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value
