"""Observer hooks run around every operation invocation."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .errors import ConnectorError, ObserverError
from .models import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

BEFORE_EXECUTE = "before execute"
AFTER_EXECUTE = "after execute"
EVENTS = (BEFORE_EXECUTE, AFTER_EXECUTE)

Observer = Callable[..., Any]


@dataclass
class HookContext:
    req: HttpRequest
    res: Optional[HttpResponse] = None


class ObserverRegistry:
    def __init__(self) -> None:
        self._observers: Dict[str, List[Observer]] = {event: [] for event in EVENTS}

    def observe(self, event: str, handler: Observer) -> None:
        if event not in self._observers:
            raise ValueError(f"Unknown event {event!r}; expected one of {EVENTS}")
        self._observers[event].append(handler)

    def remove_observers(self, event: str) -> None:
        self._observers.get(event, []).clear()

    def clear_observers(self) -> None:
        for handlers in self._observers.values():
            handlers.clear()

    def observers(self, event: str) -> List[Observer]:
        return list(self._observers.get(event, []))

    async def notify(self, event: str, context: HookContext) -> None:
        """Run the observers of ``event`` one after the other."""
        for handler in self.observers(event):
            try:
                await _run_observer(handler, context)
            except ConnectorError:
                raise
            except Exception as exc:
                logger.warning("%s observer %r failed: %s", event, handler, exc)
                raise ObserverError(event, str(exc)) from exc


async def _run_observer(handler: Observer, context: HookContext) -> None:
    if _accepts_proceed(handler):
        loop = asyncio.get_running_loop()
        settled: asyncio.Future = loop.create_future()

        def proceed(error: Optional[BaseException] = None) -> None:
            if settled.done():
                return
            if error is not None:
                settled.set_exception(error)
            else:
                settled.set_result(None)

        result = handler(context, proceed)
        if inspect.isawaitable(result):
            await result
            if settled.done():
                settled.result()
            return
        await settled
        return

    result = handler(context)
    if inspect.isawaitable(result):
        await result


def _accepts_proceed(handler: Observer) -> bool:
    try:
        parameters = list(inspect.signature(handler).parameters.values())
    except (TypeError, ValueError):
        return False
    positional = [
        p
        for p in parameters
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    if any(p.kind == inspect.Parameter.VAR_POSITIONAL for p in parameters):
        return True
    return len(positional) >= 2
