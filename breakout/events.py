"""Explicit subscription channel for room and registry events.

Each room (and the registry) owns one ``EventChannel``. Callers subscribe
per event name and get a ``Subscription`` back; closing the channel cancels
every outstanding subscription.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

Callback = Callable[..., Any]


@dataclass(eq=False)
class Subscription:
    """Handle for one registered callback."""

    channel: "EventChannel"
    event: str
    callback: Callback
    once: bool = False
    active: bool = field(default=True)

    def unsubscribe(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if not self.active:
            return
        self.active = False
        self.channel._remove(self)


class EventChannel:
    """Fan-out of named events to subscribed callbacks.

    Callbacks may be plain functions or coroutine functions; coroutines are
    scheduled as tasks on the running loop. A failing callback is logged and
    does not stop delivery to the remaining subscribers.
    """

    def __init__(self, name: str = "events"):
        self.name = name
        self._subscribers: Dict[str, List[Subscription]] = {}
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    def subscribe(self, event: str, callback: Callback, once: bool = False) -> Subscription:
        """Register ``callback`` for ``event``."""
        if self._closed:
            raise RuntimeError(f"Event channel {self.name} is closed")
        sub = Subscription(channel=self, event=event, callback=callback, once=once)
        self._subscribers.setdefault(event, []).append(sub)
        return sub

    def once(self, event: str, callback: Callback) -> Subscription:
        """Register ``callback`` for the next ``event`` only."""
        return self.subscribe(event, callback, once=True)

    def emit(self, event: str, *args: Any) -> int:
        """Deliver ``event`` to its subscribers now.

        Returns:
            Number of callbacks invoked
        """
        subs = list(self._subscribers.get(event, []))
        for sub in subs:
            if sub.once:
                sub.unsubscribe()
            try:
                result = sub.callback(*args)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._task_done)
            except Exception as e:
                logger.opt(exception=e).error(f"[{self.name}] '{event}' subscriber failed: {e}")
        return len(subs)

    def emit_soon(self, event: str, *args: Any) -> None:
        """Deliver ``event`` on the next loop iteration.

        Subscribers registered synchronously right after the triggering call
        still receive the event.
        """
        asyncio.get_running_loop().call_soon(self._emit_if_open, event, *args)

    async def wait_for(self, event: str, timeout: Optional[float] = None) -> tuple:
        """Wait until ``event`` is emitted and return its arguments."""
        future: asyncio.Future = asyncio.get_running_loop().create_future()

        def _resolve(*args: Any) -> None:
            if not future.done():
                future.set_result(args)

        sub = self.once(event, _resolve)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            sub.unsubscribe()

    def listener_count(self, event: str) -> int:
        return len(self._subscribers.get(event, []))

    def close(self) -> None:
        """Cancel every subscription. Further subscribes raise."""
        for subs in list(self._subscribers.values()):
            for sub in list(subs):
                sub.active = False
        self._subscribers.clear()
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def _emit_if_open(self, event: str, *args: Any) -> None:
        if not self._closed:
            self.emit(event, *args)

    def _remove(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.event)
        if subs and sub in subs:
            subs.remove(sub)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"[{self.name}] async subscriber failed: {exc}")
