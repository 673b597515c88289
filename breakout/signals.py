"""Drain-then-exit handling for SIGINT/SIGTERM."""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Awaitable, Callable, List, Optional

from loguru import logger

from breakout.errors import BreakoutError

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SignalDrain:
    """Run ``drain`` once when a shutdown signal arrives, then exit.

    Signals delivered while the drain is running are ignored; the handlers
    stay installed until ``exit_fn`` has run. The process exits with status 0
    when the drain succeeds and 1 when it raises.
    """

    def __init__(
        self,
        drain: Callable[[], Awaitable[None]],
        name: str = "breakout",
        exit_fn: Callable[[int], object] = sys.exit,
    ):
        self.drain = drain
        self.name = name
        self.exit_fn = exit_fn
        self.task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._installed: List[signal.Signals] = []

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Register handlers on the running (or given) loop."""
        self._loop = loop or asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self.trigger, sig)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler
                signal.signal(sig, lambda s, _f: self._loop.call_soon_threadsafe(self.trigger, s))
            self._installed.append(sig)
        logger.debug(f"[{self.name}] Signal handlers installed")

    def uninstall(self) -> None:
        if self._loop is None:
            return
        for sig in self._installed:
            try:
                self._loop.remove_signal_handler(sig)
            except NotImplementedError:
                signal.signal(sig, signal.SIG_DFL)
        self._installed.clear()

    @property
    def triggered(self) -> bool:
        return self.task is not None

    def trigger(self, sig: Optional[int] = None) -> None:
        if self.task is not None:
            logger.debug(f"[{self.name}] Already draining, ignoring signal {sig}")
            return
        loop = self._loop or asyncio.get_running_loop()
        logger.info(f"[{self.name}] Received signal {sig}, draining")
        self.task = loop.create_task(self._run())

    async def _run(self) -> None:
        code = 1
        try:
            await self.drain()
            code = 0
        except BreakoutError as e:
            logger.error(f"[{self.name}] Drain finished with errors: {e}")
        except Exception as e:
            logger.opt(exception=e).error(f"[{self.name}] Drain failed: {e}")
        finally:
            try:
                self.exit_fn(code)
            finally:
                self.uninstall()
