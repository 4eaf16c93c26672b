"""
In-memory match registry keyed by an opaque match id.

Every orchestrator call that touches match state runs on one background asyncio loop,
so each match keeps a single logical thread of control no matter which web worker
thread asked. Nothing survives a restart.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .errors import MatchNotFoundError
from .game import MatchConfig, MatchOrchestrator
from .llm_client import AIService

log = logging.getLogger("registry")

T = TypeVar("T")


class MatchRegistry:
    def __init__(self, service: AIService):
        self.service = service
        self._matches: Dict[str, MatchOrchestrator] = {}
        self._autoplay: Dict[str, asyncio.Task] = {}
        self._lock = threading.Lock()
        self._closed = False
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, name="match-loop", daemon=True)
        self._thread.start()

    # ---------------- Loop bridge -----------------
    def submit(self, coro: Awaitable[T]) -> concurrent.futures.Future:
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def run(self, coro: Awaitable[T], timeout: float | None = None) -> T:
        """Run a coroutine on the match loop and block for its result."""
        return self.submit(coro).result(timeout)

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a plain function on the match loop thread."""
        async def _invoke():
            return fn(*args, **kwargs)
        return self.run(_invoke())

    # ---------------- Registry -----------------
    def create(self, match_id: str, cfg: MatchConfig) -> MatchOrchestrator:
        orch = MatchOrchestrator(self.service, cfg, match_id=match_id)
        with self._lock:
            previous = self._matches.get(match_id)
            self._matches[match_id] = orch
        if previous is not None:
            self.call(self._stop_autoplay, match_id)
            self.call(previous.reset)
            log.info("Replaced existing match %s", match_id)
        return orch

    def get(self, match_id: str) -> MatchOrchestrator:
        with self._lock:
            orch = self._matches.get(match_id)
        if orch is None:
            raise MatchNotFoundError(match_id)
        return orch

    def delete(self, match_id: str) -> None:
        with self._lock:
            orch = self._matches.pop(match_id, None)
        if orch is None:
            raise MatchNotFoundError(match_id)
        self.call(self._stop_autoplay, match_id)
        self.call(orch.reset)

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._matches)

    # ---------------- Match control -----------------
    def start_autoplay(self, match_id: str) -> None:
        """Schedule orchestrator.play() on the loop; a running autoplay is left alone."""
        orch = self.get(match_id)

        def _schedule():
            task = self._autoplay.get(match_id)
            if task is not None and not task.done():
                return
            task = self._loop.create_task(orch.play())
            task.add_done_callback(lambda t: self._log_autoplay_end(match_id, t))
            self._autoplay[match_id] = task
        self.call(_schedule)

    def reset(self, match_id: str) -> MatchOrchestrator:
        orch = self.get(match_id)

        def _reset():
            self._stop_autoplay(match_id)
            orch.reset()
        self.call(_reset)
        return orch

    def autoplay_running(self, match_id: str) -> bool:
        task: Optional[asyncio.Task] = self._autoplay.get(match_id)
        return bool(task and not task.done())

    def _log_autoplay_end(self, match_id: str, task: asyncio.Task) -> None:
        if task.cancelled():
            log.info("Autoplay for match %s cancelled", match_id)
            return
        exc = task.exception()
        if exc is not None:
            log.error("Autoplay for match %s crashed", match_id, exc_info=exc)

    def _stop_autoplay(self, match_id: str) -> None:
        task = self._autoplay.pop(match_id, None)
        if task is not None and not task.done():
            task.cancel()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        async def _drain():
            tasks = list(self._autoplay.values())
            for mid in list(self._autoplay):
                self._stop_autoplay(mid)
            await asyncio.gather(*tasks, return_exceptions=True)
        self.run(_drain())
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        if not self._thread.is_alive():
            self._loop.close()
