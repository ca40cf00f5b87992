"""
ResponseStream — incremental delivery of one coaching answer.

The stream wraps either a finished Response or an awaitable that produces
one (the routing call). Routing runs in its own task, started as soon as the
stream is created, so cancelling the stream also cancels an in-flight
provider request. The answer is emitted as whitespace-delimited chunks,
optionally paced with a random delay; joining every chunk gives back the
full content.

Usage:
    stream = await core.orchestrate(request, stream=True)
    async for event in stream:
        if event.type == "chunk":
            print(event.content, end="")
        elif event.type == "complete":
            print("\\n", event.response.provider)
"""

import asyncio
import inspect
import logging
import random
import re
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from domain import Response

logger = logging.getLogger(__name__)

CHUNK = "chunk"
COMPLETE = "complete"
CANCELLED = "cancelled"

_CHUNK_PATTERN = re.compile(r"\s*\S+\s*")


def split_chunks(content: str) -> list[str]:
    chunks = _CHUNK_PATTERN.findall(content or "")
    if not chunks and content:
        return [content]
    return chunks


@dataclass
class StreamEvent:
    type: str
    content: str = ""
    response: Optional[Response] = None

    def to_dict(self) -> dict:
        data = {"type": self.type}
        if self.type == CHUNK:
            data["content"] = self.content
        if self.response is not None:
            data["response"] = self.response.to_dict()
        return data


class ResponseStream:

    def __init__(self, source: Union[Response, Awaitable[Response]],
                 chunk_delay: tuple[float, float] = (0.0, 0.0),
                 deadline: Optional[float] = None,
                 on_complete: Optional[Callable] = None,
                 on_cancel: Optional[Callable] = None,
                 abandon_grace: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        low, high = chunk_delay
        if low < 0 or high < low:
            raise ValueError("chunk_delay must be (min, max) with 0 <= min <= max")
        self.chunk_delay = (low, high)
        self.deadline = deadline
        self._on_complete = on_complete
        self._on_cancel = on_cancel
        self._clock = clock

        self._response: Optional[Response] = source if isinstance(source, Response) else None
        self._task: Optional[asyncio.Future] = None
        if self._response is None:
            self._task = asyncio.ensure_future(source)

        self._cancel_event = asyncio.Event()
        self._cancelled = False
        self._completed = False
        self._started = False
        self._callbacks: set[asyncio.Future] = set()

        # A stream that is never read to the end still settles once its deadline
        # (plus grace) has passed, so on_cancel always fires for a dropped stream.
        self._abandon_timer: Optional[asyncio.TimerHandle] = None
        if deadline is not None and abandon_grace is not None:
            delay = max(0.0, deadline - clock()) + abandon_grace
            self._abandon_timer = asyncio.get_running_loop().call_later(delay, self._abandon)

    # ── State ──

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def response(self) -> Optional[Response]:
        return self._response

    # ── Control ──

    def cancel(self):
        """Stop the stream. Fires on_cancel once; on_complete never fires after this."""
        if self._cancelled or self._completed:
            return
        self._cancelled = True
        self._cancel_event.set()
        self._stop_timer()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.debug("Stream cancelled")
        if self._on_cancel is not None:
            self._fire(self._on_cancel)

    def _abandon(self):
        self._abandon_timer = None
        if not self._cancelled and not self._completed:
            logger.warning("Stream not consumed by its deadline, cancelling")
            self.cancel()

    def _stop_timer(self):
        if self._abandon_timer is not None:
            self._abandon_timer.cancel()
            self._abandon_timer = None

    def _fire(self, callback: Callable, *args):
        try:
            result = callback(*args)
        except Exception as e:
            logger.warning("Stream callback %s failed: %s", getattr(callback, "__name__", callback), e)
            return
        if inspect.isawaitable(result):
            fut = asyncio.ensure_future(result)
            self._callbacks.add(fut)
            fut.add_done_callback(self._callbacks.discard)

    # ── Iteration ──

    def __aiter__(self):
        if self._started:
            raise RuntimeError("ResponseStream can only be iterated once")
        self._started = True
        return self._events()

    async def _events(self):
        try:
            response = await self._resolve()
            if response is None:
                yield StreamEvent(CANCELLED)
                return

            chunks = split_chunks(response.content)
            for i, chunk in enumerate(chunks):
                if self._cancelled:
                    yield StreamEvent(CANCELLED, response=response)
                    return
                if self._deadline_passed():
                    yield StreamEvent(CHUNK, "".join(chunks[i:]))
                    break
                yield StreamEvent(CHUNK, chunk)
                if i < len(chunks) - 1:
                    await self._pace()

            if self._cancelled:
                yield StreamEvent(CANCELLED, response=response)
                return
            self._completed = True
            self._stop_timer()
            if self._on_complete is not None:
                result = self._on_complete(response)
                if inspect.isawaitable(result):
                    await result
            yield StreamEvent(COMPLETE, response=response)
        finally:
            if not self._completed and not self._cancelled:
                # consumer walked away mid-stream
                self.cancel()

    async def _resolve(self) -> Optional[Response]:
        if self._response is not None:
            return self._response
        try:
            self._response = await self._task
        except asyncio.CancelledError:
            if self._cancelled:
                return None
            raise
        return self._response

    def _deadline_passed(self) -> bool:
        return self.deadline is not None and self._clock() >= self.deadline

    async def _pace(self):
        low, high = self.chunk_delay
        if high <= 0:
            return
        delay = random.uniform(low, high)
        if self.deadline is not None:
            delay = min(delay, max(0.0, self.deadline - self._clock()))
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def collect(self) -> Optional[Response]:
        """Drain the stream and return the final Response (None if cancelled)."""
        async for event in self:
            if event.type == COMPLETE:
                return event.response
        return None
