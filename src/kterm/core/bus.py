"""Event bus multiplexing terminal input, ticks and task results.

One asyncio queue, many producers, one consumer. The runtime loop is the
only consumer and processes each event to completion before taking the
next, so the state machine needs no locking.
"""

from __future__ import annotations

import asyncio
import contextlib

import structlog

from kterm.core.events import AppEvent, Tick, is_input_event

logger = structlog.get_logger()

TICK_INTERVAL = 0.25


class TerminalInput:
    """Raw key and resize source.

    The terminal host feeds events with :meth:`feed`; the bus runs a reader
    task that forwards them. The reader is stopped while a child process
    owns the terminal.
    """

    def __init__(self) -> None:
        self._inbox: asyncio.Queue[AppEvent] = asyncio.Queue()

    def feed(self, event: AppEvent) -> None:
        self._inbox.put_nowait(event)

    async def read(self) -> AppEvent:
        return await self._inbox.get()

    def discard_pending(self) -> int:
        """Drop everything fed but not yet forwarded. Returns the count."""
        dropped = 0
        while True:
            try:
                self._inbox.get_nowait()
            except asyncio.QueueEmpty:
                return dropped
            dropped += 1


class EventBus:
    """Single ordered queue feeding the runtime loop.

    Args:
        terminal_input: Source of raw key/resize events.
        tick_interval: Seconds between Tick events.
    """

    def __init__(
        self,
        terminal_input: TerminalInput | None = None,
        tick_interval: float = TICK_INTERVAL,
    ) -> None:
        self._queue: asyncio.Queue[AppEvent] = asyncio.Queue()
        self._input = terminal_input or TerminalInput()
        self._tick_interval = tick_interval
        self._reader_task: asyncio.Task[None] | None = None
        self._ticker_task: asyncio.Task[None] | None = None

    @property
    def terminal_input(self) -> TerminalInput:
        return self._input

    @property
    def reader_running(self) -> bool:
        return self._reader_task is not None and not self._reader_task.done()

    def send(self, event: AppEvent) -> None:
        """Queue an event. Safe to call from any task on the loop."""
        self._queue.put_nowait(event)

    async def next(self) -> AppEvent:
        """Wait for the next event."""
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self) -> list[AppEvent]:
        """Remove and return every queued event in order."""
        events: list[AppEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return events

    def drain_input(self) -> int:
        """Drop queued key and resize events, keeping the rest in order.

        Returns:
            Number of events dropped.
        """
        events = self.drain()
        kept = [event for event in events if not is_input_event(event)]
        for event in kept:
            self._queue.put_nowait(event)
        dropped = len(events) - len(kept) + self._input.discard_pending()
        if dropped:
            logger.debug("input_events_discarded", count=dropped)
        return dropped

    # =========================================================================
    # Producers
    # =========================================================================

    def start(self) -> None:
        """Start the terminal reader and the ticker."""
        self._start_reader()
        if self._ticker_task is None or self._ticker_task.done():
            self._ticker_task = asyncio.create_task(self._tick_loop(), name="kterm-ticker")

    def _start_reader(self) -> None:
        if not self.reader_running:
            self._reader_task = asyncio.create_task(self._read_loop(), name="kterm-input")

    def _stop_reader(self) -> asyncio.Task[None] | None:
        task, self._reader_task = self._reader_task, None
        if task is not None:
            task.cancel()
        return task

    async def _read_loop(self) -> None:
        while True:
            event = await self._input.read()
            self._queue.put_nowait(event)

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            self._queue.put_nowait(Tick())

    # =========================================================================
    # Terminal hand-over
    # =========================================================================

    def suspend(self) -> None:
        """Stop reading terminal input and drop input already queued.

        Call before a child process takes over the terminal. A cancelled
        reader never forwards the event it was waiting on.
        """
        self._stop_reader()
        self.drain_input()
        logger.debug("input_suspended")

    def resume(self) -> None:
        """Drop input that arrived during the hand-over, then read again.

        Call after the terminal is restored.
        """
        self.drain_input()
        self._start_reader()
        logger.debug("input_resumed")

    async def close(self) -> None:
        """Stop all producers owned by the bus."""
        ticker, self._ticker_task = self._ticker_task, None
        for task in (self._stop_reader(), ticker):
            if task is None:
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
