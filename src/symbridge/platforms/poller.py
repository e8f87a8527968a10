"""Datafeed poller: the connect / create / read state machine."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from symbridge.platforms.client import SymphonyClient
from symbridge.platforms.exceptions import ConnectAttemptsExhausted, is_transient
from symbridge.platforms.models import Datafeed, PollerState, V2Message

logger = logging.getLogger(__name__)


class DatafeedPoller:
    """Owns the long-poll loop for one adapter instance.

    Lifecycle::

        IDLE -> CONNECTING -> FEED_CREATING -> POLLING
                                   ^              |
                                   +-- FAILURE_BACKOFF <-- transient read failure

    Any state moves to STOPPED on ``close()`` or on a fatal failure. Fatal
    failures (authentication refused, attempts exhausted, non-400 answers)
    invoke ``on_shutdown`` exactly once.

    ``fail_connect_after`` bounds both the attempts made for a single feed
    creation and the number of consecutive failed reads.
    """

    def __init__(
        self,
        client: SymphonyClient,
        on_event: Callable[[V2Message], Awaitable[None]],
        on_connected: Callable[[Datafeed], Any],
        on_error: Callable[[Exception], Any],
        on_shutdown: Callable[[], Any],
        fail_connect_after: int = 23,
        backoff_initial: float = 0.01,
        backoff_max: float = 60.0,
    ):
        """Initialize the poller.

        Args:
            client: Platform client used for authentication and feed calls
            on_event: Coroutine called for each inbound message, in order
            on_connected: Called each time a fresh feed is ready
            on_error: Called with recoverable and fatal errors
            on_shutdown: Called once on a fatal, non-resumable failure
            fail_connect_after: Attempt ceiling, see class docstring
            backoff_initial: First retry delay in seconds
            backoff_max: Upper bound for retry delays in seconds
        """
        self._client = client
        self._on_event = on_event
        self._on_connected = on_connected
        self._on_error = on_error
        self._on_shutdown = on_shutdown
        self._fail_connect_after = fail_connect_after
        self._backoff_initial = backoff_initial
        self._backoff_max = backoff_max

        self._state = PollerState.IDLE
        self._stopped = False
        self._shutdown_called = False
        self._feed: Optional[Datafeed] = None
        self._read_failures = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def feed(self) -> Optional[Datafeed]:
        """The datafeed currently being read, if any."""
        return self._feed

    @property
    def stopped(self) -> bool:
        return self._stopped

    def _set_state(self, state: PollerState) -> None:
        if state != self._state:
            logger.debug(f"Poller state {self._state.value} -> {state.value}")
            self._state = state

    def start(self) -> asyncio.Task:
        """Schedule the poll loop on the running event loop.

        Returns:
            The task driving the loop. While it is running, calling start
            again returns it. Once that task has finished, start begins a
            fresh run.
        """
        if self._task is not None and not self._task.done():
            logger.warning("Datafeed poller already started")
            return self._task
        if self._stopped or self._task is not None:
            self._reset()
        self._task = asyncio.create_task(self._run(), name="symphony-datafeed")
        return self._task

    def _reset(self) -> None:
        self._state = PollerState.IDLE
        self._stopped = False
        self._shutdown_called = False
        self._feed = None
        self._read_failures = 0
        self._task = None

    def close(self) -> None:
        """Stop polling. Safe to call repeatedly and from inside callbacks."""
        if self._stopped:
            return

        logger.info("Stopping datafeed poller")
        self._stopped = True
        self._set_state(PollerState.STOPPED)
        self._feed = None

        if self._task is not None and not self._task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if self._task is not current:
                self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait for the poll task to finish after ``close()``."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        self._set_state(PollerState.CONNECTING)
        try:
            await self._client.authenticate()
        except Exception as e:
            logger.error(f"Authentication failed: {e}", exc_info=True)
            await self._fail(e)
            return

        while not self._stopped:
            self._set_state(PollerState.FEED_CREATING)
            try:
                self._feed = await self._create_feed()
            except Exception as e:
                logger.error(f"Unable to create datafeed: {e}")
                await self._fail(e)
                return

            if self._stopped:
                return

            logger.info(f"Datafeed {self._feed} ready")
            self._set_state(PollerState.POLLING)
            self._on_connected(self._feed)

            try:
                await self._poll(self._feed)
            except Exception as e:
                if self._stopped:
                    return
                if not is_transient(e):
                    logger.error(f"Datafeed read failed: {e}", exc_info=True)
                    await self._fail(e)
                    return

                self._read_failures += 1
                logger.warning(
                    f"Datafeed {self._feed} read failed ({e}), "
                    f"recreating [{self._read_failures}/{self._fail_connect_after}]"
                )
                self._feed = None
                self._on_error(e)

                if self._read_failures >= self._fail_connect_after:
                    await self._fail(ConnectAttemptsExhausted(self._read_failures, e))
                    return

                self._set_state(PollerState.FAILURE_BACKOFF)
                await asyncio.sleep(self._backoff_delay(self._read_failures))

    async def _create_feed(self) -> Datafeed:
        """Create a datafeed, retrying HTTP 400 within the attempt ceiling.

        Raises:
            ConnectAttemptsExhausted: If every attempt failed transiently
            HttpStatusError: On a non-transient failure
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._fail_connect_after),
            wait=wait_exponential(multiplier=self._backoff_initial, max=self._backoff_max),
            retry=retry_if_exception(is_transient),
            before_sleep=self._before_retry,
        )
        feed: Optional[Datafeed] = None
        try:
            async for attempt in retrying:
                with attempt:
                    feed = await self._client.create_datafeed()
        except RetryError as e:
            raise ConnectAttemptsExhausted(
                e.last_attempt.attempt_number, e.last_attempt.exception()
            ) from e
        if feed is None:
            raise ConnectAttemptsExhausted(0)
        return feed

    def _before_retry(self, retry_state: RetryCallState) -> None:
        self._set_state(PollerState.FAILURE_BACKOFF)
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Datafeed creation failed ({error}), retrying "
            f"[{retry_state.attempt_number}/{self._fail_connect_after}]"
        )

    def _backoff_delay(self, failures: int) -> float:
        return min(self._backoff_initial * (2 ** (failures - 1)), self._backoff_max)

    async def _poll(self, feed: Datafeed) -> None:
        """Read the feed until stopped; raises on the first failed read."""
        while not self._stopped:
            events = await self._client.read_datafeed(feed.id)
            self._read_failures = 0
            if events:
                logger.debug(f"Datafeed {feed} returned {len(events)} event(s)")
            await self._dispatch(events)

    async def _dispatch(self, events: list[V2Message]) -> None:
        for event in events:
            if self._stopped:
                return
            if not event.is_message:
                logger.debug(f"Ignoring {event.v2message_type} event {event.id}")
                continue
            try:
                await self._on_event(event)
            except Exception as e:
                logger.error(f"Failed to handle message {event.id}: {e}", exc_info=True)
                self._on_error(e)

    async def _fail(self, error: Exception) -> None:
        """Stop for good, report, and run the shutdown hook once."""
        self._stopped = True
        self._set_state(PollerState.STOPPED)
        self._feed = None
        self._on_error(error)

        if self._shutdown_called:
            return
        self._shutdown_called = True
        logger.error(f"Datafeed poller giving up: {error}")
        result = self._on_shutdown()
        if inspect.isawaitable(result):
            await result
