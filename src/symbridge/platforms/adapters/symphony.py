"""Symphony platform adapter using the agent datafeed."""

import asyncio
import logging
import sys
from collections.abc import Callable
from typing import Any, Optional, Union

import httpx
from pydantic import ConfigDict, Field

from symbridge.config import (
    AdapterConfig,
    Config,
    SymphonyConfig,
    load_config,
    validate_symphony_config,
)
from symbridge.platforms.client import SymphonyClient
from symbridge.platforms.formatting import format_message, format_reply, strip_message_ml
from symbridge.platforms.identity import IdentityResolver
from symbridge.platforms.models import (
    Datafeed,
    Envelope,
    PollerState,
    StreamType,
    SymphonyUser,
    TextMessage,
    V2Message,
)
from symbridge.platforms.poller import DatafeedPoller
from symbridge.platforms.protocol import EventEmitter, Robot

logger = logging.getLogger(__name__)


class AdapterOptions(AdapterConfig):
    """Adapter behaviour plus the runtime-only shutdown hook.

    ``shutdown_func`` is called once when the adapter gives up for good.
    When unset the process exits with status 1.
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    shutdown_func: Optional[Callable[[], Any]] = Field(default=None, exclude=True)


class SymphonyAdapter(EventEmitter):
    """Bridges a ``Robot`` to Symphony.

    Emits ``connected`` each time a datafeed is ready. Inbound messages go
    to ``robot.receive``; asynchronous failures go to ``robot.emit("error")``.

    Sends are independent requests. Concurrent ``send`` calls may complete
    out of order; await each call to keep wire order.

    Configuration:
        - host, public_key, private_key, passphrase: required connection settings
        - fail_connect_after: attempt ceiling before giving up
        - shutdown_func: hook for fatal failures (default: exit the process)
    """

    def __init__(
        self,
        robot: Robot,
        config: SymphonyConfig,
        options: Optional[AdapterOptions] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Symphony adapter.

        Args:
            robot: The host robot capability
            config: Connection settings
            options: Polling and shutdown behaviour
            transport: Optional HTTP transport override

        Raises:
            ConfigurationError: If a required connection setting is missing
        """
        super().__init__()
        validate_symphony_config(config)

        self.robot = robot
        self._config = config
        self._options = options or AdapterOptions()

        self._client = SymphonyClient(config, transport=transport)
        self._identities = IdentityResolver(self._client)
        self._poller = DatafeedPoller(
            self._client,
            on_event=self._handle_event,
            on_connected=self._handle_connected,
            on_error=self._handle_error,
            on_shutdown=self._shutdown,
            fail_connect_after=self._options.fail_connect_after,
            backoff_initial=self._options.backoff_initial,
            backoff_max=self._options.backoff_max,
        )
        self._im_streams: dict[int, str] = {}
        self._stream_types: dict[str, Optional[StreamType]] = {}

    @classmethod
    def use(
        cls,
        robot: Robot,
        options: Union[AdapterOptions, dict[str, Any], None] = None,
        config: Union[Config, SymphonyConfig, None] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SymphonyAdapter":
        """Build an adapter, validating configuration before any network activity.

        Args:
            robot: The host robot capability
            options: Overrides for the configured adapter behaviour
            config: Explicit configuration; loaded from file/environment if omitted
            transport: Optional HTTP transport override

        Returns:
            A configured, not yet running adapter

        Raises:
            ConfigurationError: ``"<NAME> undefined"`` for a missing setting
        """
        if config is None:
            config = load_config()
        if isinstance(config, SymphonyConfig):
            config = Config(symphony=config)

        validate_symphony_config(config.symphony)

        if isinstance(options, AdapterOptions):
            resolved = options
        else:
            configured = config.adapter.model_dump(include=set(AdapterConfig.model_fields))
            resolved = AdapterOptions(**{**configured, **(options or {})})

        return cls(robot, config.symphony, resolved, transport=transport)

    @property
    def symphony(self) -> Optional[SymphonyClient]:
        """The authenticated platform client, or None before authentication."""
        return self._client if self._client.is_authenticated else None

    @property
    def state(self) -> PollerState:
        return self._poller.state

    @property
    def datafeed(self) -> Optional[Datafeed]:
        return self._poller.feed

    def run(self) -> asyncio.Task:
        """Start connecting and polling in the background.

        Each run authenticates afresh; an adapter can be run again after
        ``close()`` once the previous task has finished.

        Returns:
            The task driving the poll loop
        """
        logger.info(f"Starting Symphony adapter for {self._config.host}")
        return self._poller.start()

    def close(self) -> None:
        """Stop polling, release the session and forget run-scoped state. Idempotent."""
        self._poller.close()
        self._client.clear_session()
        self._identities.clear()
        self._im_streams.clear()
        self._stream_types.clear()

    async def aclose(self) -> None:
        """Close and wait for the poll task, then release the HTTP client."""
        self.close()
        await self._poller.wait_closed()
        await self._client.aclose()
        logger.info("Symphony adapter closed")

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(
        self, envelope: Union[Envelope, dict[str, Any]], *messages: str
    ) -> list[dict[str, Any]]:
        """Send each message to ``envelope.room`` in order.

        Returns:
            The created messages as returned by the agent
        """
        envelope = Envelope.model_validate(envelope)
        return [await self._post(envelope.room, format_message(text)) for text in messages]

    async def reply(
        self, envelope: Union[Envelope, dict[str, Any]], *messages: str
    ) -> list[dict[str, Any]]:
        """Reply in ``envelope.room``, @mentioning ``envelope.user`` if given.

        Reply text is XML-escaped. Without a user this behaves like ``send``.
        """
        envelope = Envelope.model_validate(envelope)
        email = await self._recipient_email(envelope)
        if email is None:
            return await self.send(envelope, *messages)
        return [await self._post(envelope.room, format_reply(email, text)) for text in messages]

    async def send_direct_message_to_username(
        self, username: str, *messages: str
    ) -> list[dict[str, Any]]:
        user = await self._identities.resolve_by_username(username)
        return await self._send_direct(user, messages)

    async def send_direct_message_to_email(
        self, email: str, *messages: str
    ) -> list[dict[str, Any]]:
        user = await self._identities.resolve_by_email(email)
        return await self._send_direct(user, messages)

    async def send_direct_message_to_user_id(
        self, user_id: int, *messages: str
    ) -> list[dict[str, Any]]:
        user = await self._identities.resolve_by_id(user_id)
        return await self._send_direct(user, messages)

    async def _send_direct(
        self, user: SymphonyUser, messages: tuple[str, ...]
    ) -> list[dict[str, Any]]:
        stream_id = self._im_streams.get(user.id)
        if stream_id is None:
            stream_id = await self._client.create_im(user.id)
            self._im_streams[user.id] = stream_id
            self._stream_types[stream_id] = StreamType.IM
            logger.debug(f"Opened IM stream {stream_id} with {user}")
        return [await self._post(stream_id, format_message(text)) for text in messages]

    async def _recipient_email(self, envelope: Envelope) -> Optional[str]:
        user = envelope.user
        if user is None:
            return None
        if user.email_address:
            return user.email_address
        if user.id is None and user.username is None:
            return None
        resolved = await self._identities.resolve(user_id=user.id, username=user.username)
        return resolved.email_address

    async def _post(self, stream_id: str, markup: str) -> dict[str, Any]:
        try:
            return await self._client.send_message(stream_id, markup)
        except Exception as e:
            logger.error(f"Failed to send message to {stream_id}: {e}")
            raise

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def _handle_event(self, event: V2Message) -> None:
        session = self._client.session
        if session is not None and event.from_user_id == session.bot_user_id:
            return

        user = await self._identities.resolve_by_id(event.from_user_id)
        text = strip_message_ml(event.message)
        if self._options.dm_prefix_robot_name and await self._is_direct_stream(event.stream_id):
            text = self._address_robot(text)

        if self._poller.stopped:
            return

        message = TextMessage(
            user=user,
            text=text,
            id=event.id,
            room=event.stream_id,
            timestamp=event.timestamp,
            metadata={"message_ml": event.message},
        )
        logger.debug(f"Received message: {message}")
        self.robot.receive(message)

    async def _is_direct_stream(self, stream_id: str) -> bool:
        if stream_id not in self._stream_types:
            try:
                self._stream_types[stream_id] = await self._client.get_stream_type(stream_id)
            except Exception as e:
                logger.warning(f"Failed to get stream info for {stream_id}: {e}")
                return False
        return self._stream_types[stream_id] == StreamType.IM

    def _address_robot(self, text: str) -> str:
        """Prefix the robot's name so direct messages read as commands."""
        names = [self.robot.name] + ([self.robot.alias] if self.robot.alias else [])
        lowered = text.lower()
        if any(lowered.startswith(name.lower()) for name in names):
            return text
        return f"{self.robot.name} {text}"

    def _handle_connected(self, feed: Datafeed) -> None:
        logger.info(f"Connected to Symphony (datafeed {feed})")
        self.emit("connected")

    def _handle_error(self, error: Exception) -> None:
        self.robot.emit("error", error)

    def _shutdown(self) -> Any:
        if self._options.shutdown_func is not None:
            return self._options.shutdown_func()
        logger.critical("Symphony adapter cannot continue, exiting")
        sys.exit(1)
