"""HTTP client for the Symphony pod, agent and key manager REST APIs."""

import logging
import ssl
from typing import Any, Optional

import httpx

from symbridge.config.schema import SymphonyConfig
from symbridge.platforms.exceptions import (
    HttpStatusError,
    NotFoundError,
    SymphonyError,
    TransientFeedError,
)
from symbridge.platforms.models import (
    Datafeed,
    StreamType,
    SymphonySession,
    SymphonyUser,
    V2Message,
)
from symbridge.storage.paths import expand_path

logger = logging.getLogger(__name__)


class SymphonyClient:
    """Thin async wrapper over the platform endpoints the adapter needs.

    Authentication uses a client certificate built from the configured
    public/private key pair. Pass ``transport`` to route requests elsewhere
    (tests use ``httpx.MockTransport``); no TLS material is loaded then.
    """

    def __init__(
        self,
        config: SymphonyConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            config: Validated connection settings
            transport: Optional transport override
        """
        self._config = config
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None
        self._session: Optional[SymphonySession] = None

    @property
    def session(self) -> Optional[SymphonySession]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def _build_ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        context.load_cert_chain(
            certfile=str(expand_path(self._config.public_key)),
            keyfile=str(expand_path(self._config.private_key)),
            password=self._config.passphrase,
        )
        return context

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            timeout = httpx.Timeout(self._config.timeout)
            if self._transport is not None:
                self._http = httpx.AsyncClient(transport=self._transport, timeout=timeout)
            else:
                self._http = httpx.AsyncClient(
                    verify=self._build_ssl_context(), timeout=timeout
                )
        return self._http

    def _headers(self) -> dict[str, str]:
        if self._session is None:
            return {}
        return {
            "sessionToken": self._session.session_token,
            "keyManagerToken": self._session.key_manager_token,
        }

    @staticmethod
    def _url(host: Optional[str], path: str) -> str:
        return f"https://{host}{path}"

    async def _request(
        self,
        method: str,
        url: str,
        error_cls: type[HttpStatusError] = HttpStatusError,
        **kwargs: Any,
    ) -> httpx.Response:
        """Issue a request and raise ``error_cls`` on a non-2xx answer."""
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        response = await self._get_http().request(method, url, headers=headers, **kwargs)
        if response.is_success:
            return response

        logger.debug(f"{method} {url} -> {response.status_code}: {response.text[:200]}")
        status = response.status_code
        if error_cls is TransientFeedError and status != 400:
            error_cls = HttpStatusError
        raise error_cls(status, method, url, response.text)

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(self) -> SymphonySession:
        """Obtain session and key manager tokens, then the bot's user id.

        Returns:
            The new session

        Raises:
            HttpStatusError: If either authentication endpoint refuses
        """
        session_url = self._url(
            self._config.resolved_session_auth_host, "/sessionauth/v1/authenticate"
        )
        key_url = self._url(
            self._config.resolved_key_manager_host, "/keyauth/v1/authenticate"
        )

        session_token = self._token(await self._request("POST", session_url))
        key_manager_token = self._token(await self._request("POST", key_url))

        self._session = SymphonySession(
            session_token=session_token,
            key_manager_token=key_manager_token,
        )
        self._session.bot_user_id = await self.whoami()
        logger.info(f"Authenticated against {self._config.host} as user {self._session.bot_user_id}")
        return self._session

    @staticmethod
    def _token(response: httpx.Response) -> str:
        payload = response.json()
        token = payload.get("token") if isinstance(payload, dict) else None
        if not token:
            raise SymphonyError(f"No token in authentication response from {response.url}")
        return token

    async def whoami(self) -> int:
        """Return the user id the session is authenticated as."""
        response = await self._request(
            "GET", self._url(self._config.host, "/pod/v1/sessioninfo")
        )
        return int(response.json()["userId"])

    # ------------------------------------------------------------------
    # Users and streams
    # ------------------------------------------------------------------

    async def get_user(
        self,
        user_id: Optional[int] = None,
        email: Optional[str] = None,
        username: Optional[str] = None,
    ) -> SymphonyUser:
        """Look up one user by id, email or username.

        Raises:
            NotFoundError: If the pod has no matching user
            HttpStatusError: On any other failure
        """
        if user_id is not None:
            key, value = "uid", str(user_id)
        elif email is not None:
            key, value = "email", email
        elif username is not None:
            key, value = "username", username
        else:
            raise ValueError("One of user_id, email or username is required")

        url = self._url(self._config.host, "/pod/v2/user")
        try:
            response = await self._request("GET", url, params={key: value, "local": "true"})
        except HttpStatusError as e:
            if e.status == 404:
                raise NotFoundError(key, value) from e
            raise

        payload = self._json(response)
        if not payload:
            raise NotFoundError(key, value)
        return SymphonyUser.model_validate(payload)

    async def create_im(self, user_id: int) -> str:
        """Open (or reuse server-side) a one-to-one stream with a user.

        Returns:
            The stream id
        """
        response = await self._request(
            "POST", self._url(self._config.host, "/pod/v1/im/create"), json=[user_id]
        )
        return response.json()["id"]

    async def get_stream_type(self, stream_id: str) -> Optional[StreamType]:
        """Return the type of a stream, or None if the pod does not say."""
        response = await self._request(
            "GET", self._url(self._config.host, f"/pod/v1/streams/{stream_id}/info")
        )
        payload = self._json(response) or {}
        type_name = (payload.get("streamType") or {}).get("type")
        try:
            return StreamType(type_name) if type_name else None
        except ValueError:
            logger.debug(f"Unknown stream type {type_name} for {stream_id}")
            return None

    # ------------------------------------------------------------------
    # Datafeed
    # ------------------------------------------------------------------

    async def create_datafeed(self) -> Datafeed:
        """Create a new datafeed.

        Raises:
            TransientFeedError: On HTTP 400
            HttpStatusError: On any other failure
        """
        response = await self._request(
            "POST",
            self._url(self._config.resolved_agent_host, "/agent/v4/datafeed/create"),
            error_cls=TransientFeedError,
        )
        return Datafeed(id=response.json()["id"])

    async def read_datafeed(self, feed_id: str) -> list[V2Message]:
        """Long-read a datafeed.

        Returns:
            Message events in server order; other event kinds are skipped.
            Empty when the read timed out with no data.

        Raises:
            TransientFeedError: On HTTP 400 (feed invalid or expired)
            HttpStatusError: On any other failure
        """
        response = await self._request(
            "GET",
            self._url(self._config.resolved_agent_host, f"/agent/v4/datafeed/{feed_id}/read"),
            error_cls=TransientFeedError,
        )
        payload = self._json(response) or []
        events = []
        for item in payload:
            # Membership and room events carry no fromUserId
            kind = item.get("v2messageType", "V2Message")
            if kind != "V2Message":
                logger.debug(f"Skipping {kind} event {item.get('id')}")
                continue
            events.append(V2Message.model_validate(item))
        return events

    async def delete_datafeed(self, feed_id: str) -> None:
        """Delete a datafeed server-side."""
        await self._request(
            "DELETE",
            self._url(self._config.resolved_agent_host, f"/agent/v5/datafeeds/{feed_id}"),
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def send_message(self, stream_id: str, markup: str) -> dict[str, Any]:
        """Post a MessageML body to a stream.

        Returns:
            The created message as returned by the agent
        """
        response = await self._request(
            "POST",
            self._url(
                self._config.resolved_agent_host,
                f"/agent/v2/stream/{stream_id}/message/create",
            ),
            json={"message": markup, "format": "MESSAGEML"},
        )
        return self._json(response) or {}

    def clear_session(self) -> None:
        """Forget the session tokens; the next run authenticates again."""
        self._session = None

    async def aclose(self) -> None:
        """Drop the session and close the underlying HTTP client."""
        self.clear_session()
        if self._http is not None:
            await self._http.aclose()
            self._http = None
