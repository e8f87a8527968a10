"""
Pytest configuration and fixtures for symbridge tests.
"""

import asyncio
import json
from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio
from typer.testing import CliRunner

from symbridge.config import REQUIRED_SETTINGS, Config, SymphonyConfig
from symbridge.config.loader import SYMPHONY_ENV_VARS
from symbridge.platforms.adapters.symphony import SymphonyAdapter
from symbridge.platforms.models import TextMessage
from symbridge.platforms.protocol import Robot

HOST = "foundation.symphony.com"


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until true or fail the test on timeout."""

    async def _wait() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_wait(), timeout)


class FakeRobot(Robot):
    """In-memory robot recording what the adapter delivers."""

    def __init__(self, name: str = "hubot") -> None:
        super().__init__(name=name)
        self.received: list[TextMessage] = []
        self.errors: list[Exception] = []
        self.on("error", self.errors.append)

    def receive(self, message: TextMessage) -> None:
        self.received.append(message)
        self.emit("received", message)

    async def wait_for_received(self, count: int = 1, timeout: float = 2.0) -> None:
        await wait_until(lambda: len(self.received) >= count, timeout)


class FakeSymphony:
    """Mock Symphony pod, agent and key manager behind an httpx transport.

    Counters make the datafeed fail with HTTP 400 a given number of times.
    Messages posted by the adapter are recorded in ``messages``.
    """

    bot_user_id = 7215545078229
    bot_email = "bot@symphony.com"
    real_user_id = 7215545078461
    real_user_name = "johndoe"
    real_user_email = "johndoe@symphony.com"
    stream_id = "WLwnGbzxIdU8ZmPUjAs_bn___qulefJUdA"
    im_stream_id = "IM_STREAM_johndoe"

    def __init__(self, start_with_hello_world: bool = True) -> None:
        self.datafeed_create_http400_count = 0
        self.datafeed_read_http400_count = 0
        self.datafeed_read_status: int | None = None
        self.messages: list[dict[str, str]] = []
        self.requests: list[httpx.Request] = []
        self.feeds_created = 0
        self.create_attempts = 0
        self.user_lookups = 0
        self.stream_types = {self.stream_id: "ROOM", self.im_stream_id: "IM"}
        self._pending: list[dict[str, Any]] = []
        self._message_counter = 0

        self.users = {
            self.real_user_id: {
                "id": self.real_user_id,
                "emailAddress": self.real_user_email,
                "firstName": "John",
                "lastName": "Doe",
                "displayName": "John Doe",
                "username": self.real_user_name,
                "company": "Symphony",
            },
            self.bot_user_id: {
                "id": self.bot_user_id,
                "emailAddress": self.bot_email,
                "displayName": "Hubot",
                "username": "hubot",
            },
        }

        if start_with_hello_world:
            self.push_message("<messageML>Hello World</messageML>")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def push_message(
        self,
        message: str,
        stream_id: str | None = None,
        from_user_id: int | None = None,
        message_type: str = "V2Message",
    ) -> None:
        """Queue an event for the next datafeed read."""
        self._message_counter += 1
        self._pending.append(
            {
                "id": f"msg-{self._message_counter}",
                "timestamp": "1461808889185",
                "v2messageType": message_type,
                "streamId": stream_id or self.stream_id,
                "message": message,
                "fromUserId": from_user_id or self.real_user_id,
            }
        )

    def push_event(self, event: dict[str, Any]) -> None:
        """Queue a raw datafeed event, such as a membership change."""
        self._pending.append(event)

    async def wait_for_messages(self, count: int = 1, timeout: float = 2.0) -> None:
        await wait_until(lambda: len(self.messages) >= count, timeout)

    def _find_user(self, params: httpx.QueryParams) -> dict[str, Any] | None:
        for user in self.users.values():
            if "uid" in params and str(user["id"]) == params["uid"]:
                return user
            if "email" in params and user["emailAddress"] == params["email"]:
                return user
            if "username" in params and user["username"] == params["username"]:
                return user
        return None

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        method = request.method

        if path == "/sessionauth/v1/authenticate":
            return httpx.Response(200, json={"name": "sessionToken", "token": "SESSION_TOKEN"})
        if path == "/keyauth/v1/authenticate":
            return httpx.Response(200, json={"name": "keyManagerToken", "token": "KM_TOKEN"})

        if request.headers.get("sessionToken") != "SESSION_TOKEN":
            return httpx.Response(401, json={"message": "Invalid session"})

        if path == "/pod/v1/sessioninfo":
            return httpx.Response(200, json={"userId": self.bot_user_id})

        if path == "/pod/v2/user":
            self.user_lookups += 1
            user = self._find_user(request.url.params)
            if user is None:
                return httpx.Response(404 if "uid" in request.url.params else 204)
            return httpx.Response(200, json=user)

        if path == "/pod/v1/im/create":
            return httpx.Response(200, json={"id": self.im_stream_id})

        if path.startswith("/pod/v1/streams/") and path.endswith("/info"):
            stream_id = path.split("/")[4]
            stream_type = self.stream_types.get(stream_id, "ROOM")
            return httpx.Response(200, json={"id": stream_id, "streamType": {"type": stream_type}})

        if path == "/agent/v4/datafeed/create":
            self.create_attempts += 1
            if self.datafeed_create_http400_count > 0:
                self.datafeed_create_http400_count -= 1
                return httpx.Response(400, json={"code": 400, "message": "Bad request"})
            self.feeds_created += 1
            return httpx.Response(200, json={"id": f"feed-{self.feeds_created}"})

        if path.startswith("/agent/v4/datafeed/") and path.endswith("/read"):
            if self.datafeed_read_http400_count > 0:
                self.datafeed_read_http400_count -= 1
                return httpx.Response(400, json={"code": 400, "message": "Could not find a datafeed"})
            if self.datafeed_read_status is not None:
                return httpx.Response(self.datafeed_read_status)
            if self._pending:
                batch, self._pending = self._pending, []
                return httpx.Response(200, json=batch)
            # Stand in for the server holding the long poll open
            await asyncio.sleep(0.01)
            return httpx.Response(204)

        if method == "DELETE" and path.startswith("/agent/v5/datafeeds/"):
            return httpx.Response(204)

        if path.startswith("/agent/v2/stream/") and path.endswith("/message/create"):
            stream_id = path.split("/")[4]
            body = json.loads(request.content)
            self.messages.append({"stream_id": stream_id, "message": body["message"]})
            return httpx.Response(
                200,
                json={
                    "id": f"sent-{len(self.messages)}",
                    "streamId": stream_id,
                    "message": body["message"],
                    "fromUserId": self.bot_user_id,
                },
            )

        return httpx.Response(404, json={"message": f"No route for {method} {path}"})


@pytest.fixture(autouse=True)
def isolated_env(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Keep tests away from the real home directory and environment."""
    monkeypatch.setenv("SYMBRIDGE_HOME", str(temp_dir / ".symbridge"))
    for env_name in SYMPHONY_ENV_VARS:
        monkeypatch.delenv(env_name, raising=False)
    yield temp_dir / ".symbridge"


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def symphony_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set the four required connection variables."""
    values = {
        "HUBOT_SYMPHONY_HOST": HOST,
        "HUBOT_SYMPHONY_PUBLIC_KEY": "./test/resources/publicKey.pem",
        "HUBOT_SYMPHONY_PRIVATE_KEY": "./test/resources/privateKey.pem",
        "HUBOT_SYMPHONY_PASSPHRASE": "changeit",
    }
    assert set(values) == set(REQUIRED_SETTINGS.values())
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    return values


@pytest.fixture
def symphony_config() -> SymphonyConfig:
    """Provide connection settings pointing at the fake host."""
    return SymphonyConfig(
        host=HOST,
        public_key="./test/resources/publicKey.pem",
        private_key="./test/resources/privateKey.pem",
        passphrase="changeit",
    )


@pytest.fixture
def fake_symphony() -> FakeSymphony:
    """Provide a fake platform that starts with a Hello World message."""
    return FakeSymphony()


@pytest.fixture
def quiet_symphony() -> FakeSymphony:
    """Provide a fake platform with no queued messages."""
    return FakeSymphony(start_with_hello_world=False)


@pytest.fixture
def robot() -> FakeRobot:
    return FakeRobot()


@pytest_asyncio.fixture
async def make_adapter(
    symphony_config: SymphonyConfig,
) -> AsyncGenerator[Callable[..., SymphonyAdapter], None]:
    """Build adapters wired to a fake platform and close them afterwards."""
    created: list[SymphonyAdapter] = []

    def _make(robot: Robot, fake: FakeSymphony, **options: Any) -> SymphonyAdapter:
        adapter = SymphonyAdapter.use(
            robot,
            options={"backoff_initial": 0, "shutdown_func": lambda: None, **options},
            config=Config(symphony=symphony_config),
            transport=fake.transport(),
        )
        created.append(adapter)
        return adapter

    yield _make

    for adapter in created:
        await adapter.aclose()
