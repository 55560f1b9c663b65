"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures —— 用内存中的假 STOMP 传输替代真实 WebSocket，
使实时通道的单元测试可在无网络环境下快速运行。
"""
from __future__ import annotations

import asyncio
import json
import os
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("ENVIRONMENT", "test")

from debate_client.core.config import Settings  # noqa: E402
from debate_client.realtime.stomp import StompFrame  # noqa: E402
from debate_client.schemas.realtime import ParticipantIdentity  # noqa: E402

_CLOSED = object()


class FakeTransport:
    """模拟一条 STOMP 连接，所有出站操作记录到共享的 ``hub.log``。"""

    def __init__(self, hub: FakeHub) -> None:
        self.hub = hub
        self.opened = False
        self.closed = False
        self.subscriptions: dict[str, str] = {}  # destination -> subscription id
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()

    async def open(self) -> None:
        if self.hub.fail_opens > 0:
            self.hub.fail_opens -= 1
            raise ConnectionRefusedError("connection refused")
        if self.hub.hang_open:
            await asyncio.Event().wait()
        self.opened = True

    async def send(self, destination: str, body: str) -> None:
        if self.closed:
            raise ConnectionError("transport closed")
        self.hub.log.append(("send", destination, json.loads(body)))

    async def subscribe(self, destination: str, subscription_id: str) -> None:
        self.subscriptions[destination] = subscription_id
        self.hub.log.append(("subscribe", destination, subscription_id))

    async def unsubscribe(self, subscription_id: str) -> None:
        self.hub.log.append(("unsubscribe", subscription_id, None))

    async def close(self) -> None:
        if self.closed:
            return
        if self.hub.close_delay:
            await asyncio.sleep(self.hub.close_delay)
        if not self.closed:
            self.closed = True
            self.hub.log.append(("close", None, None))
            self._inbox.put_nowait(_CLOSED)

    async def frames(self) -> AsyncIterator[StompFrame]:
        while True:
            item = await self._inbox.get()
            if item is _CLOSED:
                return
            yield item

    # ── 测试辅助 ──────────────────────────────────────────────────────

    def push(self, destination: str, body: str | dict[str, Any]) -> None:
        """模拟服务端向某个已订阅主题广播一帧。"""
        text = body if isinstance(body, str) else json.dumps(body)
        headers = {
            "destination": destination,
            "subscription": self.subscriptions.get(destination, "unknown"),
        }
        self._inbox.put_nowait(StompFrame("MESSAGE", headers, text))

    def push_frame(self, frame: StompFrame) -> None:
        self._inbox.put_nowait(frame)

    def drop(self) -> None:
        """模拟连接被服务端断开。"""
        self._inbox.put_nowait(_CLOSED)


class FakeHub:
    """假传输工厂：记录创建过的所有连接与出站操作。"""

    def __init__(self) -> None:
        self.transports: list[FakeTransport] = []
        self.log: list[tuple[str, Any, Any]] = []
        self.fail_opens = 0
        self.hang_open = False
        self.close_delay = 0.0

    def __call__(self) -> FakeTransport:
        transport = FakeTransport(self)
        self.transports.append(transport)
        return transport

    @property
    def current(self) -> FakeTransport:
        return self.transports[-1]

    def sent(self, destination: str | None = None) -> list[dict[str, Any]]:
        return [
            payload for action, dest, payload in self.log
            if action == "send" and (destination is None or dest == destination)
        ]

    def actions(self, name: str) -> list[tuple[str, Any, Any]]:
        return [entry for entry in self.log if entry[0] == name]


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """轮询等待条件成立，超时则断言失败。"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("等待条件超时")
        await asyncio.sleep(0.005)


@pytest.fixture()
def hub() -> FakeHub:
    return FakeHub()


@pytest.fixture()
def fast_settings(tmp_path: Any) -> Settings:
    """测试用配置：极短的重连间隔与输入提示时长。"""
    return Settings(
        ENVIRONMENT="test",
        RECONNECT_DELAY=0.01,
        TYPING_TTL=0.05,
        IDENTITY_FILE=str(tmp_path / "identity.json"),
    )


@pytest.fixture()
def alice() -> ParticipantIdentity:
    return ParticipantIdentity(id="u1", display_name="Alice")


@pytest.fixture()
def bob() -> ParticipantIdentity:
    return ParticipantIdentity(id="u2", display_name="Bob")
