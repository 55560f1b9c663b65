"""
debate_client.realtime.channel
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间通道 —— 一个房间的单一逻辑连接：建连、固定间隔重连、进房公告与拆除。

连接状态（对外可观察）::

    DISCONNECTED → CONNECTING → CONNECTED → DISCONNECTED → CONNECTING ...

生命周期阶段（一次性保护都编码在这里，而不是零散的布尔标记）::

    IDLE → AWAITING_JOIN → JOINED
      └──────────┴────────────┴──→ CLOSED（终态）

- 只有 ``IDLE`` 能被激活，重复激活直接报错
- 进房公告只在 ``AWAITING_JOIN → JOINED`` 这一次迁移时发送，重连与重新订阅都不会再发
"""
from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Callable
from enum import Enum
from typing import Any

from websockets.exceptions import ConnectionClosed, WebSocketException

from debate_client.core.logging import get_logger
from debate_client.realtime.router import EventHandler, RoomDestinations, SubscriptionRouter
from debate_client.realtime.stomp import StompProtocolError
from debate_client.realtime.transport import Transport
from debate_client.schemas.realtime import JoinSendPayload, ParticipantIdentity

logger = get_logger(__name__)

# 建连阶段可预期的失败，均触发重试
_CONNECT_ERRORS = (OSError, TimeoutError, asyncio.TimeoutError, WebSocketException, StompProtocolError)
# 已连接阶段的断线
_DROP_ERRORS = (ConnectionClosed, ConnectionError, OSError)


class ConnectionState(str, Enum):
    """对外可观察的连接状态。"""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ChannelPhase(str, Enum):
    """通道生命周期阶段。"""

    IDLE = "idle"
    AWAITING_JOIN = "awaiting_join"
    JOINED = "joined"
    CLOSED = "closed"


_TRANSITIONS: dict[ChannelPhase, frozenset[ChannelPhase]] = {
    ChannelPhase.IDLE: frozenset({ChannelPhase.AWAITING_JOIN, ChannelPhase.CLOSED}),
    ChannelPhase.AWAITING_JOIN: frozenset({ChannelPhase.JOINED, ChannelPhase.CLOSED}),
    ChannelPhase.JOINED: frozenset({ChannelPhase.CLOSED}),
    ChannelPhase.CLOSED: frozenset(),
}


class ChannelStateError(RuntimeError):
    """非法的生命周期迁移（例如重复激活同一个通道）。"""


class RoomChannel:
    """单个房间的实时通道。

    Attributes:
        room_id: 房间 ID。
        identity: 本地参与者身份（显式传入，不依赖全局单例）。
        destinations: 本房间的主题与目的地。
        router: 订阅路由器。
        reconnect_delay: 断线后的固定重连间隔（秒）。
    """

    def __init__(
        self,
        room_id: str,
        identity: ParticipantIdentity,
        on_event: EventHandler,
        *,
        transport_factory: Callable[[], Transport],
        destinations: RoomDestinations | None = None,
        reconnect_delay: float = 5.0,
    ) -> None:
        self.room_id = room_id
        self.identity = identity
        self.destinations = destinations or RoomDestinations(room_id)
        self.router = SubscriptionRouter(self.destinations, on_event)
        self.reconnect_delay = reconnect_delay
        self._transport_factory = transport_factory
        self._transport: Transport | None = None
        self._task: asyncio.Task[None] | None = None
        self._phase = ChannelPhase.IDLE
        self._state = ConnectionState.DISCONNECTED
        self._connected = asyncio.Event()
        self._closed = asyncio.Event()
        self._closing: asyncio.Future[None] | None = None
        self._state_listeners: list[Callable[[ConnectionState], None]] = []

    # ── 状态 ──────────────────────────────────────────────────────────

    @property
    def phase(self) -> ChannelPhase:
        return self._phase

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def is_closed(self) -> bool:
        return self._phase is ChannelPhase.CLOSED

    def add_state_listener(self, listener: Callable[[ConnectionState], None]) -> Callable[[], None]:
        """注册连接状态监听器，返回取消注册的函数。"""
        self._state_listeners.append(listener)

        def remove() -> None:
            if listener in self._state_listeners:
                self._state_listeners.remove(listener)

        return remove

    async def wait_connected(self, timeout: float | None = None) -> bool:
        """等待进入 Connected 状态。超时或通道已关闭时返回 False。"""
        if self.is_closed:
            return False
        waiters = {
            asyncio.ensure_future(self._connected.wait()),
            asyncio.ensure_future(self._closed.wait()),
        }
        try:
            await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
        return self.is_connected and not self.is_closed

    def _advance(self, phase: ChannelPhase) -> None:
        if phase not in _TRANSITIONS[self._phase]:
            raise ChannelStateError(
                f"通道阶段不允许 {self._phase.value} → {phase.value} | room={self.room_id}",
            )
        logger.debug("通道阶段 %s → %s | room=%s", self._phase.value, phase.value, self.room_id)
        self._phase = phase

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        if state is ConnectionState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()
        logger.info("🔌 连接状态: %s | room=%s", state.value, self.room_id)
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error("状态监听器异常: %s", e, exc_info=True)

    # ── 生命周期 ──────────────────────────────────────────────────────

    def start(self) -> None:
        """激活通道并在后台开始连接。

        Raises:
            ChannelStateError: 通道已被激活或已关闭。
        """
        self._advance(ChannelPhase.AWAITING_JOIN)
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"room-channel-{self.room_id}",
        )

    async def _run(self) -> None:
        """连接循环：失败或断线后按固定间隔重试，直到通道关闭。"""
        while not self.is_closed:
            transport = self._transport_factory()
            self._transport = transport
            self._set_state(ConnectionState.CONNECTING)
            try:
                await transport.open()
            except _CONNECT_ERRORS as e:
                logger.warning("连接失败: %s | room=%s", e, self.room_id)
            except Exception as e:
                logger.error("连接异常: %s | room=%s", e, self.room_id, exc_info=True)
            else:
                await self._serve(transport)

            self._set_state(ConnectionState.DISCONNECTED)
            # 关闭完成前保留引用，close() 需要等它结束
            self._closing = asyncio.ensure_future(transport.close())
            try:
                await asyncio.shield(self._closing)
            finally:
                self._closing = None
                if self._transport is transport:
                    self._transport = None
            if self.is_closed:
                break
            logger.info("⏳ %.1fs 后重连 | room=%s", self.reconnect_delay, self.room_id)
            await asyncio.sleep(self.reconnect_delay)

    async def _serve(self, transport: Transport) -> None:
        """已连接阶段：订阅 → 进房公告（仅首次）→ 按到达顺序分发帧。"""
        self._set_state(ConnectionState.CONNECTED)
        try:
            await self.router.subscribe_all(transport)
            if self._phase is ChannelPhase.AWAITING_JOIN:
                await self._announce_join()
            async for frame in transport.frames():
                self.router.dispatch(frame)
            logger.info("服务端关闭了连接 | room=%s", self.room_id)
        except _DROP_ERRORS as e:
            logger.warning("连接中断: %s | room=%s", e, self.room_id)
        except Exception as e:
            logger.error("通道异常: %s | room=%s", e, self.room_id, exc_info=True)
        finally:
            self.router.forget()

    async def _announce_join(self) -> None:
        payload = JoinSendPayload(
            sender_id=self.identity.id,
            sender=self.identity.display_name,
        )
        if await self.send_frame(self.destinations.join, payload.to_wire()):
            self._advance(ChannelPhase.JOINED)
            logger.info("👋 已发送进房公告 | room=%s | sender=%s", self.room_id, self.identity.display_name)

    async def send_frame(self, destination: str, payload: dict[str, Any]) -> bool:
        """发送一帧。仅在 Connected 状态下发送，否则丢弃并告警。

        不排队、不重试；需要可靠送达的调用方应在观察到重连后自行重发。

        Returns:
            是否已交给传输层发送。
        """
        transport = self._transport
        if self._state is not ConnectionState.CONNECTED or transport is None:
            logger.warning("⚠️ 通道未连接，消息未发送 | room=%s | dest=%s", self.room_id, destination)
            return False

        body = json.dumps(payload, ensure_ascii=False)
        try:
            await transport.send(destination, body)
        except _DROP_ERRORS as e:
            logger.warning("发送失败（连接已断开）: %s | room=%s", e, self.room_id)
            return False
        logger.debug("📤 已发送 | dest=%s", destination)
        return True

    async def close(self) -> None:
        """拆除通道：退订 → 取消重连 / 收帧任务 → 关闭连接。可重复调用。"""
        if self.is_closed:
            return
        self._advance(ChannelPhase.CLOSED)
        self._closed.set()

        transport, self._transport = self._transport, None
        closing = self._closing
        if transport is not None and self.is_connected:
            await self.router.unsubscribe_all(transport)
        else:
            self.router.forget()

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if closing is not None:
            await closing
        if transport is not None:
            await transport.close()
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("🧹 通道已拆除 | room=%s", self.room_id)
