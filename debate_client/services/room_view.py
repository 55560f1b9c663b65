"""
debate_client.services.room_view
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

讨论室视图模型 —— 封装一个房间在界面存续期间的全部实时状态。

每个 ``DebateRoomView`` 拥有独立的消息日志、在线人数与输入提示，
关闭视图时全部丢弃，房间之间互不干扰。
"""
from __future__ import annotations

import uuid
from collections.abc import Callable

from debate_client.core.config import Settings, get_settings
from debate_client.core.logging import get_logger
from debate_client.realtime.channel import ConnectionState, RoomChannel
from debate_client.realtime.client import RealtimeClient
from debate_client.realtime.message_log import MessageLog, is_own
from debate_client.realtime.participants import ParticipantCounter
from debate_client.realtime.presence import TypingIndicator, TypingSignaler
from debate_client.realtime.router import RoomDestinations
from debate_client.schemas.realtime import (
    ChatMessage,
    ChatSendPayload,
    ParticipantCount,
    ParticipantIdentity,
    RoomEvent,
    TypingSignal,
    utc_timestamp,
)

logger = get_logger(__name__)

ViewListener = Callable[["DebateRoomView", RoomEvent | None], None]


class DebateRoomView:
    """一个讨论室的实时视图。

    Attributes:
        room_id: 房间 ID。
        identity: 本地参与者身份。
        messages: 去重后的有序消息日志。
        participants: 在线人数。
        typing: 输入提示信号器。
        channel: 活动通道（``open()`` 之后可用）。
    """

    def __init__(
        self,
        room_id: str | int,
        identity: ParticipantIdentity,
        client: RealtimeClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.room_id = str(room_id)
        self.identity = identity
        self.client = client or RealtimeClient(self.settings)
        self.messages = MessageLog()
        self.participants = ParticipantCounter()
        self.channel: RoomChannel | None = None
        self._listeners: list[ViewListener] = []

        destinations = RoomDestinations(
            self.room_id,
            topic_prefix=self.settings.TOPIC_PREFIX,
            app_prefix=self.settings.APP_PREFIX,
        )
        self.typing = TypingSignaler(
            self.room_id,
            identity,
            destinations.typing,
            self._publish,
            ttl=self.settings.TYPING_TTL,
            on_change=lambda _slot: self._notify(None),
        )
        self._destinations = destinations

    # ── 生命周期 ──────────────────────────────────────────────────────

    def open(self) -> RoomChannel:
        """建立（或复用）本房间的通道。必须在事件循环中调用。"""
        self.channel = self.client.connect(self.room_id, self.identity, self.handle_event)
        return self.channel

    async def close(self) -> None:
        """离开房间：拆除通道、取消输入提示计时、丢弃房间状态。可重复调用。"""
        channel, self.channel = self.channel, None
        if channel is not None:
            await self.client.teardown(channel)
        self.typing.cancel()
        self.messages.clear()
        self._listeners.clear()

    async def __aenter__(self) -> DebateRoomView:
        self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def state(self) -> ConnectionState:
        if self.channel is None:
            return ConnectionState.DISCONNECTED
        return self.channel.state

    @property
    def current_typer(self) -> TypingIndicator | None:
        return self.typing.current

    def add_listener(self, listener: ViewListener) -> None:
        """注册界面刷新回调：事件被处理后（或输入提示过期时传 None）调用。"""
        self._listeners.append(listener)

    # ── 入站 ──────────────────────────────────────────────────────────

    def handle_event(self, event: RoomEvent) -> None:
        """单一分发函数：按事件类型交给对应的消费者。"""
        if isinstance(event, ChatMessage):
            if not self.messages.ingest(event):
                return
        elif isinstance(event, ParticipantCount):
            self.participants.apply(event)
        elif isinstance(event, TypingSignal):
            # typing 组件自己会触发刷新
            self.typing.receive(event)
            return
        else:
            raise TypeError(f"未知事件类型: {type(event).__name__}")
        self._notify(event)

    def is_own(self, message: ChatMessage) -> bool:
        return is_own(message, self.identity.id)

    # ── 出站 ──────────────────────────────────────────────────────────

    async def send_message(self, text: str) -> ChatSendPayload | None:
        """发送聊天消息。

        消息不会预先写入日志，而是等待服务端回显后再出现。

        Returns:
            已发送的负载；文本为空或通道未连接时返回 None。
        """
        text = text.strip()
        if not text:
            return None
        payload = ChatSendPayload(
            room_id=self.room_id,
            sender=self.identity.display_name,
            sender_id=self.identity.id,
            message=text,
            timestamp=utc_timestamp(),
            message_id=str(uuid.uuid4()),
        )
        if await self._publish(self._destinations.send, payload.to_wire()):
            return payload
        return None

    async def emit_typing(self) -> bool:
        """输入变化时调用，每次都会发送信号。"""
        return await self.typing.emit()

    async def _publish(self, destination: str, payload: dict) -> bool:
        if self.channel is None:
            logger.warning("⚠️ 视图未打开，消息未发送 | room=%s", self.room_id)
            return False
        return await self.channel.send_frame(destination, payload)

    def _notify(self, event: RoomEvent | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(self, event)
            except Exception as e:
                logger.error("视图回调异常: %s", e, exc_info=True)
