"""
debate_client.realtime.presence
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

“正在输入”信号 —— 发送端每次输入变化都发信号（不做本地防抖），
接收端维护单一的“当前输入者”槽位，并在固定时长后自动清除。
"""
from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from debate_client.core.logging import get_logger
from debate_client.schemas.realtime import ParticipantIdentity, TypingSendPayload, TypingSignal

logger = get_logger(__name__)

Publisher = Callable[[str, dict], Awaitable[bool]]


@dataclass(frozen=True)
class TypingIndicator:
    """当前输入者，仅在 ``clock() < expires_at`` 时有效。"""

    sender_id: str | None
    sender_name: str
    expires_at: float


class TypingSignaler:
    """单房间的输入状态信号器。

    Attributes:
        room_id: 房间 ID。
        identity: 本地参与者身份，用于过滤自己的信号。
        ttl: 提示存活时长（秒）。
    """

    def __init__(
        self,
        room_id: str,
        identity: ParticipantIdentity,
        destination: str,
        publish: Publisher,
        *,
        ttl: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        on_change: Callable[[TypingIndicator | None], None] | None = None,
    ) -> None:
        self.room_id = room_id
        self.identity = identity
        self.ttl = ttl
        self._destination = destination
        self._publish = publish
        self._clock = clock
        self._on_change = on_change
        self._slot: TypingIndicator | None = None
        self._timer: asyncio.TimerHandle | None = None

    async def emit(self) -> bool:
        """发送一次“正在输入”信号。未连接时由通道丢弃并返回 False。"""
        payload = TypingSendPayload(
            room_id=self.room_id,
            sender=self.identity.display_name,
            sender_id=self.identity.id,
        )
        return await self._publish(self._destination, payload.to_wire())

    def receive(self, signal: TypingSignal) -> None:
        """处理入站信号：忽略自己，其他人覆盖槽位并重置过期计时。"""
        if signal.sender_id is not None and signal.sender_id == self.identity.id:
            return

        self._cancel_timer()
        self._slot = TypingIndicator(
            sender_id=signal.sender_id,
            sender_name=signal.sender_name,
            expires_at=self._clock() + self.ttl,
        )
        self._timer = asyncio.get_running_loop().call_later(self.ttl, self._expire)
        self._notify()

    @property
    def current(self) -> TypingIndicator | None:
        """当前有效的输入者（已过期则为 None）。"""
        slot = self._slot
        if slot is None or self._clock() >= slot.expires_at:
            return None
        return slot

    def cancel(self) -> None:
        """取消挂起的过期计时并清空槽位（视图关闭时调用，不触发回调）。"""
        self._cancel_timer()
        self._slot = None

    def _expire(self) -> None:
        self._timer = None
        self._slot = None
        self._notify()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self._slot)
        except Exception as e:
            logger.error("输入状态回调异常: %s", e, exc_info=True)
