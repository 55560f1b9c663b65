"""
debate_client.realtime.router
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

订阅路由器 —— 管理某个房间的三个主题订阅，并把入站帧解码后分发给唯一的消费者。

- 每次进入 Connected 状态时重新订阅（断线后服务端订阅已失效）
- 解码失败只记录日志并丢弃该帧，不影响连接与其他订阅
- 退订先于关闭连接执行，退订后到达的帧一律丢弃
"""
from __future__ import annotations

import itertools
from collections.abc import Callable
from dataclasses import dataclass

from debate_client.core.logging import get_logger
from debate_client.realtime.stomp import StompFrame
from debate_client.realtime.transport import Transport
from debate_client.schemas.realtime import RoomEvent, Topic, decode_event

logger = get_logger(__name__)

EventHandler = Callable[[RoomEvent], None]


@dataclass(frozen=True)
class RoomDestinations:
    """某个房间的订阅主题与发送目的地。"""

    room_id: str
    topic_prefix: str = "/topic/debate"
    app_prefix: str = "/app/debate"

    def topic(self, topic: Topic) -> str:
        base = f"{self.topic_prefix}/{self.room_id}"
        if topic is Topic.CHAT:
            return base
        return f"{base}/{topic.value}"

    @property
    def send(self) -> str:
        return f"{self.app_prefix}/{self.room_id}/send"

    @property
    def typing(self) -> str:
        return f"{self.app_prefix}/{self.room_id}/typing"

    @property
    def join(self) -> str:
        return f"{self.app_prefix}/{self.room_id}/join"


class SubscriptionRouter:
    """房间级订阅路由器。

    Attributes:
        destinations: 本房间的主题 / 目的地。
    """

    def __init__(self, destinations: RoomDestinations, handler: EventHandler) -> None:
        self.destinations = destinations
        self._handler = handler
        self._subscriptions: dict[str, Topic] = {}
        self._ids = itertools.count()

    @property
    def active_topics(self) -> list[Topic]:
        """当前处于订阅状态的主题。"""
        return list(self._subscriptions.values())

    async def subscribe_all(self, transport: Transport) -> None:
        """订阅聊天、在线人数、输入中三个主题。"""
        self._subscriptions.clear()
        for topic in Topic:
            sub_id = f"sub-{next(self._ids)}"
            await transport.subscribe(self.destinations.topic(topic), sub_id)
            self._subscriptions[sub_id] = topic
        logger.debug("已订阅 %d 个主题 | room=%s", len(self._subscriptions), self.destinations.room_id)

    def forget(self) -> None:
        """连接断开后丢弃本地订阅表（服务端订阅已随连接失效）。"""
        self._subscriptions.clear()

    async def unsubscribe_all(self, transport: Transport) -> None:
        """先停止路由，再逐个发送 UNSUBSCRIBE。"""
        sub_ids = list(self._subscriptions)
        self._subscriptions.clear()
        for sub_id in sub_ids:
            try:
                await transport.unsubscribe(sub_id)
            except (ConnectionError, OSError) as e:
                logger.debug("退订失败（连接已断开）: %s", e)
                break

    def dispatch(self, frame: StompFrame) -> RoomEvent | None:
        """解码并分发一个入站帧。

        Returns:
            成功分发的事件；被丢弃时返回 None。
        """
        if frame.command == "ERROR":
            logger.error(
                "服务端返回 STOMP ERROR | room=%s | %s",
                self.destinations.room_id, frame.headers.get("message", frame.body[:200]),
            )
            return None
        if frame.command != "MESSAGE":
            logger.debug("忽略非 MESSAGE 帧: %s", frame.command)
            return None

        topic = self._subscriptions.get(frame.headers.get("subscription", ""))
        if topic is None:
            logger.debug("收到未订阅（或已退订）主题的帧，已丢弃: %s", frame.headers.get("destination"))
            return None

        try:
            event = decode_event(topic, frame.body)
        except ValueError as e:
            logger.warning("帧解析失败，已丢弃 | topic=%s | %s", topic.value, e)
            return None

        try:
            self._handler(event)
        except Exception as e:
            # 消费者异常不能拖垮通道
            logger.error("事件处理异常: %s", e, exc_info=True)
        return event
