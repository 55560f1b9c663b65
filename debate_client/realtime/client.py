"""
debate_client.realtime.client
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

实时客户端入口 —— ``connect()`` 返回房间通道句柄，``teardown()`` 拆除。

同一房间同时最多一个活动通道：对已有活动（或正在建连）通道的房间再次 ``connect()``
会直接返回现有句柄，不会产生第二次建连。
"""
from __future__ import annotations

from collections.abc import Callable

from debate_client.core.config import Settings, get_settings
from debate_client.core.logging import get_logger
from debate_client.realtime.channel import RoomChannel
from debate_client.realtime.router import EventHandler, RoomDestinations
from debate_client.realtime.transport import StompTransport, Transport
from debate_client.schemas.realtime import ParticipantIdentity

logger = get_logger(__name__)


class RealtimeClient:
    """管理各房间的 ``RoomChannel``。

    Attributes:
        settings: 配置对象（地址、前缀、重连间隔）。
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport_factory: Callable[[], Transport] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport_factory = transport_factory or self._create_transport
        self._channels: dict[str, RoomChannel] = {}

    def _create_transport(self) -> Transport:
        return StompTransport(self.settings.WS_URL, open_timeout=self.settings.CONNECT_TIMEOUT)

    def connect(
        self,
        room_id: str | int,
        identity: ParticipantIdentity,
        on_event: EventHandler,
    ) -> RoomChannel:
        """打开（或复用）指定房间的通道。必须在事件循环中调用。"""
        room_key = str(room_id)
        existing = self._channels.get(room_key)
        if existing is not None and not existing.is_closed:
            logger.warning("房间已有活动通道，复用现有句柄 | room=%s", room_key)
            return existing

        channel = RoomChannel(
            room_key,
            identity,
            on_event,
            transport_factory=self._transport_factory,
            destinations=RoomDestinations(
                room_key,
                topic_prefix=self.settings.TOPIC_PREFIX,
                app_prefix=self.settings.APP_PREFIX,
            ),
            reconnect_delay=self.settings.RECONNECT_DELAY,
        )
        self._channels[room_key] = channel
        channel.start()
        logger.info("房间通道已激活 | room=%s | sender=%s", room_key, identity.display_name)
        return channel

    def get_channel(self, room_id: str | int) -> RoomChannel | None:
        return self._channels.get(str(room_id))

    async def teardown(self, channel: RoomChannel) -> None:
        """拆除通道（幂等）。"""
        await channel.close()
        if self._channels.get(channel.room_id) is channel:
            del self._channels[channel.room_id]

    async def close(self) -> None:
        """拆除全部通道。"""
        for channel in list(self._channels.values()):
            await self.teardown(channel)
