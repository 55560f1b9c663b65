"""
debate_client.realtime.transport
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

STOMP over WebSocket 传输层 —— 一次物理连接的建立、收发与关闭。

本层不负责重连，也不关心房间语义；重连与生命周期由 ``RoomChannel`` 管理。
"""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Protocol

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from debate_client.core.logging import get_logger
from debate_client.realtime.stomp import (
    StompFrame,
    StompProtocolError,
    connect_frame,
    decode_frame,
    disconnect_frame,
    encode_frame,
    is_heartbeat,
    send_frame,
    subscribe_frame,
    unsubscribe_frame,
)

logger = get_logger(__name__)

STOMP_SUBPROTOCOLS: list[str] = ["v12.stomp", "v11.stomp", "v10.stomp"]


class Transport(Protocol):
    """``RoomChannel`` 依赖的传输接口（测试中以内存实现替换）。"""

    async def open(self) -> None: ...

    async def send(self, destination: str, body: str) -> None: ...

    async def subscribe(self, destination: str, subscription_id: str) -> None: ...

    async def unsubscribe(self, subscription_id: str) -> None: ...

    async def close(self) -> None: ...

    def frames(self) -> AsyncIterator[StompFrame]: ...


class StompTransport:
    """基于 ``websockets`` 的 STOMP 客户端连接。

    Attributes:
        url: WebSocket 地址。
        host: CONNECT 帧中的 ``host`` 头。
    """

    def __init__(
        self,
        url: str,
        *,
        host: str = "/",
        open_timeout: float = 10.0,
        connect_headers: dict[str, str] | None = None,
    ) -> None:
        self.url = url
        self.host = host
        self.open_timeout = open_timeout
        self.connect_headers = connect_headers or {}
        self._ws: ClientConnection | None = None

    async def open(self) -> None:
        """建立 WebSocket 并完成 STOMP CONNECT / CONNECTED 握手。

        Raises:
            OSError: 网络不可达。
            TimeoutError: 握手超时。
            StompProtocolError: 服务端拒绝（ERROR 帧）或返回了意外帧。
            websockets.exceptions.WebSocketException: WebSocket 层错误。
        """
        self._ws = await connect(
            self.url,
            subprotocols=STOMP_SUBPROTOCOLS,
            open_timeout=self.open_timeout,
        )
        try:
            await self._write(connect_frame(self.host, **self.connect_headers))
            frame = await asyncio.wait_for(self._read_frame(), timeout=self.open_timeout)
        except BaseException:
            await self._ws.close()
            self._ws = None
            raise

        if frame.command == "ERROR":
            await self.close()
            raise StompProtocolError(f"STOMP 握手被拒绝: {frame.headers.get('message', frame.body)}")
        if frame.command != "CONNECTED":
            await self.close()
            raise StompProtocolError(f"握手期间收到意外帧: {frame.command}")
        logger.debug("STOMP 已握手 | url=%s | version=%s", self.url, frame.headers.get("version"))

    async def send(self, destination: str, body: str) -> None:
        await self._write(send_frame(destination, body))

    async def subscribe(self, destination: str, subscription_id: str) -> None:
        await self._write(subscribe_frame(destination, subscription_id))

    async def unsubscribe(self, subscription_id: str) -> None:
        await self._write(unsubscribe_frame(subscription_id))

    async def close(self) -> None:
        """发送 DISCONNECT 并关闭 WebSocket（可重复调用）。"""
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.send(encode_frame(disconnect_frame()))
        except ConnectionClosed:
            pass
        await ws.close()

    async def frames(self) -> AsyncIterator[StompFrame]:
        """逐个产出入站帧，连接断开时结束迭代。

        心跳被跳过；无法解析的帧记录日志后丢弃，不影响后续帧。
        """
        ws = self._ws
        if ws is None:
            return
        try:
            async for raw in ws:
                text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
                if is_heartbeat(text):
                    continue
                try:
                    frame = decode_frame(text)
                except StompProtocolError as e:
                    logger.warning("STOMP 帧解析失败，已丢弃: %s", e)
                    continue
                yield frame
        except ConnectionClosed as e:
            logger.info("WebSocket 连接断开: %s", e)

    async def _read_frame(self) -> StompFrame:
        ws = self._ws
        if ws is None:
            raise ConnectionError("传输未打开")
        while True:
            raw = await ws.recv()
            text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
            if not is_heartbeat(text):
                return decode_frame(text)

    async def _write(self, frame: StompFrame) -> None:
        if self._ws is None:
            raise ConnectionError("传输未打开")
        try:
            await self._ws.send(encode_frame(frame))
        except ConnectionClosed as e:
            raise ConnectionError(f"连接已关闭: {e}") from e
