"""
tests.test_room_view
~~~~~~~~~~~~~~~~~~~~

DebateRoomView 端到端场景测试：发送 → 服务端回显 → 日志去重，
在线人数、输入提示与关闭时的状态清理。
"""
from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from conftest import FakeHub, wait_for
from debate_client.core.config import Settings
from debate_client.realtime.channel import ConnectionState
from debate_client.realtime.client import RealtimeClient
from debate_client.schemas.realtime import ChatMessage, ParticipantIdentity
from debate_client.services.room_view import DebateRoomView

CHAT = "/topic/debate/42"
PARTICIPANTS = "/topic/debate/42/participants"
TYPING = "/topic/debate/42/typing"
SEND = "/app/debate/42/send"
TYPING_SEND = "/app/debate/42/typing"


def make_view(hub: FakeHub, identity: ParticipantIdentity, settings: Settings) -> DebateRoomView:
    client = RealtimeClient(settings, transport_factory=hub)
    return DebateRoomView(42, identity, client=client, settings=settings)


class TestSendAndEcho:
    """测试发送与回显去重。"""

    @pytest.mark.asyncio
    async def test_send_publishes_and_echo_is_not_duplicated(
        self, hub: FakeHub, alice: ParticipantIdentity, fast_settings: Settings,
    ) -> None:
        """房间 42、身份 u1/Alice 发送 "hi"：发布一帧，回显只进入日志一次。"""
        async with make_view(hub, alice, fast_settings) as view:
            await view.channel.wait_connected(timeout=1)

            sent = await view.send_message("hi")

            assert sent is not None
            published = hub.sent(SEND)
            assert len(published) == 1
            assert published[0]["senderId"] == "u1"
            assert published[0]["sender"] == "Alice"
            assert published[0]["message"] == "hi"
            assert published[0]["roomId"] == "42"
            assert published[0]["messageId"] == sent.message_id
            # 等待回显，发送本身不会写入日志
            assert len(view.messages) == 0

            hub.current.push(CHAT, published[0])
            hub.current.push(CHAT, published[0])
            await wait_for(lambda: len(view.messages) == 1)
            await asyncio.sleep(0.02)

            assert len(view.messages) == 1
            message = view.messages.messages[0]
            assert message.text == "hi"
            assert view.is_own(message) is True

    @pytest.mark.asyncio
    async def test_other_participant_message_not_own(
        self, hub: FakeHub, alice: ParticipantIdentity, bob: ParticipantIdentity, fast_settings: Settings,
    ) -> None:
        async with make_view(hub, alice, fast_settings) as view:
            await view.channel.wait_connected(timeout=1)
            hub.current.push(CHAT, {
                "roomId": "42", "sender": bob.display_name, "senderId": bob.id,
                "message": "반갑습니다", "timestamp": "2025-01-01T10:00:00Z", "messageId": "m-9",
            })
            await wait_for(lambda: len(view.messages) == 1)

            assert view.is_own(view.messages.messages[0]) is False

    @pytest.mark.asyncio
    async def test_blank_text_not_sent(
        self, hub: FakeHub, alice: ParticipantIdentity, fast_settings: Settings,
    ) -> None:
        async with make_view(hub, alice, fast_settings) as view:
            await view.channel.wait_connected(timeout=1)

            assert await view.send_message("   ") is None
            assert hub.sent(SEND) == []

    @pytest.mark.asyncio
    async def test_send_while_disconnected_returns_none(
        self, hub: FakeHub, alice: ParticipantIdentity, fast_settings: Settings,
    ) -> None:
        hub.hang_open = True
        async with make_view(hub, alice, fast_settings) as view:
            assert view.state is not ConnectionState.CONNECTED
            assert await view.send_message("hi") is None
        assert hub.sent() == []

    @pytest.mark.asyncio
    async def test_send_before_open_returns_none(
        self, hub: FakeHub, alice: ParticipantIdentity, fast_settings: Settings,
    ) -> None:
        view = make_view(hub, alice, fast_settings)

        assert view.state is ConnectionState.DISCONNECTED
        assert await view.send_message("hi") is None
        assert await view.emit_typing() is False


class TestRoomState:
    """测试在线人数与输入提示。"""

    @pytest.mark.asyncio
    async def test_participant_count_latest_value(
        self, hub: FakeHub, alice: ParticipantIdentity, fast_settings: Settings,
    ) -> None:
        async with make_view(hub, alice, fast_settings) as view:
            await view.channel.wait_connected(timeout=1)
            assert view.participants.value == 1

            hub.current.push(PARTICIPANTS, "5")
            hub.current.push(PARTICIPANTS, "3")
            await wait_for(lambda: view.participants.value == 3)

    @pytest.mark.asyncio
    async def test_typing_indicator_from_other_participant(
        self, hub: FakeHub, alice: ParticipantIdentity, fast_settings: Settings,
    ) -> None:
        async with make_view(hub, alice, fast_settings) as view:
            await view.channel.wait_connected(timeout=1)

            hub.current.push(TYPING, {"typing": True, "roomId": "42", "sender": "Alice", "senderId": "u1"})
            hub.current.push(TYPING, {"typing": True, "roomId": "42", "sender": "Bob", "senderId": "u2"})
            await wait_for(lambda: view.current_typer is not None)

            assert view.current_typer.sender_name == "Bob"
            # TYPING_TTL = 0.05s
            await wait_for(lambda: view.current_typer is None)

    @pytest.mark.asyncio
    async def test_emit_typing_publishes(
        self, hub: FakeHub, alice: ParticipantIdentity, fast_settings: Settings,
    ) -> None:
        async with make_view(hub, alice, fast_settings) as view:
            await view.channel.wait_connected(timeout=1)

            assert await view.emit_typing() is True

        assert hub.sent(TYPING_SEND) == [
            {"typing": True, "roomId": "42", "sender": "Alice", "senderId": "u1"},
        ]

    @pytest.mark.asyncio
    async def test_listeners_notified(
        self, hub: FakeHub, alice: ParticipantIdentity, fast_settings: Settings,
    ) -> None:
        listener = MagicMock()
        async with make_view(hub, alice, fast_settings) as view:
            view.add_listener(listener)
            await view.channel.wait_connected(timeout=1)

            hub.current.push(CHAT, {"sender": "Bob", "senderId": "u2", "message": "x", "messageId": "1"})
            hub.current.push(CHAT, {"sender": "Bob", "senderId": "u2", "message": "x", "messageId": "1"})
            await wait_for(lambda: listener.call_count >= 1)
            await asyncio.sleep(0.02)

            # 重复消息不触发刷新
            assert listener.call_count == 1
            assert isinstance(listener.call_args[0][1], ChatMessage)


class TestClose:
    """测试关闭视图。"""

    @pytest.mark.asyncio
    async def test_close_discards_state_and_cancels_timers(
        self, hub: FakeHub, alice: ParticipantIdentity, fast_settings: Settings,
    ) -> None:
        listener = MagicMock()
        view = make_view(hub, alice, fast_settings)
        view.add_listener(listener)
        view.open()
        await view.channel.wait_connected(timeout=1)

        hub.current.push(CHAT, {"sender": "Bob", "senderId": "u2", "message": "x", "messageId": "1"})
        hub.current.push(TYPING, {"typing": True, "sender": "Bob", "senderId": "u2"})
        await wait_for(lambda: len(view.messages) == 1 and view.current_typer is not None)
        calls_before = listener.call_count

        await view.close()
        await view.close()
        await asyncio.sleep(0.1)  # 超过 TYPING_TTL

        assert len(view.messages) == 0
        assert view.channel is None
        assert view.state is ConnectionState.DISCONNECTED
        assert listener.call_count == calls_before
        assert len(hub.actions("unsubscribe")) == 3
