"""
tests.test_stomp
~~~~~~~~~~~~~~~~

STOMP 1.2 文本帧编解码单元测试。
"""
from __future__ import annotations

import pytest

from debate_client.realtime.stomp import (
    StompFrame,
    StompProtocolError,
    connect_frame,
    decode_frame,
    encode_frame,
    is_heartbeat,
    send_frame,
    subscribe_frame,
)


class TestEncode:
    """测试帧编码。"""

    def test_send_frame_layout(self) -> None:
        """SEND 帧应包含目的地、内容类型、content-length 与 NULL 结束符。"""
        raw = encode_frame(send_frame("/app/debate/42/send", '{"message":"hi"}'))

        head, body = raw.split("\n\n", 1)
        lines = head.split("\n")
        assert lines[0] == "SEND"
        assert "destination:/app/debate/42/send" in lines
        assert "content-type:application/json" in lines
        assert "content-length:16" in lines
        assert body == '{"message":"hi"}\x00'

    def test_content_length_counts_utf8_bytes(self) -> None:
        """content-length 按 UTF-8 字节数计算。"""
        raw = encode_frame(send_frame("/d", "안녕"))
        assert "content-length:6" in raw

    def test_header_values_are_escaped(self) -> None:
        """普通帧的头部需要转义冒号与换行。"""
        raw = encode_frame(StompFrame("SEND", {"note": "a:b\nc"}))
        assert "note:a\\cb\\nc" in raw

    def test_connect_headers_are_not_escaped(self) -> None:
        """CONNECT 帧头部不转义。"""
        raw = encode_frame(connect_frame("localhost:8080"))
        assert raw.startswith("CONNECT\n")
        assert "host:localhost:8080" in raw
        assert "accept-version:1.2,1.1,1.0" in raw

    def test_subscribe_frame(self) -> None:
        frame = subscribe_frame("/topic/debate/42", "sub-0")
        assert frame.command == "SUBSCRIBE"
        assert frame.headers["id"] == "sub-0"
        assert frame.headers["destination"] == "/topic/debate/42"


class TestDecode:
    """测试帧解码。"""

    def test_message_frame(self) -> None:
        """MESSAGE 帧应解析出头部与正文。"""
        raw = "MESSAGE\ndestination:/topic/debate/42\nsubscription:sub-0\nmessage-id:7\n\n{\"a\":1}\x00"
        frame = decode_frame(raw)

        assert frame.command == "MESSAGE"
        assert frame.headers["subscription"] == "sub-0"
        assert frame.body == '{"a":1}'

    def test_crlf_line_endings(self) -> None:
        raw = "CONNECTED\r\nversion:1.2\r\n\r\n\x00"
        frame = decode_frame(raw)
        assert frame.command == "CONNECTED"
        assert frame.headers["version"] == "1.2"
        assert frame.body == ""

    def test_leading_heartbeat_is_skipped(self) -> None:
        frame = decode_frame("\n\nMESSAGE\nsubscription:s\n\nx\x00")
        assert frame.command == "MESSAGE"
        assert frame.body == "x"

    def test_header_unescape(self) -> None:
        frame = decode_frame("MESSAGE\nnote:a\\cb\\nc\n\n\x00")
        assert frame.headers["note"] == "a:b\nc"

    def test_repeated_header_keeps_first(self) -> None:
        frame = decode_frame("MESSAGE\nfoo:1\nfoo:2\n\n\x00")
        assert frame.headers["foo"] == "1"

    def test_content_length_truncates_body(self) -> None:
        frame = decode_frame("MESSAGE\ncontent-length:2\n\nabc\x00")
        assert frame.body == "ab"

    def test_roundtrip_preserves_body_with_blank_lines(self) -> None:
        """正文中的空行不应被误认为头部分隔符。"""
        original = send_frame("/d", "line1\n\nline2")
        frame = decode_frame(encode_frame(original))
        assert frame.body == "line1\n\nline2"
        assert frame.headers["destination"] == "/d"

    @pytest.mark.parametrize(
        "raw",
        [
            "MESSAGE\nsubscription:s\n\nbody-without-null",
            "MESSAGE\nbroken-header\n\n\x00",
            "MESSAGE\nbad:\\x\n\n\x00",
            "\n\n\x00",
        ],
    )
    def test_malformed_frames_raise(self, raw: str) -> None:
        with pytest.raises(StompProtocolError):
            decode_frame(raw)

    def test_protocol_error_is_value_error(self) -> None:
        """解析错误应能被统一的 ValueError 处理分支捕获。"""
        assert issubclass(StompProtocolError, ValueError)


def test_heartbeat_detection() -> None:
    assert is_heartbeat("\n")
    assert is_heartbeat("\r\n")
    assert not is_heartbeat("MESSAGE\n\n\x00")
