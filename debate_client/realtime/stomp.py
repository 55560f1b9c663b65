"""
debate_client.realtime.stomp
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

STOMP 1.2 文本帧编解码。

一个 WebSocket 文本消息承载一个完整的 STOMP 帧::

    COMMAND\\n
    header:value\\n
    ...\\n
    \\n
    body\\0

单独的 ``\\n`` / ``\\r\\n`` 是心跳，不是帧。
"""
from __future__ import annotations

from dataclasses import dataclass, field

NULL: str = "\x00"

# CONNECT / CONNECTED 帧的头部不做转义（STOMP 1.2 规定）
_UNESCAPED_COMMANDS: frozenset[str] = frozenset({"CONNECT", "CONNECTED", "STOMP"})

_ESCAPES: dict[str, str] = {"\\": "\\\\", "\n": "\\n", ":": "\\c", "\r": "\\r"}
_UNESCAPES: dict[str, str] = {"\\": "\\", "n": "\n", "c": ":", "r": "\r"}


class StompProtocolError(ValueError):
    """STOMP 帧格式错误，或服务端返回了 ERROR 帧。"""


@dataclass
class StompFrame:
    """一个 STOMP 帧。

    Attributes:
        command: 命令，如 ``SEND`` / ``MESSAGE``。
        headers: 头部字典（重复头部仅保留第一个，STOMP 1.2 语义）。
        body: 正文文本。
    """

    command: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""


def _escape(value: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def _unescape(value: str) -> str:
    out: list[str] = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        if nxt not in _UNESCAPES:
            raise StompProtocolError(f"非法的头部转义序列: \\{nxt}")
        out.append(_UNESCAPES[nxt])
    return "".join(out)


def is_heartbeat(raw: str) -> bool:
    """是否为心跳（只含换行）。"""
    return raw.strip("\r\n") == ""


def encode_frame(frame: StompFrame) -> str:
    """把 ``StompFrame`` 编码为一条 WebSocket 文本消息。"""
    escape = frame.command not in _UNESCAPED_COMMANDS
    lines = [frame.command]
    for key, value in frame.headers.items():
        if escape:
            key, value = _escape(key), _escape(value)
        lines.append(f"{key}:{value}")
    if frame.body and "content-length" not in frame.headers:
        lines.append(f"content-length:{len(frame.body.encode('utf-8'))}")
    return "\n".join(lines) + "\n\n" + frame.body + NULL


def decode_frame(raw: str) -> StompFrame:
    """把一条 WebSocket 文本消息解码为 ``StompFrame``。

    Raises:
        StompProtocolError: 缺少 NULL 结束符、头部格式错误或为空帧。
    """
    # 帧前可能带有心跳换行
    raw = raw.lstrip("\r\n")
    end = raw.find(NULL)
    if end < 0:
        raise StompProtocolError("帧缺少 NULL 结束符")
    raw = raw[:end]

    # 头部与正文以第一个空行分隔（LF 或 CRLF）
    candidates = [(raw.find(sep), sep) for sep in ("\n\n", "\r\n\r\n") if sep in raw]
    if not candidates:
        raise StompProtocolError("帧缺少头部与正文之间的空行")
    index, sep = min(candidates)
    head, body = raw[:index], raw[index + len(sep):]

    lines = head.replace("\r\n", "\n").split("\n")
    command = lines[0].strip()
    if not command:
        raise StompProtocolError("帧缺少命令")

    unescape = command not in _UNESCAPED_COMMANDS
    headers: dict[str, str] = {}
    for line in lines[1:]:
        key, colon, value = line.partition(":")
        if not colon:
            raise StompProtocolError(f"头部格式错误: {line!r}")
        if unescape:
            key, value = _unescape(key), _unescape(value)
        headers.setdefault(key, value)

    length = headers.get("content-length")
    if length is not None:
        try:
            size = int(length)
        except ValueError:
            raise StompProtocolError(f"content-length 非法: {length}") from None
        encoded = body.encode("utf-8")
        if size < len(encoded):
            body = encoded[:size].decode("utf-8", errors="replace")

    return StompFrame(command=command, headers=headers, body=body)


def connect_frame(host: str, heartbeat: str = "0,0", **extra: str) -> StompFrame:
    """构造 CONNECT 帧。"""
    headers = {"accept-version": "1.2,1.1,1.0", "host": host, "heart-beat": heartbeat}
    headers.update(extra)
    return StompFrame("CONNECT", headers)


def send_frame(destination: str, body: str, content_type: str = "application/json") -> StompFrame:
    """构造 SEND 帧。"""
    return StompFrame("SEND", {"destination": destination, "content-type": content_type}, body)


def subscribe_frame(destination: str, subscription_id: str) -> StompFrame:
    """构造 SUBSCRIBE 帧。"""
    return StompFrame("SUBSCRIBE", {"id": subscription_id, "destination": destination, "ack": "auto"})


def unsubscribe_frame(subscription_id: str) -> StompFrame:
    """构造 UNSUBSCRIBE 帧。"""
    return StompFrame("UNSUBSCRIBE", {"id": subscription_id})


def disconnect_frame() -> StompFrame:
    """构造 DISCONNECT 帧。"""
    return StompFrame("DISCONNECT")
