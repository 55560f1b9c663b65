"""
debate_client.schemas.realtime
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

实时通道的 Pydantic 模型 —— 入站事件（聊天 / 输入中 / 在线人数）与出站负载。

入站帧统一经 ``decode_event()`` 解码为带标签的 ``RoomEvent``，
由单一分发函数消费，不在业务层做临时的字段嗅探。
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Topic(str, Enum):
    """每个房间订阅的三个逻辑主题。"""

    CHAT = "chat"
    PARTICIPANTS = "participants"
    TYPING = "typing"


class _WireModel(BaseModel):
    """线上字段使用驼峰别名，Python 侧使用蛇形命名。"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


# ── 身份 ──────────────────────────────────────────────────────────────

class ParticipantIdentity(_WireModel):
    """本地参与者身份。``id`` 是判断“是否本人消息”的唯一依据。"""

    id: str = Field(..., min_length=1, description="持久化的参与者 ID")
    display_name: str = Field(..., min_length=1, description="显示名称")


# ── 入站事件 ──────────────────────────────────────────────────────────

class ChatMessage(_WireModel):
    """一条聊天消息（来自聊天主题的广播，包括自己发送后的回显）。"""

    kind: Literal["chat"] = Field(default="chat", exclude=True)
    message_id: str | None = Field(default=None, alias="messageId")
    room_id: str | None = Field(default=None, alias="roomId")
    sender_id: str | None = Field(default=None, alias="senderId")
    sender_name: str = Field(..., alias="sender")
    text: str = Field(..., alias="message")
    timestamp: str = Field(default="")

    @field_validator("room_id", "message_id", "sender_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        # 服务端可能用数字 ID
        if isinstance(value, int):
            return str(value)
        return value

    def dedup_key(self) -> tuple[str, ...]:
        """去重键：优先使用服务端消息 ID，缺失时退化为 (发送者, 时间戳, 文本)。"""
        if self.message_id:
            return ("id", self.message_id)
        return ("composite", self.sender_name, self.timestamp, self.text)


class TypingSignal(_WireModel):
    """“正在输入”信号。"""

    kind: Literal["typing"] = Field(default="typing", exclude=True)
    sender_id: str | None = Field(default=None, alias="senderId")
    sender_name: str = Field(..., alias="sender")
    room_id: str | None = Field(default=None, alias="roomId")

    @field_validator("room_id", "sender_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class ParticipantCount(_WireModel):
    """在线人数（最新值覆盖）。"""

    kind: Literal["participants"] = Field(default="participants", exclude=True)
    count: int = Field(..., ge=0)


RoomEvent = Union[ChatMessage, TypingSignal, ParticipantCount]

# 显式 ``type`` 字段到主题的映射（大小写不敏感）
_TYPE_ALIASES: dict[str, Topic] = {
    "chat": Topic.CHAT,
    "message": Topic.CHAT,
    "talk": Topic.CHAT,
    "typing": Topic.TYPING,
    "participants": Topic.PARTICIPANTS,
    "participant_count": Topic.PARTICIPANTS,
    "count": Topic.PARTICIPANTS,
}


def parse_count(body: str) -> int:
    """解析在线人数帧：支持纯数字 ``"5"`` 或 ``{"count": 5}`` / ``{"participantsCount": 5}``。

    Raises:
        ValueError: 无法解析为非负整数。
    """
    text = body.strip()
    if text.lstrip("-").isdigit():
        return _non_negative(int(text))
    data = json.loads(text)
    if isinstance(data, dict):
        for key in ("count", "participantsCount", "participants"):
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, str)):
                continue
            return _non_negative(int(value))
        raise ValueError(f"在线人数帧缺少计数字段: {text[:80]}")
    if isinstance(data, int) and not isinstance(data, bool):
        return _non_negative(data)
    raise ValueError(f"无法解析在线人数帧: {text[:80]}")


def _non_negative(value: int) -> int:
    if value < 0:
        raise ValueError(f"在线人数不能为负: {value}")
    return value


def classify(topic: Topic, payload: Any) -> Topic:
    """确定帧的判别类型：显式 ``type`` 字段 > ``typing: true`` 标记 > 来源主题。"""
    if isinstance(payload, dict):
        declared = payload.get("type")
        if isinstance(declared, str):
            try:
                return _TYPE_ALIASES[declared.lower()]
            except KeyError:
                raise ValueError(f"未知的帧类型: {declared}") from None
        if payload.get("typing") is True:
            return Topic.TYPING
    return topic


def decode_event(topic: Topic, body: str) -> RoomEvent:
    """把一帧文本解码为 ``RoomEvent``。

    Args:
        topic: 帧到达时所在的订阅主题。
        body: STOMP 帧正文。

    Raises:
        ValueError: JSON 不合法、类型未知或字段校验失败
            （pydantic ``ValidationError`` 也是 ``ValueError`` 的子类）。
    """
    if topic is Topic.PARTICIPANTS:
        return ParticipantCount(count=parse_count(body))

    payload = json.loads(body)
    kind = classify(topic, payload)
    if kind is Topic.PARTICIPANTS:
        return ParticipantCount(count=parse_count(body))
    if not isinstance(payload, dict):
        raise ValueError(f"帧正文不是 JSON 对象: {body[:80]}")
    if kind is Topic.TYPING:
        return TypingSignal.model_validate(payload)
    return ChatMessage.model_validate(payload)


# ── 出站负载 ──────────────────────────────────────────────────────────

def utc_timestamp() -> str:
    """ISO-8601 UTC 时间戳（毫秒精度）。"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ChatSendPayload(_WireModel):
    """发送聊天消息的负载。"""

    room_id: str = Field(..., alias="roomId")
    sender: str
    sender_id: str = Field(..., alias="senderId")
    message: str = Field(..., min_length=1)
    timestamp: str
    message_id: str = Field(..., alias="messageId")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class TypingSendPayload(_WireModel):
    """发送“正在输入”信号的负载。"""

    typing: Literal[True] = True
    room_id: str = Field(..., alias="roomId")
    sender: str
    sender_id: str = Field(..., alias="senderId")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class JoinSendPayload(_WireModel):
    """进入房间的公告负载（每个连接生命周期仅发送一次）。"""

    sender_id: str = Field(..., alias="senderId")
    sender: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
