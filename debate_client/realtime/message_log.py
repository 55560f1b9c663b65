"""
debate_client.realtime.message_log
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

消息日志 —— 按到达顺序追加、按消息 ID 去重的聊天记录。

本地发送的消息不会预先插入；日志只由聊天主题的入站帧（包括自己消息的回显）填充，
因此日志顺序就是帧在聊天主题上到达的顺序。
"""
from __future__ import annotations

from collections.abc import Iterator

from debate_client.core.logging import get_logger
from debate_client.schemas.realtime import ChatMessage

logger = get_logger(__name__)


class MessageLog:
    """只追加的有序消息日志。"""

    def __init__(self) -> None:
        self._messages: list[ChatMessage] = []
        self._keys: set[tuple[str, ...]] = set()

    def ingest(self, message: ChatMessage) -> bool:
        """追加一条消息；重复消息被静默吸收。

        Returns:
            是否追加成功（重复时为 False）。
        """
        key = message.dedup_key()
        if key in self._keys:
            logger.debug("重复消息已忽略: %s", key[:2])
            return False
        if key[0] == "composite":
            logger.debug("消息缺少 messageId，使用组合键去重 | sender=%s", message.sender_name)
        self._keys.add(key)
        self._messages.append(message)
        return True

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def clear(self) -> None:
        self._messages.clear()
        self._keys.clear()

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(self._messages)


def is_own(message: ChatMessage, participant_id: str) -> bool:
    """是否为本人消息（读取时计算，不存储在消息上）。"""
    return message.sender_id is not None and message.sender_id == participant_id
