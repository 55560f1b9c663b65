"""
debate_client.realtime.participants
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

在线人数跟踪 —— 最新值覆盖，不做单调性约束（有人离开时人数可以下降）。
"""
from __future__ import annotations

from debate_client.schemas.realtime import ParticipantCount, parse_count


class ParticipantCounter:
    """房间在线人数。初始为 1（观看者自己）。"""

    def __init__(self, initial: int = 1) -> None:
        self.value: int = initial

    def apply(self, event: ParticipantCount) -> int:
        self.value = event.count
        return self.value

    def on_count_frame(self, body: str) -> int:
        """解析原始帧正文并覆盖当前值。

        Raises:
            ValueError: 正文无法解析为非负整数。
        """
        return self.apply(ParticipantCount(count=parse_count(body)))
