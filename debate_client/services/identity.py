"""
debate_client.services.identity
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

本地身份存储 —— 为当前用户目录维护一个稳定的参与者 ID。

ID 首次需要时生成（``uuid4``）并写入本地 JSON 文件，之后只读。
文件读写失败时退化为仅本进程有效的内存 ID，不抛异常。
"""
from __future__ import annotations

import json
import os
import uuid
from typing import Any

from pydantic import ValidationError

from debate_client.core.config import settings
from debate_client.core.logging import get_logger
from debate_client.schemas.realtime import ParticipantIdentity
from debate_client.schemas.room import UserInfo

logger = get_logger(__name__)

_ID_KEY = "userId"
_USER_KEY = "user"


class IdentityStore:
    """基于 JSON 文件的身份存储。

    Attributes:
        path: 身份文件路径。
    """

    def __init__(self, path: str | None = None) -> None:
        self.path: str = path or settings.identity_path
        self._participant_id: str | None = None

    def _read(self) -> dict[str, Any]:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("身份文件读取失败，忽略: %s", e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> bool:
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            tmp_path = f"{self.path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning("身份文件写入失败，本次会话仅使用内存 ID: %s", e)
            return False
        return True

    def get_or_create_participant_id(self) -> str:
        """获取参与者 ID，不存在时生成并持久化。幂等。"""
        if self._participant_id is not None:
            return self._participant_id

        data = self._read()
        stored = data.get(_ID_KEY)
        if isinstance(stored, str) and stored:
            self._participant_id = stored
            return stored

        participant_id = str(uuid.uuid4())
        data[_ID_KEY] = participant_id
        if self._write(data):
            logger.info("已生成新的参与者 ID: %s", participant_id)
        self._participant_id = participant_id
        return participant_id

    def resolve_identity(self, display_name: str) -> ParticipantIdentity:
        """组合参与者 ID 与显示名称，作为建立通道时显式传入的身份。"""
        return ParticipantIdentity(id=self.get_or_create_participant_id(), display_name=display_name)

    def save_user(self, user: UserInfo) -> None:
        """记住最近一次登录的用户。"""
        data = self._read()
        data[_ID_KEY] = self.get_or_create_participant_id()
        data[_USER_KEY] = user.model_dump()
        self._write(data)

    def load_user(self) -> UserInfo | None:
        """读取最近一次登录的用户，没有或格式错误时返回 None。"""
        raw = self._read().get(_USER_KEY)
        if raw is None:
            return None
        try:
            return UserInfo.model_validate(raw)
        except ValidationError as e:
            logger.warning("已保存的用户信息无效，忽略: %s", e)
            return None

    def clear_user(self) -> None:
        """登出：删除已保存的用户，保留参与者 ID。"""
        data = self._read()
        if data.pop(_USER_KEY, None) is not None:
            self._write(data)
