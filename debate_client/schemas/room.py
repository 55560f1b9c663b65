"""
debate_client.schemas.room
~~~~~~~~~~~~~~~~~~~~~~~~~~

房间 / 认证 REST 接口的 Pydantic 请求/响应模型。
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

TITLE_MAX_LENGTH: int = 50
DESCRIPTION_MAX_LENGTH: int = 200


class RoomSummary(BaseModel):
    """房间列表中的单个条目。"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="房间 ID")
    title: str = Field(..., description="标题")
    description: str = Field(default="", description="简介")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class RoomDetail(BaseModel):
    """房间详情。"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(..., description="标题")
    description: str = Field(default="", description="简介（Markdown）")
    created_at: datetime | None = Field(default=None, alias="createdAt", description="创建时间")
    participants_count: int = Field(
        default=1, alias="participantsCount", description="参与人数（缺省视为 1）",
    )

    @field_validator("participants_count", mode="before")
    @classmethod
    def _default_count(cls, value: Any) -> Any:
        # 服务端返回 0 / null 时按 1 人展示
        return value or 1


class RoomCreateRequest(BaseModel):
    """创建房间的请求体。"""

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH, description="标题")
    description: str = Field(
        ..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH, description="简介",
    )


class UserInfo(BaseModel):
    """登录后的用户信息，作为实时通道的身份来源。"""

    id: str = Field(..., min_length=1, description="参与者 ID")
    name: str = Field(..., min_length=1, description="用户名（显示名称）")
