"""
debate_client.api.rooms
~~~~~~~~~~~~~~~~~~~~~~~

讨论室 REST 接口客户端。

端点:
  - ``GET    /debate/rooms``            → 房间列表
  - ``POST   /debate/rooms``            → 创建房间
  - ``GET    /debate/rooms/{room_id}``  → 房间详情
  - ``DELETE /debate/rooms/{room_id}``  → 删除房间
"""
from __future__ import annotations

import httpx

from debate_client.api.client import ApiError, raise_for_response
from debate_client.core.logging import get_logger
from debate_client.schemas.room import RoomCreateRequest, RoomDetail, RoomSummary

logger = get_logger(__name__)

_ROOMS_PATH = "/debate/rooms"


class RoomApi:
    """房间接口。

    Attributes:
        http: 共享的 ``httpx.AsyncClient``。
    """

    def __init__(self, http: httpx.AsyncClient) -> None:
        self.http = http

    async def list_rooms(self) -> list[RoomSummary]:
        """获取房间列表。"""
        response = await self._request("GET", _ROOMS_PATH, fallback="获取房间列表失败")
        return [RoomSummary.model_validate(item) for item in response.json()]

    async def create_room(self, title: str, description: str) -> RoomSummary | None:
        """创建房间。标题 ≤ 50 字、简介 ≤ 200 字，均不能为空。

        Raises:
            pydantic.ValidationError: 本地校验失败，不会发出请求。
            ApiError: 服务端拒绝。

        Returns:
            服务端返回的新房间；响应体为空时返回 None。
        """
        body = RoomCreateRequest(title=title, description=description)
        response = await self._request(
            "POST", _ROOMS_PATH, json=body.model_dump(), fallback="创建房间失败",
        )
        logger.info("房间已创建 | title=%s", body.title)
        if not response.content:
            return None
        try:
            return RoomSummary.model_validate(response.json())
        except ValueError:
            return None

    async def get_room(self, room_id: str | int) -> RoomDetail:
        """获取房间详情。"""
        response = await self._request(
            "GET", f"{_ROOMS_PATH}/{room_id}", fallback="获取房间信息失败",
        )
        return RoomDetail.model_validate(response.json())

    async def delete_room(self, room_id: str | int) -> None:
        """删除房间。"""
        await self._request("DELETE", f"{_ROOMS_PATH}/{room_id}", fallback="删除房间失败")
        logger.info("房间已删除 | room=%s", room_id)

    async def _request(self, method: str, url: str, *, fallback: str, **kwargs: object) -> httpx.Response:
        try:
            response = await self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("请求失败: %s %s -> %s", method, url, e)
            raise ApiError(fallback) from e
        raise_for_response(response, fallback)
        return response
