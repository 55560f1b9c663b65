"""
debate_client.api.auth
~~~~~~~~~~~~~~~~~~~~~~

认证接口客户端 —— 注册与登录（表单提交）。

登录成功后的用户信息以本地持久化的参与者 ID 作为 ``id``，
用户名作为显示名称，供实时通道使用。
"""
from __future__ import annotations

import httpx

from debate_client.api.client import ApiError, raise_for_response
from debate_client.core.logging import get_logger
from debate_client.schemas.room import UserInfo
from debate_client.services.identity import IdentityStore

logger = get_logger(__name__)


class AuthApi:
    """认证接口。

    Attributes:
        http: 共享的 ``httpx.AsyncClient``。
        identity: 本地身份存储。
    """

    def __init__(self, http: httpx.AsyncClient, identity: IdentityStore) -> None:
        self.http = http
        self.identity = identity

    async def signup(self, username: str, password: str) -> None:
        """注册新账号。"""
        await self._post("signup", username, password, fallback="注册失败")
        logger.info("注册成功 | username=%s", username)

    async def login(self, username: str, password: str) -> UserInfo:
        """登录并在本地记住用户。"""
        await self._post("login", username, password, fallback="登录失败")
        user = UserInfo(id=self.identity.get_or_create_participant_id(), name=username)
        self.identity.save_user(user)
        logger.info("登录成功 | username=%s", username)
        return user

    async def _post(self, endpoint: str, username: str, password: str, *, fallback: str) -> httpx.Response:
        try:
            response = await self.http.post(
                f"/api/auth/{endpoint}",
                data={"username": username, "password": password},
            )
        except httpx.HTTPError as e:
            logger.error("认证请求失败: %s", e)
            raise ApiError("服务器错误") from e
        raise_for_response(response, fallback)
        return response
