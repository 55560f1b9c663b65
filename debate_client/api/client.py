"""
debate_client.api.client
~~~~~~~~~~~~~~~~~~~~~~~~

HTTP 客户端工厂 —— 房间 / 认证接口共享的 ``httpx.AsyncClient`` 创建入口，
以及统一的错误响应处理。
"""
from __future__ import annotations

import httpx

from debate_client.core.config import Settings, get_settings


class ApiError(Exception):
    """服务端返回非 2xx 响应，或请求未能完成。

    Attributes:
        status_code: HTTP 状态码（网络错误时为 None）。
        message: 人类可读的错误信息（优先取响应体中的 ``message`` 字段）。
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def create_http_client(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """创建指向 ``API_BASE_URL`` 的异步 HTTP 客户端。

    Args:
        settings: 配置对象，默认全局配置。
        transport: 可选的自定义传输（测试中传入 ``httpx.MockTransport``）。
    """
    cfg = settings or get_settings()
    return httpx.AsyncClient(
        base_url=cfg.API_BASE_URL,
        timeout=cfg.HTTP_TIMEOUT,
        transport=transport,
    )


def raise_for_response(response: httpx.Response, fallback: str) -> None:
    """非 2xx 时抛出 ``ApiError``，错误信息取自响应体的 ``message`` 字段。"""
    if response.is_success:
        return
    message = fallback
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        message = data["message"]
    raise ApiError(message, status_code=response.status_code)
