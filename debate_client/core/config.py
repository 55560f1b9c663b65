"""
debate_client.core.config
~~~~~~~~~~~~~~~~~~~~~~~~~

集中式配置管理，基于 pydantic-settings 自动从 ``.env`` 文件加载。

支持多环境配置（dev / test / prod），加载顺序为:
  1. 环境变量（最高优先级）
  2. ``.env.{ENVIRONMENT}`` 环境专属文件
  3. ``.env`` 基础文件
  4. 字段默认值（最低优先级）
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 读取当前环境标识（在 Settings 类定义之前，用于决定加载哪个 .env 文件）
_CURRENT_ENV: str = os.getenv("ENVIRONMENT", "dev")


class Settings(BaseSettings):
    """全局配置对象，字段值按如下优先级加载：环境变量 > .env.{env} > .env > 默认值。"""

    # ── 基础 ──────────────────────────────────────────────────────────
    PROJECT_NAME: str = Field(default="Debate Room Client", description="项目名称")
    VERSION: str = Field(default="0.1.0", description="版本号")
    ENVIRONMENT: Literal["dev", "test", "prod"] = Field(
        default="dev",
        description="运行环境：dev / test / prod",
    )

    # ── HTTP 接口 ─────────────────────────────────────────────────────
    API_BASE_URL: str = Field(
        default="http://localhost:8080",
        description="房间 / 认证 REST 接口根地址",
    )
    HTTP_TIMEOUT: float = Field(default=10.0, description="HTTP 请求超时（秒）")

    # ── 实时通道（STOMP over WebSocket）──────────────────────────────
    WS_URL: str = Field(
        default="ws://localhost:8080/ws/websocket",
        description="STOMP 端点的原生 WebSocket 地址",
    )
    TOPIC_PREFIX: str = Field(default="/topic/debate", description="订阅主题前缀")
    APP_PREFIX: str = Field(default="/app/debate", description="发送目的地前缀")
    RECONNECT_DELAY: float = Field(
        default=5.0,
        description="断线重连间隔（秒，固定间隔，非指数退避）",
    )
    CONNECT_TIMEOUT: float = Field(default=10.0, description="建连 + STOMP 握手超时（秒）")
    TYPING_TTL: float = Field(default=3.0, description="“正在输入”提示的存活时间（秒）")

    # ── 本地存储 ──────────────────────────────────────────────────────
    IDENTITY_FILE: str = Field(
        default="~/.debate_client/identity.json",
        description="本地身份文件路径（保存参与者 ID 与登录用户）",
    )

    LOG_LEVEL: str = Field(default="INFO", description="日志级别（可被环境属性覆盖）")

    # ── Pydantic Settings ─────────────────────────────────────────────
    # 先加载 .env.{env} 再加载 .env，前者优先级更高
    model_config = SettingsConfigDict(
        env_file=(f".env.{_CURRENT_ENV}", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── 环境判断 ──────────────────────────────────────────────────────

    @property
    def is_prod(self) -> bool:
        """当前是否为生产环境。"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_test(self) -> bool:
        """当前是否为测试环境。"""
        return self.ENVIRONMENT == "test"

    @property
    def is_dev(self) -> bool:
        """当前是否为开发环境。"""
        return self.ENVIRONMENT == "dev"

    # ── 环境差异化行为 ────────────────────────────────────────────────

    @property
    def effective_log_level(self) -> str:
        """根据环境自动推断日志级别。

        - dev  → INFO
        - test → DEBUG（方便排查测试失败）
        - prod → WARNING（减少噪音）

        如果环境变量中显式设置了 LOG_LEVEL，会覆盖此默认推断。
        """
        env_log = os.getenv("LOG_LEVEL")
        if env_log:
            return env_log
        return {
            "dev": "INFO",
            "test": "DEBUG",
            "prod": "WARNING",
        }.get(self.ENVIRONMENT, "INFO")

    @property
    def identity_path(self) -> str:
        """展开 ``~`` 后的身份文件绝对路径。"""
        return os.path.expanduser(self.IDENTITY_FILE)


@lru_cache
def get_settings() -> Settings:
    """获取全局 Settings 单例（带缓存，避免重复解析 .env）。"""
    return Settings()


settings: Settings = get_settings()
