"""
debate_client.main
~~~~~~~~~~~~~~~~~~

命令行入口 —— 房间管理、登录注册，以及终端里的实时讨论视图。

用法::

    debate-client rooms
    debate-client create "标题" "简介"
    debate-client show 42
    debate-client delete 42
    debate-client signup alice
    debate-client login alice
    debate-client chat 42 [--name Alice]
"""
from __future__ import annotations

import argparse
import asyncio
import contextlib
import getpass
import os
import signal
import sys
from datetime import datetime

from pydantic import ValidationError

from debate_client.api import ApiError, AuthApi, RoomApi, create_http_client
from debate_client.core.config import Settings, get_settings
from debate_client.core.logging import get_logger, setup_logging
from debate_client.realtime.channel import ConnectionState
from debate_client.realtime.client import RealtimeClient
from debate_client.schemas.realtime import ChatMessage, ParticipantCount, RoomEvent
from debate_client.services.identity import IdentityStore
from debate_client.services.room_view import DebateRoomView

logger = get_logger(__name__)

_QUIT_COMMANDS = {"/quit", "/exit"}
_READ_CHUNK = 4096


# ── 渲染 ──────────────────────────────────────────────────────────────

def _format_time(timestamp: str) -> str:
    """ISO-8601 → 本地 ``HH:MM``，无法解析时原样返回。"""
    try:
        moment = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return timestamp
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.strftime("%H:%M")


def render_message(view: DebateRoomView, message: ChatMessage) -> str:
    """渲染一条消息，本人消息带标记。"""
    marker = " (我)" if view.is_own(message) else ""
    return f"[{_format_time(message.timestamp)}] {message.sender_name}{marker}: {message.text}"


def _render(view: DebateRoomView, event: RoomEvent | None) -> None:
    if isinstance(event, ChatMessage):
        print(render_message(view, event))
    elif isinstance(event, ParticipantCount):
        print(f"👥 参与者: {event.count}名")
    elif event is None:
        typer = view.current_typer
        if typer is not None:
            print(f"✏️  {typer.sender_name} 正在输入...")


def _render_state(state: ConnectionState) -> None:
    labels = {
        ConnectionState.CONNECTING: "⏳ 正在连接...",
        ConnectionState.CONNECTED: "✅ 已连接",
        ConnectionState.DISCONNECTED: "🔌 连接已断开",
    }
    print(labels[state])


# ── 子命令 ────────────────────────────────────────────────────────────

async def _cmd_rooms(args: argparse.Namespace, cfg: Settings) -> int:
    async with create_http_client(cfg) as http:
        rooms = await RoomApi(http).list_rooms()
    if not rooms:
        print("暂无讨论室")
    for room in rooms:
        print(f"#{room.id}  {room.title}  —  {room.description}")
    return 0


async def _cmd_create(args: argparse.Namespace, cfg: Settings) -> int:
    async with create_http_client(cfg) as http:
        room = await RoomApi(http).create_room(args.title, args.description)
    print(f"讨论室已创建{f' (#{room.id})' if room else ''}")
    return 0


async def _cmd_show(args: argparse.Namespace, cfg: Settings) -> int:
    async with create_http_client(cfg) as http:
        detail = await RoomApi(http).get_room(args.room_id)
    created = detail.created_at.astimezone().strftime("%Y-%m-%d %H:%M") if detail.created_at else "-"
    print(f"🗣 {detail.title}")
    print(f"创建时间: {created}")
    print(f"参与者: {detail.participants_count}名")
    print()
    print(detail.description)
    return 0


async def _cmd_delete(args: argparse.Namespace, cfg: Settings) -> int:
    async with create_http_client(cfg) as http:
        await RoomApi(http).delete_room(args.room_id)
    print("讨论室已删除")
    return 0


async def _cmd_auth(args: argparse.Namespace, cfg: Settings) -> int:
    password = args.password or getpass.getpass("密码: ")
    store = IdentityStore(cfg.identity_path)
    async with create_http_client(cfg) as http:
        api = AuthApi(http, store)
        if args.command == "signup":
            await api.signup(args.username, password)
            print("✅ 注册成功！请登录。")
        else:
            user = await api.login(args.username, password)
            print(f"✅ 登录成功！({user.name})")
    return 0


async def _read_lines(queue: asyncio.Queue[str | None], fd: int | None = None) -> None:
    """把输入（默认标准输入）的行送入队列，EOF 时放入 None。

    直接读取文件描述符并自行切行：一次可读事件可能带来多行（粘贴、管道），
    若经由 ``sys.stdin`` 的缓冲读取，多余的行会滞留在缓冲区里。
    """
    loop = asyncio.get_running_loop()
    fd = sys.stdin.fileno() if fd is None else fd
    pending = b""

    def on_readable() -> None:
        nonlocal pending
        chunk = os.read(fd, _READ_CHUNK)
        if not chunk:
            loop.remove_reader(fd)
            if pending:
                queue.put_nowait(pending.decode("utf-8", errors="replace"))
                pending = b""
            queue.put_nowait(None)
            return
        *lines, pending = (pending + chunk).split(b"\n")
        for line in lines:
            queue.put_nowait(line.decode("utf-8", errors="replace") + "\n")

    loop.add_reader(fd, on_readable)
    try:
        await asyncio.Event().wait()
    finally:
        loop.remove_reader(fd)


async def _cmd_chat(
    args: argparse.Namespace,
    cfg: Settings,
    *,
    client: RealtimeClient | None = None,
    input_fd: int | None = None,
) -> int:
    store = IdentityStore(cfg.identity_path)
    user = store.load_user()
    name = args.name or (user.name if user else None)
    if not name:
        print("请先登录，或使用 --name 指定显示名称", file=sys.stderr)
        return 1

    async with create_http_client(cfg) as http:
        try:
            detail = await RoomApi(http).get_room(args.room_id)
        except ApiError as e:
            print(f"❗ {e.message}", file=sys.stderr)
        else:
            print(f"🗣 {detail.title}  (参与者: {detail.participants_count}名)")

    view = DebateRoomView(args.room_id, store.resolve_identity(name), client=client, settings=cfg)
    view.add_listener(_render)

    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    # 进程收到终止信号时同样拆除通道，避免遗留连接
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)

    lines: asyncio.Queue[str | None] = asyncio.Queue()
    reader = asyncio.create_task(_read_lines(lines, input_fd))
    stopper = asyncio.create_task(stop.wait())
    try:
        channel = view.open()
        channel.add_state_listener(_render_state)
        print("输入消息后回车发送，/typing 发送输入提示，/quit 退出")
        while not stop.is_set():
            getter = asyncio.create_task(lines.get())
            done, _ = await asyncio.wait({getter, stopper}, return_when=asyncio.FIRST_COMPLETED)
            if getter not in done:
                getter.cancel()
                break
            line = getter.result()
            if line is None or line.strip() in _QUIT_COMMANDS:
                break
            if line.strip() == "/typing":
                await view.emit_typing()
                continue
            if line.strip() and await view.send_message(line) is None:
                print("⚠️ 未连接，消息未发送")
    finally:
        reader.cancel()
        stopper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reader
        try:
            await view.close()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
    return 0


_COMMANDS = {
    "rooms": _cmd_rooms,
    "create": _cmd_create,
    "show": _cmd_show,
    "delete": _cmd_delete,
    "signup": _cmd_auth,
    "login": _cmd_auth,
    "chat": _cmd_chat,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="debate-client", description="讨论室命令行客户端")
    parser.add_argument("--log-level", default=None, help="日志级别（默认按环境推断）")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("rooms", help="列出讨论室")

    create = sub.add_parser("create", help="创建讨论室")
    create.add_argument("title")
    create.add_argument("description")

    for name, help_text in (("show", "查看讨论室详情"), ("delete", "删除讨论室")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("room_id")

    for name, help_text in (("signup", "注册"), ("login", "登录")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("username")
        p.add_argument("--password", default=None, help="不提供时交互输入")

    chat = sub.add_parser("chat", help="进入讨论室实时聊天")
    chat.add_argument("room_id")
    chat.add_argument("--name", default=None, help="显示名称（默认使用已登录用户名）")
    return parser


async def run(args: argparse.Namespace, cfg: Settings | None = None) -> int:
    """执行子命令，返回进程退出码。"""
    cfg = cfg or get_settings()
    try:
        return await _COMMANDS[args.command](args, cfg)
    except ApiError as e:
        print(f"❗ {e.message}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"❗ 输入不合法: {e.errors()[0]['msg']}", file=sys.stderr)
        return 2


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
