"""Assetto Corsa 服务器 UDP 查询客户端"""
import asyncio
import logging
import struct
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from app.config import settings
from app.models import ServerProtocolReply, ServerQueryTarget, TargetReply

logger = logging.getLogger(__name__)

# 请求与响应包头部的魔数
QUERY_MAGIC = 0x00000001
QUERY_PACKET = struct.pack("<II", QUERY_MAGIC, 0)


class QueryError(Exception):
    """查询失败"""


class QueryTimeoutError(QueryError):
    """等待响应超时"""


class MalformedReplyError(QueryError):
    """响应包格式错误"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_query_packet() -> bytes:
    """构造 8 字节查询包：魔数 + 4 字节填充"""
    return QUERY_PACKET


def _read_cstring(data: bytes, offset: int) -> tuple[str, int]:
    end = data.find(b"\x00", offset)
    if end < 0:
        raise MalformedReplyError(f"Unterminated string at offset {offset}")
    try:
        value = data[offset:end].decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedReplyError(f"Invalid UTF-8 string at offset {offset}") from e
    return value, end + 1


def parse_server_response(data: bytes) -> ServerProtocolReply:
    """解析服务器响应包"""
    if len(data) < 4:
        raise MalformedReplyError(f"Reply too short: {len(data)} bytes")

    (magic,) = struct.unpack_from("<I", data, 0)
    if magic != QUERY_MAGIC:
        raise MalformedReplyError(f"Invalid response magic number: {magic:#010x}")

    offset = 4
    name, offset = _read_cstring(data, offset)
    track, offset = _read_cstring(data, offset)
    session, offset = _read_cstring(data, offset)

    if len(data) < offset + 2:
        raise MalformedReplyError("Reply truncated before player counts")
    current_players = data[offset]
    max_players = data[offset + 1]

    return ServerProtocolReply(
        name=name or "Unknown Server",
        current_players=current_players,
        max_players=max_players,
        track=track or "Unknown Track",
        session=session or "Unknown Session",
        status="online",
        observed_at=_utcnow(),
    )


class _QueryProtocol(asyncio.DatagramProtocol):
    """单次查询使用的 datagram 协议，只接收第一个响应包"""

    def __init__(self, future: asyncio.Future):
        self._future = future

    def datagram_received(self, data, addr):
        if not self._future.done():
            self._future.set_result(data)

    def error_received(self, exc):
        if not self._future.done():
            self._future.set_exception(exc)

    def connection_lost(self, exc):
        if exc is not None and not self._future.done():
            self._future.set_exception(exc)


class AssettoCorsaQueryClient:
    """Assetto Corsa UDP 查询客户端"""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = settings.query_timeout if timeout is None else timeout
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def query_server(self, host: str, port: int) -> ServerProtocolReply:
        """查询单个服务器，每次查询使用独立的 socket"""
        if self._closed:
            raise QueryError("Query client is closed")

        loop = asyncio.get_running_loop()
        future = loop.create_future()

        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _QueryProtocol(future),
                remote_addr=(host, port),
            )
        except OSError as e:
            raise QueryError(f"Failed to open socket to {host}:{port}: {e}") from e

        try:
            transport.sendto(build_query_packet())
            data = await asyncio.wait_for(future, self.timeout)
        except asyncio.TimeoutError:
            raise QueryTimeoutError(f"Query timeout after {self.timeout}s ({host}:{port})") from None
        except OSError as e:
            raise QueryError(f"Socket error querying {host}:{port}: {e}") from e
        finally:
            transport.close()

        return parse_server_response(data)

    async def _query_target(self, target: ServerQueryTarget) -> TargetReply:
        try:
            reply = await self.query_server(target.host, target.port)
            return TargetReply(id=target.id, **reply.model_dump())
        except Exception as e:
            logger.warning(
                f"Failed to query server {target.display_name} ({target.host}:{target.port}): {e}"
            )
            return offline_reply(target)

    async def query_multiple_servers(self, targets: Iterable[ServerQueryTarget]) -> List[TargetReply]:
        """并发查询多个服务器，失败的服务器标记为离线"""
        return list(await asyncio.gather(*(self._query_target(t) for t in targets)))

    async def close(self):
        """关闭客户端"""
        if not self._closed:
            self._closed = True
            logger.info("Assetto Corsa query client closed")


def offline_reply(target: ServerQueryTarget) -> TargetReply:
    """查询失败时使用的离线结果"""
    return TargetReply(
        id=target.id,
        name=target.display_name,
        current_players=0,
        max_players=0,
        track="Unknown",
        session="Unknown",
        status="offline",
        observed_at=_utcnow(),
    )


# 全局客户端实例
ac_query_client = AssettoCorsaQueryClient()
