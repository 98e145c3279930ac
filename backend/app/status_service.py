"""服务器状态缓存 - 定时轮询所有服务器并合并数据库中的元数据"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from app.ac_query import AssettoCorsaQueryClient, ac_query_client, offline_reply
from app.config import settings
from app.models import CacheStats, ServerProtocolReply, ServerQueryTarget, ServerStatus
from app.storage import storage

logger = logging.getLogger(__name__)


class ServerReader(Protocol):
    async def get_servers(self) -> list:
        ...

    async def get_server(self, server_id: int) -> Optional[Any]:
        ...


# 数据库主键为 64 位有符号整数
MAX_SERVER_ID = 2**63 - 1


def is_valid_server_id(server_id: Any) -> bool:
    return (
        isinstance(server_id, int)
        and not isinstance(server_id, bool)
        and 0 < server_id <= MAX_SERVER_ID
    )


class ServerStatusService:
    """服务器状态缓存服务"""

    def __init__(
        self,
        query_client: AssettoCorsaQueryClient,
        reader: ServerReader,
        poll_interval: Optional[float] = None,
        default_host: Optional[str] = None,
        default_port: Optional[int] = None,
        honor_maintenance_status: Optional[bool] = None,
    ):
        self._query_client = query_client
        self._reader = reader
        self.poll_interval = settings.poll_interval if poll_interval is None else poll_interval
        self.default_host = default_host or settings.ac_default_host
        self.default_port = default_port or settings.ac_default_port
        self.honor_maintenance_status = (
            settings.honor_maintenance_status
            if honor_maintenance_status is None
            else honor_maintenance_status
        )

        self._cache: Dict[int, ServerStatus] = {}
        self._poll_task: Optional[asyncio.Task] = None
        self._periodic_task: Optional[asyncio.Task] = None

    @property
    def is_updating(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def start(self):
        """启动定时轮询：立即轮询一次，之后每隔 poll_interval 秒轮询"""
        if self._periodic_task is not None and not self._periodic_task.done():
            return
        self._periodic_task = asyncio.create_task(self._run_periodic_updates())
        logger.info(f"Server status polling started (every {self.poll_interval}s)")

    async def _run_periodic_updates(self):
        while True:
            await self.update_all_server_statuses()
            await asyncio.sleep(self.poll_interval)

    def stop(self):
        """停止定时轮询，正在进行的查询不会被中断"""
        if self._periodic_task is not None:
            self._periodic_task.cancel()
            self._periodic_task = None
            logger.info("Server status polling stopped")

    async def destroy(self):
        """停止轮询并释放查询客户端"""
        self.stop()
        await self._query_client.close()

    async def update_all_server_statuses(self):
        """全量轮询；已有轮询进行中时等待它完成，不会发起第二批查询"""
        if self.is_updating:
            logger.debug("Server status update already in progress")
            task = self._poll_task
        else:
            task = self._poll_task = asyncio.create_task(self._poll_all())
        await asyncio.shield(task)

    async def _poll_all(self):
        started = datetime.now(timezone.utc)
        try:
            servers = await self._reader.get_servers()
            targets = [self._build_target(server) for server in servers]
            replies = await self._query_client.query_multiple_servers(targets)

            known = {server.id: server for server in servers}
            for reply in replies:
                server = known.get(reply.id)
                if server is not None:
                    self._cache[reply.id] = self._merge(reply, server)

            # 删除数据库中已不存在的服务器；轮询期间强制刷新写入的条目保留
            for stale_id in set(self._cache) - set(known):
                if self._cache[stale_id].observed_at < started:
                    del self._cache[stale_id]

            logger.info(f"Updated {len(replies)} servers")
        except Exception as e:
            logger.error(f"Failed to update server statuses: {e}")
        finally:
            self._poll_task = None

    def _build_target(self, server) -> ServerQueryTarget:
        return ServerQueryTarget(
            id=server.id,
            host=getattr(server, "query_host", None) or self.default_host,
            port=getattr(server, "query_port", None) or self.default_port,
            display_name=server.name,
        )

    def _merge(self, reply: ServerProtocolReply, server) -> ServerStatus:
        """合并实时数据和数据库元数据"""
        status = reply.status
        if self.honor_maintenance_status and getattr(server, "status", None) == "maintenance":
            status = "maintenance"

        # 离线结果没有真实的人数上限，使用数据库中的配置
        max_players = reply.max_players if reply.status == "online" else server.max_players

        return ServerStatus(
            id=server.id,
            name=reply.name,
            current_players=reply.current_players,
            max_players=max_players,
            track=reply.track,
            session=reply.session,
            status=status,
            observed_at=reply.observed_at,
            region=getattr(server, "region", None),
            join_link=getattr(server, "join_link", None) or None,
            banner_url=getattr(server, "banner_url", None) or None,
            traffic_density=getattr(server, "traffic_density", None),
            available_vip_slots=getattr(server, "available_vip_slots", None),
            game_mode=getattr(server, "game_mode", None) or None,
        )

    async def get_all_server_statuses(self) -> List[ServerStatus]:
        """获取所有服务器状态，缓存为空时先轮询一次"""
        if not self._cache:
            await self.update_all_server_statuses()
        return [status.model_copy() for status in self._cache.values()]

    async def get_server_status(self, server_id: Any) -> Optional[ServerStatus]:
        """获取单个服务器状态"""
        if not is_valid_server_id(server_id):
            logger.error(f"Invalid server ID: {server_id!r}")
            return None

        if server_id not in self._cache:
            await self.update_all_server_statuses()

        status = self._cache.get(server_id)
        return status.model_copy() if status else None

    async def force_update_server(self, server_id: Any) -> Optional[ServerStatus]:
        """立即查询单个服务器，查询失败时返回离线状态"""
        if not is_valid_server_id(server_id):
            logger.error(f"Invalid server ID: {server_id!r}")
            return None

        server = await self._reader.get_server(server_id)
        if server is None:
            return None

        target = self._build_target(server)
        try:
            reply = await self._query_client.query_server(target.host, target.port)
        except Exception as e:
            logger.warning(f"Failed to force update server {server_id}: {e}")
            reply = offline_reply(target)

        status = self._merge(reply, server)
        self._cache[server.id] = status
        return status.model_copy()

    def get_cache_stats(self) -> CacheStats:
        """缓存统计信息"""
        return CacheStats(
            cached_servers=len(self._cache),
            is_updating=self.is_updating,
            last_update=max((s.observed_at for s in self._cache.values()), default=None),
        )


# 全局实例
status_service = ServerStatusService(ac_query_client, storage)
