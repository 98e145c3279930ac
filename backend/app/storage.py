import logging
from typing import List, Optional

from sqlalchemy import desc, select, text

from app.database import AsyncSessionLocal
from app.tables import GameServer

logger = logging.getLogger(__name__)


class ServerStorage:
    """服务器记录的数据库读写"""

    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory

    async def get_servers(self) -> List[GameServer]:
        """获取所有服务器，最新创建的在前"""
        async with self._session_factory() as session:
            result = await session.execute(
                select(GameServer).order_by(desc(GameServer.created_at), desc(GameServer.id))
            )
            return list(result.scalars().all())

    async def get_server(self, server_id: int) -> Optional[GameServer]:
        """按 id 获取服务器"""
        async with self._session_factory() as session:
            return await session.get(GameServer, server_id)

    async def create_server(self, **fields) -> GameServer:
        """新增服务器记录"""
        async with self._session_factory() as session:
            server = GameServer(**fields)
            session.add(server)
            await session.commit()
            await session.refresh(server)
            logger.info(f"Created server {server.id}: {server.name}")
            return server

    async def ping(self):
        """检查数据库连接"""
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))


# 全局存储实例
storage = ServerStorage()
