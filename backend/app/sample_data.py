"""开发环境示例数据"""
import logging

from app.storage import storage

logger = logging.getLogger(__name__)

EXAMPLE_SERVERS = [
    {
        "name": "Cairo Drift",
        "region": "Egypt",
        "max_players": 32,
        "traffic_density": 60,
        "available_vip_slots": 4,
        "game_mode": "Drift",
        "status": "online",
    },
]


async def seed_example_servers():
    """数据库中没有服务器时写入示例服务器"""
    if await storage.get_servers():
        return

    for fields in EXAMPLE_SERVERS:
        await storage.create_server(**fields)
    logger.info(f"Seeded {len(EXAMPLE_SERVERS)} example servers")
