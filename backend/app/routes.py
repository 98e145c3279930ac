import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from app.models import CacheStats, HealthCheck, ServerStatus
from app.status_service import status_service
from app.storage import storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def parse_server_id(raw_id: str) -> int:
    """解析路径中的服务器 id"""
    if not (raw_id.isascii() and raw_id.isdigit()):
        raise HTTPException(status_code=400, detail="Invalid server ID")
    return int(raw_id)


@router.get("/health", response_model=HealthCheck)
async def health_check():
    """健康检查（包含数据库连接）"""
    timestamp = datetime.now(timezone.utc)
    try:
        await storage.ping()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        body = HealthCheck(status="unhealthy", database="disconnected", timestamp=timestamp)
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))
    return HealthCheck(status="healthy", database="connected", timestamp=timestamp)


@router.get("/servers/status", response_model=List[ServerStatus])
async def get_all_statuses():
    """获取所有服务器的实时状态"""
    try:
        return await status_service.get_all_server_statuses()
    except Exception as e:
        logger.error(f"Error fetching server status: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch server status")


@router.get("/servers/status/stats", response_model=CacheStats)
async def get_status_stats():
    """获取状态缓存统计"""
    try:
        return status_service.get_cache_stats()
    except Exception as e:
        logger.error(f"Error fetching status stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch status stats")


@router.get("/servers/{server_id}/status", response_model=ServerStatus)
async def get_server_status(server_id: str):
    """获取单个服务器的实时状态"""
    sid = parse_server_id(server_id)
    try:
        status = await status_service.get_server_status(sid)
    except Exception as e:
        logger.error(f"Error fetching server status for {sid}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch server status")

    if status is None:
        raise HTTPException(status_code=404, detail="Server not found")
    return status


@router.post("/servers/{server_id}/status/refresh", response_model=ServerStatus)
async def refresh_server_status(server_id: str):
    """立即刷新单个服务器的状态"""
    sid = parse_server_id(server_id)
    try:
        status = await status_service.force_update_server(sid)
    except Exception as e:
        logger.error(f"Error refreshing server status for {sid}: {e}")
        raise HTTPException(status_code=500, detail="Failed to refresh server status")

    if status is None:
        raise HTTPException(status_code=404, detail="Server not found")
    return status
