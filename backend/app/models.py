from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, Literal
from datetime import datetime


class ApiModel(BaseModel):
    """对外输出使用 camelCase 字段名"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ServerQueryTarget(ApiModel):
    """单次轮询的查询目标"""
    id: int
    host: str
    port: int
    display_name: str


class ServerProtocolReply(ApiModel):
    """一次 UDP 查询解析出的服务器信息"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    current_players: int
    max_players: int
    track: str
    session: str
    status: Literal["online", "offline"]
    observed_at: datetime


class TargetReply(ServerProtocolReply):
    """批量查询结果，附带服务器 id"""
    id: int


class ServerStatus(ApiModel):
    """缓存中的服务器状态（实时数据 + 数据库元数据）"""
    id: int
    name: str
    current_players: int
    max_players: int
    track: str
    session: str
    status: Literal["online", "offline", "maintenance"]
    observed_at: datetime
    region: Optional[str] = None
    join_link: Optional[str] = None
    banner_url: Optional[str] = None
    traffic_density: Optional[int] = None
    available_vip_slots: Optional[int] = None
    game_mode: Optional[str] = None


class CacheStats(ApiModel):
    """缓存诊断信息"""
    cached_servers: int
    is_updating: bool
    last_update: Optional[datetime] = None


class HealthCheck(BaseModel):
    """健康检查"""
    status: str
    database: str
    timestamp: datetime
