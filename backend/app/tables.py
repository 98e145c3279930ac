from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from app.database import Base


class GameServer(Base):
    __tablename__ = "servers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    region = Column(String(50), nullable=False)
    max_players = Column(Integer, nullable=False)
    traffic_density = Column(Integer, nullable=True, default=50)  # 0-100%
    available_vip_slots = Column(Integer, nullable=True, default=0)
    join_link = Column(Text, nullable=True)
    banner_url = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="offline")  # online, offline, maintenance
    game_mode = Column(String(50), nullable=True)
    # 为空时使用配置中的默认查询地址
    query_host = Column(String(255), nullable=True)
    query_port = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
