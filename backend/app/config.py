from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # FastAPI 服务配置
    host: str = "0.0.0.0"
    port: int = 8765
    cors_origins: str = "*"  # 多个来源用逗号分隔

    # 数据库配置
    database_url: str = "sqlite+aiosqlite:///./data/servers.db"
    load_sample_data: bool = False  # 数据库为空时写入示例服务器

    # Assetto Corsa UDP 查询配置
    # 服务器记录没有单独配置 query_host/query_port 时使用默认地址
    ac_default_host: str = "2.58.113.84"
    ac_default_port: int = 8094
    query_timeout: float = 5.0  # 单次查询超时 (秒)

    # 状态轮询配置
    poll_interval: float = 45.0  # 全量轮询间隔 (秒)
    honor_maintenance_status: bool = True  # 数据库中标记为维护的服务器不被实时状态覆盖

    # 日志级别
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def get_cors_origins(self) -> list[str]:
        """获取 CORS 允许的来源列表"""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
