from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 数据库配置
    database_url: str = "duckdb://./data/bistro.duckdb"

    # 营业地所在时区，所有“今天/未来”的判断都基于该时区的日历日期
    business_timezone: str = "Europe/Stockholm"

    # 批量生成时最多扫描 count * N 个候选日期
    generation_scan_factor: int = 2

    # JWT配置
    jwt_secret_key: str = "change-me-bistro-capacity-secret-key"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 12

    # API配置
    api_title: str = "Bistro Capacity API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"

    # 开发模式
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

# 全局设置实例
settings = Settings()
