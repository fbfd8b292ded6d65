# 读取 .env 配置
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

_APP_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # Server
    APP_NAME: str = "Blue-Green Pricing API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    PORT: int = 3001
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""
    ENABLE_REQUEST_LOGGING: bool = False

    # Routing rules（JSON 文件，环境变量可覆盖）
    ROUTING_RULES_PATH: str = str(_APP_DIR / "data" / "routing-rules.json")
    TRUST_PROXY: bool = False  # 仅在反向代理之后开启，否则客户端可伪造 X-Forwarded-For
    STRICT_PERCENTAGE_SPLIT: bool = False

    # 未设置（None）表示沿用文件中的值
    BLUE_PERCENTAGE: Optional[int] = None
    GREEN_PERCENTAGE: Optional[int] = None
    ENABLE_HEADER_ROUTING: Optional[bool] = None
    ENABLE_COOKIE_ROUTING: Optional[bool] = None
    ENABLE_IP_ROUTING: Optional[bool] = None
    ENABLE_PERCENTAGE_ROUTING: Optional[bool] = None

    # Pricing data
    PRICING_DATA_DIR: str = str(_APP_DIR / "data")
    PRICING_CACHE_SECONDS: int = 300

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore" # 忽略多余的环境变量
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"


settings = Settings()
