"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./gateway_plugin.db"
    echo: bool = False
    pool_pre_ping: bool = True


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Adyen Payment Plugin")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(default="", description="为空时 DEBUG 模式使用 DEBUG，否则 INFO")

    # 分组配置：数据库采用嵌套模型
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, v):
        if v is None:
            return ""
        return str(v).strip().upper()


settings = Settings()
