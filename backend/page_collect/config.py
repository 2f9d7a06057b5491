"""应用配置"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
from pathlib import Path
import sys

# 确定数据根目录（支持源码运行和打包后的单文件 exe）
# 源码运行: backend/page_collect/config.py -> 项目根目录是 ../../
# 打包运行: exe 所在目录
_current_file = Path(__file__).resolve()
_backend_dir = _current_file.parent.parent  # backend 目录
_project_root = _backend_dir.parent  # 项目根目录

if getattr(sys, "frozen", False):
    # 打包环境，数据放在 exe 旁边
    _root_dir = Path(sys.executable).resolve().parent
else:
    # 本地开发环境
    _root_dir = _project_root

_data_dir = _root_dir / "data"
_env_file = _root_dir / ".env" if (_root_dir / ".env").exists() else None


class Settings(BaseSettings):
    """应用设置"""
    # 应用
    APP_NAME: str = "Page Collect"
    APP_VERSION: str = "dev"
    DEBUG: bool = False

    # 服务监听
    HOST: str = "127.0.0.1"
    PORT: int = 3210

    # 数据目录（pages/ 快照树 + 数据库文件）
    DATA_DIR: Path = _data_dir
    DATABASE_FILE: str = "collect.db"

    # 日志（为空时只输出到控制台）
    LOG_FILE: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    # CORS（浏览器扩展从任意源调用）
    CORS_ORIGINS: list[str] = ["*"]

    # 书签存储
    TRASH_RETENTION_DAYS: int = 7
    FAVICON_MAX_LENGTH: int = 100_000
    FILENAME_MAX_LENGTH: int = 80

    # 版本检查 / 自更新
    GITHUB_REPO: str = "Waasaabii/chrome-collect"
    VERSION_CACHE_TTL: int = 60 * 60  # 1 小时
    VERSION_CHECK_TIMEOUT: float = 8.0
    UPDATE_ASSET_NAME: str = "chrome-collect.exe"
    UPDATE_DOWNLOAD_TIMEOUT: float = 5 * 60
    UPDATE_WAIT_INTERVAL: float = 0.1
    UPDATE_WAIT_CEILING: float = 30.0
    UPDATE_RELEASE_DELAY: float = 0.5

    # 扩展心跳有效期（毫秒）
    EXTENSION_PING_TTL_MS: int = 5 * 60 * 1000

    @property
    def database_path(self) -> Path:
        return Path(self.DATA_DIR) / self.DATABASE_FILE

    @property
    def database_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.database_path}"

    @property
    def trash_retention_ms(self) -> int:
        return self.TRASH_RETENTION_DAYS * 24 * 60 * 60 * 1000

    class Config:
        env_file = str(_env_file) if _env_file else ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()
