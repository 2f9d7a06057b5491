"""数据库配置"""
import logging

from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """模型基类"""
    pass


# 增量迁移：只追加列，已存在时忽略
COLUMN_MIGRATIONS = [
    "ALTER TABLE bookmarks ADD COLUMN deleted_at INTEGER DEFAULT 0",
    "ALTER TABLE bookmarks ADD COLUMN notes TEXT DEFAULT ''",
]


def set_sqlite_pragma(dbapi_connection, connection_record):
    """SQLite 单写者 WAL 模式 + 忙等待"""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA temp_store=MEMORY")
    cursor.close()


def create_engine(settings: Settings) -> AsyncEngine:
    """创建异步引擎（每个服务上下文一个）"""
    engine = create_async_engine(
        settings.database_url,
        echo=settings.DEBUG,
        future=True,
    )
    event.listen(engine.sync_engine, "connect", set_sqlite_pragma)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """异步会话工厂"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """建表并执行增量列迁移

    "duplicate column name" 说明列已存在，直接跳过；其它错误向上抛出，启动失败。
    """
    from . import models  # noqa: F401  注册模型到 Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    for statement in COLUMN_MIGRATIONS:
        try:
            async with engine.begin() as conn:
                await conn.execute(text(statement))
            logger.info(f"[Schema] 已执行迁移: {statement}")
        except OperationalError as e:
            if "duplicate column name" not in str(e).lower():
                raise
