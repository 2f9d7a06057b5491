"""
服务上下文

显式持有数据目录、文件存储和数据库引擎，传给每个操作，
不使用模块级的全局连接。
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .config import Settings, get_settings
from .database import create_engine, create_session_factory, init_db
from .storage import FileStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    settings: Settings
    files: FileStore
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """一个逻辑操作一个事务：正常退出提交，异常回滚"""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def aclose(self) -> None:
        await self.engine.dispose()


def create_context(settings: Optional[Settings] = None) -> ServiceContext:
    """创建数据目录并构造上下文（目录创建失败直接抛出）"""
    settings = settings or get_settings()
    files = FileStore(settings.DATA_DIR, settings.FILENAME_MAX_LENGTH)
    files.ensure_dirs()
    engine = create_engine(settings)
    return ServiceContext(
        settings=settings,
        files=files,
        engine=engine,
        session_factory=create_session_factory(engine),
    )


async def startup(ctx: ServiceContext) -> None:
    """
    启动任务，按顺序执行：建表/增量迁移 -> 旧文件迁移 -> 清理过期回收站

    全部完成后才开始处理请求；建表失败直接抛出，服务不启动。
    """
    from .services.lifecycle import BookmarkService
    from .services.migrator import migrate_legacy_files

    await init_db(ctx.engine)

    report = await migrate_legacy_files(ctx)
    if report.moved or report.skipped or report.failed:
        logger.info(
            f"[Startup] 旧文件迁移: 成功 {report.moved}，跳过 {report.skipped}，失败 {len(report.failed)}"
        )

    purged = await BookmarkService(ctx).purge_expired()
    if purged.succeeded > 0:
        logger.info(f"[Startup] 已永久删除 {purged.succeeded} 条过期回收站条目")
    for failure in purged.failed:
        logger.warning(f"[Startup] 清理失败: {failure.id} - {failure.cause}")
