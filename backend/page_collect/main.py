"""FastAPI 应用入口"""
import logging
import logging.config
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .context import create_context, startup
from .api import api_router, pages_router
from .updater import UpdateCoordinator, VersionChecker

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """日志配置：控制台 + 可选的日志文件"""
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    }
    if settings.LOG_FILE:
        # 使用 FileHandler 直接写入文件，打包后没有控制台也能查看日志
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "standard",
            "filename": settings.LOG_FILE,
            "mode": "a",
            "encoding": "utf-8",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": "%(asctime)s %(levelname)s:%(name)s:%(message)s"}
        },
        "handlers": handlers,
        "root": {
            "level": settings.LOG_LEVEL,
            "handlers": list(handlers),
        },
        "loggers": {
            "page_collect": {"level": settings.LOG_LEVEL},
            "httpx": {"level": "WARNING"},
        },
    })


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """创建应用；启动时依次完成建表、旧文件迁移、过期回收站清理"""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        # 启动时（失败直接抛出，服务不启动）
        ctx = create_context(settings)
        try:
            await startup(ctx)
        except Exception:
            await ctx.aclose()
            raise
        app.state.ctx = ctx
        logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} 启动成功 -> {settings.DATA_DIR}")
        yield
        # 关闭时
        await ctx.aclose()
        logger.info(f"{settings.APP_NAME} 已退出")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="网页快照收藏服务 API",
        docs_url="/api/docs",
        redoc_url=None,
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    def request_shutdown() -> None:
        """走服务器的正常退出流程"""
        server = getattr(app.state, "server", None)
        if server is None:
            logger.warning("未找到运行中的服务器，无法自动退出")
            return
        server.should_exit = True

    app.state.last_extension_ping = 0
    app.state.version_checker = VersionChecker(settings)
    app.state.update_coordinator = UpdateCoordinator(settings, shutdown=request_shutdown)

    # CORS 配置（浏览器扩展跨域调用）
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # 注册路由
    app.include_router(api_router, prefix="/api")
    app.include_router(pages_router)

    # 健康检查
    @app.get("/health", tags=["系统"], summary="健康检查")
    async def health_check():
        """检查服务运行状态"""
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    return app
