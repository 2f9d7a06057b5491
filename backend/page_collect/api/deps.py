"""路由依赖"""
from fastapi import Request

from ..context import ServiceContext
from ..services import BookmarkService
from ..updater import UpdateCoordinator, VersionChecker


def get_context(request: Request) -> ServiceContext:
    """启动时创建的服务上下文"""
    return request.app.state.ctx


def get_service(request: Request) -> BookmarkService:
    return BookmarkService(get_context(request))


def get_version_checker(request: Request) -> VersionChecker:
    return request.app.state.version_checker


def get_update_coordinator(request: Request) -> UpdateCoordinator:
    return request.app.state.update_coordinator
