"""统计 / 版本 / 自更新 / 扩展心跳"""
from fastapi import APIRouter, Depends, HTTPException, Request

from ...models import now_ms
from ...schemas import StatsResponse, VersionInfo, ExtensionStatus, OkResponse
from ...services import BookmarkService, UpdateError
from ...updater import UpdateCoordinator, VersionChecker
from ..deps import get_service, get_version_checker, get_update_coordinator

router = APIRouter()


@router.get("/stats", response_model=StatsResponse)
async def get_stats(service: BookmarkService = Depends(get_service)):
    """书签数量、总大小、回收站数量"""
    stats = await service.stats()
    return StatsResponse(
        total=stats.total,
        total_size=stats.total_size,
        trash_count=stats.trash_count,
    )


# ==================== 版本检查 / 自更新 ====================

@router.get("/version", response_model=VersionInfo, response_model_exclude_none=True)
async def get_version(
    force: str = "",
    checker: VersionChecker = Depends(get_version_checker)
):
    """当前版本 + GitHub 最新版本（force=1 跳过缓存）"""
    return await checker.get_info(force=force == "1")


@router.post("/update", response_model=OkResponse)
async def start_update(
    checker: VersionChecker = Depends(get_version_checker),
    coordinator: UpdateCoordinator = Depends(get_update_coordinator)
):
    """后台下载并安装新版本，立即返回"""
    info = await checker.get_info()
    if not info.update_available or not info.download_url:
        raise HTTPException(status_code=400, detail="暂无可用更新")
    try:
        coordinator.request_update(info.download_url, info.latest)
    except UpdateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return OkResponse()


# ==================== 扩展心跳 ====================

@router.post("/extension/ping", response_model=OkResponse)
async def extension_ping(request: Request):
    """扩展定时上报"""
    request.app.state.last_extension_ping = now_ms()
    return OkResponse()


@router.get("/extension/status", response_model=ExtensionStatus)
async def extension_status(request: Request):
    """最近 5 分钟内有心跳视为已安装"""
    last_ping = getattr(request.app.state, "last_extension_ping", 0)
    ttl = request.app.state.ctx.settings.EXTENSION_PING_TTL_MS
    return ExtensionStatus(installed=now_ms() - last_ping < ttl)
