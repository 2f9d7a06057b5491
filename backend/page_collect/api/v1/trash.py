"""回收站路由"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from typing import List

from ...schemas import BookmarkResponse, OkResponse, EmptyTrashResponse
from ...services import BookmarkService
from ..deps import get_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[BookmarkResponse])
async def list_trash(service: BookmarkService = Depends(get_service)):
    """回收站列表（按删除时间倒序）"""
    return await service.list_trash()


@router.delete("", response_model=EmptyTrashResponse)
async def empty_trash(service: BookmarkService = Depends(get_service)):
    """清空回收站，只返回成功数量"""
    result = await service.empty_trash()
    for failure in result.failed:
        logger.warning(f"[Trash] 清空时删除失败: {failure.id} - {failure.cause}")
    return EmptyTrashResponse(deleted=result.succeeded)


@router.post("/{bookmark_id}/restore", response_model=OkResponse)
async def restore_bookmark(
    bookmark_id: str,
    service: BookmarkService = Depends(get_service)
):
    """从回收站恢复"""
    if not await service.restore(bookmark_id):
        raise HTTPException(status_code=404, detail="Not Found")
    return OkResponse()


@router.delete("/{bookmark_id}", response_model=OkResponse)
async def permanent_delete(
    bookmark_id: str,
    service: BookmarkService = Depends(get_service)
):
    """永久删除"""
    if not await service.permanent_delete(bookmark_id):
        raise HTTPException(status_code=404, detail="Not Found")
    return OkResponse()
