"""书签路由"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from typing import Optional
from urllib.parse import quote

from ...schemas import (
    SaveInput, SaveResponse, BookmarkResponse, BookmarkListResponse,
    BookmarkPatch, OkResponse,
)
from ...services import BookmarkService, InvalidInputError, StorageIOError
from ..deps import get_service

router = APIRouter()


@router.post("/save", response_model=SaveResponse)
async def save_page(
    data: SaveInput,
    service: BookmarkService = Depends(get_service)
):
    """保存网页快照（浏览器扩展调用）"""
    try:
        bookmark = await service.save(data)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageIOError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"保存失败: {e}")
    return SaveResponse(id=bookmark.id)


@router.get("/bookmarks", response_model=BookmarkListResponse)
async def list_bookmarks(
    q: Optional[str] = None,
    url: Optional[str] = None,
    limit: int = Query(50),
    offset: int = Query(0),
    service: BookmarkService = Depends(get_service)
):
    """获取书签列表（url 精确匹配优先于关键词 q）"""
    items, total = await service.list(query=q, url=url, limit=limit, offset=offset)
    return BookmarkListResponse(
        items=[BookmarkResponse.model_validate(item) for item in items],
        total=total,
    )


@router.get("/bookmarks/{bookmark_id}", response_model=BookmarkResponse)
async def get_bookmark(
    bookmark_id: str,
    service: BookmarkService = Depends(get_service)
):
    """获取书签详情"""
    bookmark = await service.get(bookmark_id)
    if not bookmark:
        raise HTTPException(status_code=404, detail="Not Found")
    return bookmark


@router.patch("/bookmarks/{bookmark_id}", response_model=OkResponse)
async def update_bookmark(
    bookmark_id: str,
    patch: BookmarkPatch,
    service: BookmarkService = Depends(get_service)
):
    """修改别名或备注"""
    if patch.alias is not None:
        updated = await service.set_alias(bookmark_id, patch.alias)
    elif patch.notes is not None:
        updated = await service.set_notes(bookmark_id, patch.notes)
    else:
        raise HTTPException(status_code=400, detail="无效操作")

    if not updated:
        raise HTTPException(status_code=404, detail="Not Found")
    return OkResponse()


@router.delete("/bookmarks/{bookmark_id}", response_model=OkResponse)
async def delete_bookmark(
    bookmark_id: str,
    service: BookmarkService = Depends(get_service)
):
    """移入回收站"""
    if not await service.soft_delete(bookmark_id):
        raise HTTPException(status_code=404, detail="Not Found")
    return OkResponse()


@router.get("/bookmarks/{bookmark_id}/download")
async def download_bookmark(
    bookmark_id: str,
    service: BookmarkService = Depends(get_service)
):
    """下载快照 HTML"""
    bookmark = await service.get(bookmark_id)
    if not bookmark:
        raise HTTPException(status_code=404, detail="Not Found")
    content = await service.read_page(bookmark_id)
    if content is None:
        raise HTTPException(status_code=404, detail="Not Found")

    filename = quote(service.download_name(bookmark), safe="")
    return Response(
        content=content,
        media_type="text/html; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{filename}"},
    )
