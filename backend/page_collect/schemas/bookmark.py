"""书签相关 Schema"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class SaveInput(BaseModel):
    """扩展提交的网页快照"""
    model_config = ConfigDict(populate_by_name=True)

    url: str = ""
    title: str = ""
    favicon: str = ""
    html: str = ""
    screenshot: str = ""  # base64 data URI
    bookmark_id: str = Field("", alias="bookmarkId")


class SaveResponse(BaseModel):
    """保存结果"""
    ok: bool = True
    id: str


class BookmarkResponse(BaseModel):
    """书签响应"""
    id: str
    url: str
    title: str = ""
    alias: str = ""
    favicon: str = ""
    file_path: str = ""
    thumb_path: str = ""
    file_size: int = 0
    created_at: int
    deleted_at: int = 0
    notes: str = ""
    tags: str = "[]"
    bookmark_id: str = ""

    class Config:
        from_attributes = True


class BookmarkListResponse(BaseModel):
    """分页列表"""
    items: List[BookmarkResponse]
    total: int


class BookmarkPatch(BaseModel):
    """修改别名或备注（二选一，别名优先）"""
    alias: Optional[str] = None
    notes: Optional[str] = None


class OkResponse(BaseModel):
    ok: bool = True


class EmptyTrashResponse(BaseModel):
    """清空回收站结果"""
    ok: bool = True
    deleted: int
