"""Pydantic Schemas"""
from .bookmark import (
    SaveInput, SaveResponse, BookmarkResponse, BookmarkListResponse,
    BookmarkPatch, OkResponse, EmptyTrashResponse,
)
from .system import StatsResponse, VersionInfo, ExtensionStatus

__all__ = [
    "SaveInput", "SaveResponse", "BookmarkResponse", "BookmarkListResponse",
    "BookmarkPatch", "OkResponse", "EmptyTrashResponse",
    "StatsResponse", "VersionInfo", "ExtensionStatus",
]
