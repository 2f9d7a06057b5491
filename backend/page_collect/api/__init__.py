"""API 路由"""
from fastapi import APIRouter
from .v1 import bookmarks, trash, system
from . import pages

api_router = APIRouter()

# 注册路由
api_router.include_router(bookmarks.router, tags=["书签"])
api_router.include_router(trash.router, prefix="/trash", tags=["回收站"])
api_router.include_router(system.router, tags=["系统"])

pages_router = pages.router
