"""数据模型"""
from .bookmark import Bookmark, now_ms

__all__ = [
    "Bookmark",
    "now_ms",
]
