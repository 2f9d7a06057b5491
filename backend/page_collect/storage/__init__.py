"""存储层：快照文件 + 书签表"""
from .file_store import FileStore, sanitize_name, domain_of, unique_path
from .repository import BookmarkRepository

__all__ = [
    "FileStore", "sanitize_name", "domain_of", "unique_path",
    "BookmarkRepository",
]
