"""业务服务"""
from .errors import CollectError, InvalidInputError, StorageIOError, UpdateError
from .lifecycle import BookmarkService, BatchResult, BatchFailure, Stats
from .migrator import migrate_legacy_files, MigrationReport

__all__ = [
    "CollectError", "InvalidInputError", "StorageIOError", "UpdateError",
    "BookmarkService", "BatchResult", "BatchFailure", "Stats",
    "migrate_legacy_files", "MigrationReport",
]
