"""
书签生命周期服务

状态机: 正常 -> 回收站 -> 永久删除（回收站可恢复为正常）。
永久删除后记录不存在，任何操作都不能再改变它。

- save: 写 HTML（+ 可选截图）文件，再插入记录
- soft_delete / restore: 只改 deleted_at
- permanent_delete: 删文件、清理空域名目录、删记录
- empty_trash / purge_expired: 批量永久删除，单条失败不中断整批
"""

import base64
import binascii
import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from ..context import ServiceContext
from ..models import Bookmark, now_ms
from ..schemas import SaveInput
from ..storage import BookmarkRepository
from ..storage.file_store import ILLEGAL_CHARS_RE
from .errors import InvalidInputError, StorageIOError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
SCREENSHOT_PREFIX = "data:image/"


@dataclass
class BatchFailure:
    """批量操作中失败的一条"""
    id: str
    cause: str


@dataclass
class BatchResult:
    """批量操作结果：成功数量 + 失败明细"""
    succeeded: int = 0
    failed: List[BatchFailure] = field(default_factory=list)


@dataclass
class Stats:
    total: int
    total_size: int
    trash_count: int


def decode_data_uri(data_uri: str) -> Optional[bytes]:
    """解析 data:image/...;base64,<payload>，格式不对返回 None"""
    if not data_uri.startswith(SCREENSHOT_PREFIX):
        return None
    parts = data_uri.split(",", 1)
    if len(parts) != 2:
        return None
    try:
        return base64.b64decode(parts[1], validate=True)
    except (binascii.Error, ValueError):
        return None


class BookmarkService:
    """书签生命周期操作（每个操作一个事务）"""

    def __init__(self, ctx: ServiceContext):
        self.ctx = ctx
        self.files = ctx.files

    # ==================== 创建 ====================

    async def save(self, data: SaveInput) -> Bookmark:
        """
        保存网页快照

        Raises:
            InvalidInputError: url 或 html 为空
            StorageIOError: 目录/HTML 写入或数据库插入失败
        """
        if not data.url or not data.html:
            raise InvalidInputError("缺少 url 或 html 字段")

        try:
            domain_dir = self.files.domain_dir(data.url)
        except OSError as e:
            raise StorageIOError(f"创建目录失败: {e}") from e

        safe_title = self.files.sanitize(data.title)
        html_bytes = data.html.encode("utf-8")
        try:
            html_path = await self.files.write_new(domain_dir, safe_title, ".html", html_bytes)
        except OSError as e:
            raise StorageIOError(f"写 HTML 失败: {e}") from e

        thumb_relative = await self._save_thumbnail(domain_dir, safe_title, data.screenshot)

        favicon = data.favicon
        if len(favicon) > self.ctx.settings.FAVICON_MAX_LENGTH:
            favicon = ""

        bookmark = Bookmark(
            id=str(uuid.uuid4()),
            url=data.url,
            title=data.title,
            alias="",
            favicon=favicon,
            file_path=self.files.to_relative(html_path),
            thumb_path=thumb_relative,
            file_size=len(html_bytes),
            created_at=now_ms(),
            tags="[]",
            bookmark_id=data.bookmark_id,
            deleted_at=0,
            notes="",
        )
        try:
            async with self.ctx.session() as session:
                await BookmarkRepository(session).insert(bookmark)
        except SQLAlchemyError as e:
            # HTML 文件已写入，这里留下孤儿文件（不做补偿）
            raise StorageIOError(f"写入数据库失败: {e}") from e

        logger.info(f"[Save] {bookmark.id} -> {bookmark.file_path}")
        saved = await self.get(bookmark.id)
        if saved is None:
            raise StorageIOError(f"写入后读取失败: {bookmark.id}")
        return saved

    async def _save_thumbnail(self, domain_dir, safe_title: str, screenshot: str) -> str:
        """截图尽力保存，失败只是没有缩略图"""
        if not screenshot:
            return ""
        data = decode_data_uri(screenshot)
        if data is None:
            logger.warning("[Save] 截图格式无效，跳过缩略图")
            return ""
        try:
            thumb_path = await self.files.write_new(domain_dir, safe_title, ".png", data)
        except OSError as e:
            logger.warning(f"[Save] 写缩略图失败: {e}")
            return ""
        return self.files.to_relative(thumb_path)

    # ==================== 查询 ====================

    async def get(self, bookmark_id: str) -> Optional[Bookmark]:
        async with self.ctx.session() as session:
            return await BookmarkRepository(session).get(bookmark_id)

    async def list(
        self,
        query: Optional[str] = None,
        url: Optional[str] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> Tuple[List[Bookmark], int]:
        if limit <= 0:
            limit = DEFAULT_PAGE_SIZE
        offset = max(offset, 0)
        async with self.ctx.session() as session:
            return await BookmarkRepository(session).list(query=query, url=url, limit=limit, offset=offset)

    async def list_trash(self) -> List[Bookmark]:
        async with self.ctx.session() as session:
            return await BookmarkRepository(session).list_trash()

    async def stats(self) -> Stats:
        async with self.ctx.session() as session:
            total, total_size, trash_count = await BookmarkRepository(session).counts()
        return Stats(total=total, total_size=total_size, trash_count=trash_count)

    async def read_page(self, bookmark_id: str) -> Optional[bytes]:
        """快照 HTML 内容，记录或文件不存在返回 None"""
        bookmark = await self.get(bookmark_id)
        if bookmark is None or not bookmark.file_path:
            return None
        return await self._read_relative(bookmark.file_path)

    async def read_thumbnail(self, bookmark_id: str) -> Optional[bytes]:
        bookmark = await self.get(bookmark_id)
        if bookmark is None or not bookmark.thumb_path:
            return None
        return await self._read_relative(bookmark.thumb_path)

    async def _read_relative(self, relative: str) -> Optional[bytes]:
        try:
            return await self.files.read(self.files.to_absolute(relative))
        except FileNotFoundError:
            logger.warning(f"[Read] 文件不存在: {relative}")
            return None

    @staticmethod
    def download_name(bookmark: Bookmark) -> str:
        """下载文件名：别名 > 标题 > ID"""
        name = bookmark.alias or bookmark.title or bookmark.id
        return ILLEGAL_CHARS_RE.sub("_", name) + ".html"

    # ==================== 编辑 ====================

    async def set_alias(self, bookmark_id: str, alias: str) -> bool:
        async with self.ctx.session() as session:
            return await BookmarkRepository(session).update_alias(bookmark_id, alias)

    async def set_notes(self, bookmark_id: str, notes: str) -> bool:
        async with self.ctx.session() as session:
            return await BookmarkRepository(session).update_notes(bookmark_id, notes)

    # ==================== 回收站 ====================

    async def soft_delete(self, bookmark_id: str, now: Optional[int] = None) -> bool:
        """移入回收站；不存在或已在回收站返回 False"""
        async with self.ctx.session() as session:
            repo = BookmarkRepository(session)
            bookmark = await repo.get(bookmark_id)
            if bookmark is None or bookmark.deleted_at:
                return False
            return await repo.set_deleted_at(bookmark_id, now or now_ms())

    async def restore(self, bookmark_id: str) -> bool:
        """从回收站恢复；不存在或不在回收站返回 False"""
        async with self.ctx.session() as session:
            repo = BookmarkRepository(session)
            bookmark = await repo.get(bookmark_id)
            if bookmark is None or not bookmark.deleted_at:
                return False
            return await repo.set_deleted_at(bookmark_id, 0)

    async def permanent_delete(self, bookmark_id: str) -> bool:
        """
        永久删除（不管是否在回收站）

        先删 HTML 和缩略图，再清理空的域名目录，最后删记录。
        """
        async with self.ctx.session() as session:
            repo = BookmarkRepository(session)
            bookmark = await repo.get(bookmark_id)
            if bookmark is None:
                return False

            parents = []
            for rel_path in (bookmark.file_path, bookmark.thumb_path):
                if not rel_path:
                    continue
                target = self.files.to_absolute(rel_path)
                self.files.remove(target)
                if target.parent not in parents:
                    parents.append(target.parent)

            # 缩略图与 HTML 同目录，两者都删掉后目录才可能为空
            for parent in parents:
                self.files.prune_if_empty(parent)

            deleted = await repo.delete(bookmark_id)

        if deleted:
            logger.info(f"[Trash] 已永久删除: {bookmark_id}")
        return deleted

    async def empty_trash(self) -> BatchResult:
        """永久删除回收站中所有条目"""
        items = await self.list_trash()
        return await self._delete_many([item.id for item in items])

    async def purge_expired(
        self,
        now: Optional[int] = None,
        retention_ms: Optional[int] = None,
    ) -> BatchResult:
        """
        清理过期回收站条目

        删除 deleted_at < now - retention 的条目，可以反复调用。
        """
        if now is None:
            now = now_ms()
        if retention_ms is None:
            retention_ms = self.ctx.settings.trash_retention_ms
        cutoff = now - retention_ms

        async with self.ctx.session() as session:
            expired = await BookmarkRepository(session).list_expired(cutoff)
        return await self._delete_many([item.id for item in expired])

    async def _delete_many(self, ids: List[str]) -> BatchResult:
        result = BatchResult()
        for bookmark_id in ids:
            try:
                if await self.permanent_delete(bookmark_id):
                    result.succeeded += 1
                else:
                    result.failed.append(BatchFailure(bookmark_id, "记录不存在"))
            except (OSError, SQLAlchemyError) as e:
                logger.warning(f"[Trash] 永久删除失败: {bookmark_id} - {e}")
                result.failed.append(BatchFailure(bookmark_id, str(e)))
        return result
