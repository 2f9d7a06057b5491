"""书签表读写"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, or_
from typing import List, Optional, Tuple

from ..models import Bookmark


class BookmarkRepository:
    """
    书签表 CRUD

    只负责 SQL，不碰文件。一个实例绑定一个会话，
    事务边界由调用方（生命周期服务）控制。
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, bookmark: Bookmark) -> Bookmark:
        self.session.add(bookmark)
        await self.session.flush()
        return bookmark

    async def get(self, bookmark_id: str) -> Optional[Bookmark]:
        """按 ID 查询，不存在返回 None"""
        result = await self.session.execute(
            select(Bookmark).where(Bookmark.id == bookmark_id)
        )
        return result.scalar_one_or_none()

    async def list(
        self,
        query: Optional[str] = None,
        url: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Bookmark], int]:
        """
        分页查询正常状态的书签

        url 精确匹配优先于关键词 query；关键词匹配标题、别名、URL。
        返回 (当前页, 总数)，总数与分页无关。
        """
        conditions = [Bookmark.deleted_at == 0]
        if url:
            conditions.append(Bookmark.url == url)
        elif query:
            like = f"%{query}%"
            conditions.append(or_(
                Bookmark.title.like(like),
                Bookmark.alias.like(like),
                Bookmark.url.like(like),
            ))

        total = await self.session.scalar(
            select(func.count()).select_from(Bookmark).where(*conditions)
        )
        result = await self.session.execute(
            select(Bookmark)
            .where(*conditions)
            .order_by(Bookmark.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total or 0

    async def list_trash(self) -> List[Bookmark]:
        result = await self.session.execute(
            select(Bookmark)
            .where(Bookmark.deleted_at > 0)
            .order_by(Bookmark.deleted_at.desc())
        )
        return list(result.scalars().all())

    async def list_expired(self, cutoff: int) -> List[Bookmark]:
        """回收站中删除时间早于 cutoff 的书签"""
        result = await self.session.execute(
            select(Bookmark).where(Bookmark.deleted_at > 0, Bookmark.deleted_at < cutoff)
        )
        return list(result.scalars().all())

    async def list_all(self) -> List[Bookmark]:
        """全部书签（含回收站）"""
        result = await self.session.execute(select(Bookmark))
        return list(result.scalars().all())

    async def update_alias(self, bookmark_id: str, alias: str) -> bool:
        return await self._update_active(bookmark_id, alias=alias)

    async def update_notes(self, bookmark_id: str, notes: str) -> bool:
        return await self._update_active(bookmark_id, notes=notes)

    async def _update_active(self, bookmark_id: str, **values) -> bool:
        result = await self.session.execute(
            update(Bookmark)
            .where(Bookmark.id == bookmark_id, Bookmark.deleted_at == 0)
            .values(**values)
        )
        return result.rowcount > 0

    async def set_deleted_at(self, bookmark_id: str, deleted_at: int) -> bool:
        result = await self.session.execute(
            update(Bookmark).where(Bookmark.id == bookmark_id).values(deleted_at=deleted_at)
        )
        return result.rowcount > 0

    async def update_paths(self, bookmark_id: str, file_path: str, thumb_path: str) -> bool:
        """只给旧文件迁移用"""
        result = await self.session.execute(
            update(Bookmark)
            .where(Bookmark.id == bookmark_id)
            .values(file_path=file_path, thumb_path=thumb_path)
        )
        return result.rowcount > 0

    async def delete(self, bookmark_id: str) -> bool:
        result = await self.session.execute(
            delete(Bookmark).where(Bookmark.id == bookmark_id)
        )
        return result.rowcount > 0

    async def counts(self) -> Tuple[int, int, int]:
        """(正常数量, 正常总字节数, 回收站数量)"""
        row = (await self.session.execute(
            select(func.count(), func.coalesce(func.sum(Bookmark.file_size), 0))
            .where(Bookmark.deleted_at == 0)
        )).one()
        trash_count = await self.session.scalar(
            select(func.count()).select_from(Bookmark).where(Bookmark.deleted_at > 0)
        )
        return int(row[0]), int(row[1]), int(trash_count or 0)
