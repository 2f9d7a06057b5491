"""旧文件迁移（UUID 命名 -> 域名/标题命名）"""
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from sqlalchemy.exc import SQLAlchemyError

from ..context import ServiceContext
from ..storage import BookmarkRepository, FileStore, unique_path
from .lifecycle import BatchFailure

logger = logging.getLogger(__name__)

LEGACY_PATH_RE = re.compile(
    r"^pages/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\.html$"
)


@dataclass
class LegacyRecord:
    id: str
    url: str
    title: str
    alias: str
    file_path: str
    thumb_path: str


@dataclass
class MigrationReport:
    moved: int = 0
    skipped: int = 0
    failed: List[BatchFailure] = field(default_factory=list)


def is_legacy_path(file_path: str) -> bool:
    return bool(LEGACY_PATH_RE.match(file_path or ""))


async def migrate_legacy_files(ctx: ServiceContext) -> MigrationReport:
    """
    把旧版 pages/<uuid>.html 文件搬到 pages/<域名>/<标题>.html

    每次启动都会执行；不匹配旧格式的记录不动，所以可以重复运行。
    旧文件已丢失的记录跳过，只记日志。
    更新记录失败时把文件搬回原处，记录仍指向旧路径，下次启动再迁移。
    """
    files = ctx.files
    report = MigrationReport()

    async with ctx.session() as session:
        repo = BookmarkRepository(session)
        # 回滚会让 ORM 对象过期，先取出需要的字段
        to_migrate = [
            LegacyRecord(
                id=item.id,
                url=item.url,
                title=item.title or "",
                alias=item.alias or "",
                file_path=item.file_path,
                thumb_path=item.thumb_path or "",
            )
            for item in await repo.list_all()
            if is_legacy_path(item.file_path)
        ]
        if not to_migrate:
            return report

        logger.info(f"[Migrate] 发现 {len(to_migrate)} 个旧格式文件，开始迁移...")

        for item in to_migrate:
            old_html = files.to_absolute(item.file_path)
            if not old_html.exists():
                logger.warning(f"[Migrate] 文件不存在，跳过: {item.id} ({item.file_path})")
                report.skipped += 1
                continue

            # 标题 > 别名 > untitled
            safe_title = files.sanitize(item.title, fallback="") or files.sanitize(item.alias)

            try:
                domain_dir = files.domain_dir(item.url)
                new_html = unique_path(domain_dir, safe_title, ".html")
                files.move(old_html, new_html)
            except OSError as e:
                logger.warning(f"[Migrate] 迁移失败: {item.id} - {e}")
                report.failed.append(BatchFailure(item.id, str(e)))
                continue

            moved = [(new_html, old_html)]
            new_thumb_relative = item.thumb_path
            if item.thumb_path:
                old_thumb = files.to_absolute(item.thumb_path)
                if old_thumb.exists():
                    new_thumb = unique_path(domain_dir, safe_title, ".png")
                    try:
                        files.move(old_thumb, new_thumb)
                        new_thumb_relative = files.to_relative(new_thumb)
                        moved.append((new_thumb, old_thumb))
                    except OSError as e:
                        logger.warning(f"[Migrate] 缩略图迁移失败: {item.id} - {e}")

            # 文件已经搬走，逐条提交
            try:
                await repo.update_paths(item.id, files.to_relative(new_html), new_thumb_relative)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.warning(f"[Migrate] 更新记录失败，文件搬回原处: {item.id} - {e}")
                _move_back(files, moved)
                report.failed.append(BatchFailure(item.id, str(e)))
                continue

            report.moved += 1
            logger.info(f"[Migrate] {item.title} -> {domain_dir.name}/{new_html.name}")

    logger.info("[Migrate] 完成")
    return report


def _move_back(files: FileStore, moved: List[Tuple[Path, Path]]) -> None:
    for current, original in moved:
        try:
            files.move(current, original)
        except OSError as e:
            logger.error(f"[Migrate] 搬回失败: {current} -> {original} - {e}")
