from __future__ import annotations

import uuid
from pathlib import Path

import pytest

from page_collect.config import Settings
from page_collect.context import ServiceContext, create_context, startup
from page_collect.models import Bookmark, now_ms
from page_collect.services import BookmarkService
from page_collect.storage import BookmarkRepository


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        DATA_DIR=tmp_path / "data",
        APP_VERSION="dev",
        UPDATE_WAIT_INTERVAL=0.01,
        UPDATE_WAIT_CEILING=0.5,
        UPDATE_RELEASE_DELAY=0.0,
    )


@pytest.fixture
async def ctx(settings: Settings):
    context = create_context(settings)
    await startup(context)
    yield context
    await context.aclose()


@pytest.fixture
def service(ctx: ServiceContext) -> BookmarkService:
    return BookmarkService(ctx)


async def add_record(ctx: ServiceContext, **fields) -> Bookmark:
    """直接插入一条记录（绕过文件写入）"""
    values = {
        "id": str(uuid.uuid4()),
        "url": "https://example.com/",
        "title": "",
        "alias": "",
        "favicon": "",
        "file_path": "",
        "thumb_path": "",
        "file_size": 0,
        "created_at": now_ms(),
        "tags": "[]",
        "bookmark_id": "",
        "deleted_at": 0,
        "notes": "",
    }
    values.update(fields)
    bookmark = Bookmark(**values)
    async with ctx.session() as session:
        await BookmarkRepository(session).insert(bookmark)
    return bookmark
