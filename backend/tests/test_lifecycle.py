from __future__ import annotations

import asyncio
import base64

import pytest

from page_collect.context import ServiceContext
from page_collect.schemas import BookmarkResponse, SaveInput
from page_collect.services import BookmarkService, InvalidInputError

from .conftest import add_record

pytestmark = pytest.mark.anyio

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png-body"
PNG_DATA_URI = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")


def snapshot(bookmark) -> BookmarkResponse:
    return BookmarkResponse.model_validate(bookmark)


async def test_save_end_to_end(ctx: ServiceContext, service: BookmarkService) -> None:
    html = "<html><body>你好 world</body></html>"
    saved = await service.save(SaveInput(url="https://example.com/a", title="Hello/World", html=html))

    assert saved.id
    assert saved.deleted_at == 0
    assert saved.file_path == "pages/example.com/Hello_World.html"
    assert saved.file_size == len(html.encode("utf-8"))
    assert saved.thumb_path == ""

    html_file = ctx.settings.DATA_DIR / "pages" / "example.com" / "Hello_World.html"
    assert html_file.read_text(encoding="utf-8") == html

    fetched = await service.get(saved.id)
    assert fetched is not None
    assert snapshot(fetched) == snapshot(saved)


async def test_save_same_title_gets_unique_file(service: BookmarkService) -> None:
    first = await service.save(SaveInput(url="https://example.com/1", title="Same", html="<p>1</p>"))
    second = await service.save(SaveInput(url="https://example.com/2", title="Same", html="<p>2</p>"))

    assert first.id != second.id
    assert first.file_path == "pages/example.com/Same.html"
    assert second.file_path == "pages/example.com/Same_1.html"


async def test_concurrent_saves_get_separate_files(ctx: ServiceContext, service: BookmarkService) -> None:
    first, second = await asyncio.gather(
        service.save(SaveInput(url="https://example.com/a", title="Same", html="<p>A</p>", screenshot=PNG_DATA_URI)),
        service.save(SaveInput(url="https://example.com/b", title="Same", html="<p>B</p>", screenshot=PNG_DATA_URI)),
    )

    assert first.file_path != second.file_path
    assert first.thumb_path != second.thumb_path
    assert {first.file_path, second.file_path} == {"pages/example.com/Same.html", "pages/example.com/Same_1.html"}
    assert ctx.files.to_absolute(first.file_path).read_text(encoding="utf-8") == "<p>A</p>"
    assert ctx.files.to_absolute(second.file_path).read_text(encoding="utf-8") == "<p>B</p>"

    # 删除其中一条不影响另一条的快照
    assert await service.permanent_delete(first.id) is True
    assert await service.read_page(second.id) == b"<p>B</p>"
    assert await service.read_thumbnail(second.id) == PNG_BYTES


@pytest.mark.parametrize(
    "data",
    [
        SaveInput(url="", html="<p>x</p>"),
        SaveInput(url="https://example.com", html=""),
    ],
)
async def test_save_rejects_missing_fields(service: BookmarkService, data: SaveInput) -> None:
    with pytest.raises(InvalidInputError):
        await service.save(data)


async def test_save_with_screenshot_writes_thumbnail(ctx: ServiceContext, service: BookmarkService) -> None:
    saved = await service.save(
        SaveInput(url="https://example.com/", title="Shot", html="<p/>", screenshot=PNG_DATA_URI)
    )

    assert saved.thumb_path == "pages/example.com/Shot.png"
    assert ctx.files.to_absolute(saved.thumb_path).read_bytes() == PNG_BYTES
    assert await service.read_thumbnail(saved.id) == PNG_BYTES


@pytest.mark.parametrize(
    "screenshot",
    ["data:image/png;base64,!!!not-base64!!!", "data:image/png;base64", "https://example.com/shot.png"],
)
async def test_save_with_bad_screenshot_skips_thumbnail(service: BookmarkService, screenshot: str) -> None:
    saved = await service.save(
        SaveInput(url="https://example.com/", title="Shot", html="<p/>", screenshot=screenshot)
    )

    assert saved.id
    assert saved.thumb_path == ""


async def test_save_discards_oversized_favicon(ctx: ServiceContext, service: BookmarkService) -> None:
    limit = ctx.settings.FAVICON_MAX_LENGTH
    small = await service.save(SaveInput(url="https://a.com", html="<p/>", favicon="data:x" * 10))
    large = await service.save(SaveInput(url="https://a.com", html="<p/>", favicon="x" * (limit + 1)))

    assert small.favicon == "data:x" * 10
    assert large.favicon == ""


async def test_save_keeps_correlation_id_and_unknown_domain(service: BookmarkService) -> None:
    saved = await service.save(
        SaveInput.model_validate({"url": "not a url", "title": "", "html": "<p/>", "bookmarkId": "b-42"})
    )

    assert saved.bookmark_id == "b-42"
    assert saved.file_path == "pages/unknown/untitled.html"


async def test_list_filters_and_pagination(ctx: ServiceContext, service: BookmarkService) -> None:
    await add_record(ctx, url="https://a.com/1", title="Python tips", created_at=1000)
    await add_record(ctx, url="https://b.com/2", title="Go", alias="python alias", created_at=2000)
    await add_record(ctx, url="https://python.org/", title="Home", created_at=3000)
    await add_record(ctx, url="https://c.com/", title="Other", created_at=4000)
    await add_record(ctx, url="https://a.com/1", title="Python trashed", created_at=5000, deleted_at=6000)

    items, total = await service.list()
    assert total == 4
    assert [item.created_at for item in items] == [4000, 3000, 2000, 1000]

    items, total = await service.list(query="python")
    assert total == 3
    assert [item.created_at for item in items] == [3000, 2000, 1000]

    items, total = await service.list(query="python", limit=1, offset=1)
    assert total == 3
    assert [item.created_at for item in items] == [2000]

    # url 精确匹配优先于关键词，且不包含回收站
    items, total = await service.list(query="nothing-matches", url="https://a.com/1")
    assert total == 1
    assert items[0].title == "Python tips"


async def test_get_missing_returns_none(service: BookmarkService) -> None:
    assert await service.get("missing") is None


async def test_soft_delete_then_restore(service: BookmarkService) -> None:
    saved = await service.save(SaveInput(url="https://example.com/", title="T", html="<p/>"))
    before = snapshot(await service.get(saved.id))

    assert await service.soft_delete(saved.id) is True
    trashed = await service.get(saved.id)
    assert trashed.deleted_at > 0
    assert [item.id for item in await service.list_trash()] == [saved.id]
    assert (await service.list())[1] == 0

    # 已在回收站：无操作
    assert await service.soft_delete(saved.id) is False

    assert await service.restore(saved.id) is True
    assert snapshot(await service.get(saved.id)) == before

    # 不在回收站：无操作
    assert await service.restore(saved.id) is False


async def test_soft_delete_and_restore_missing(service: BookmarkService) -> None:
    assert await service.soft_delete("missing") is False
    assert await service.restore("missing") is False
    assert await service.permanent_delete("missing") is False


async def test_alias_and_notes_only_on_active(ctx: ServiceContext, service: BookmarkService) -> None:
    active = await add_record(ctx)
    trashed = await add_record(ctx, deleted_at=123)

    assert await service.set_alias(active.id, "my alias") is True
    assert await service.set_notes(active.id, "some notes") is True
    updated = await service.get(active.id)
    assert (updated.alias, updated.notes) == ("my alias", "some notes")

    assert await service.set_alias(trashed.id, "x") is False
    assert await service.set_notes(trashed.id, "x") is False
    assert await service.set_alias("missing", "x") is False


async def test_purge_expired_boundaries(ctx: ServiceContext, service: BookmarkService) -> None:
    now = 10_000_000_000
    retention = 7 * 24 * 60 * 60 * 1000
    cutoff = now - retention

    expired = await add_record(ctx, deleted_at=cutoff - 1)
    at_cutoff = await add_record(ctx, deleted_at=cutoff)
    after_cutoff = await add_record(ctx, deleted_at=cutoff + 1)
    active = await add_record(ctx)

    result = await service.purge_expired(now=now, retention_ms=retention)

    assert result.succeeded == 1
    assert result.failed == []
    assert await service.get(expired.id) is None
    for kept in (at_cutoff, after_cutoff, active):
        assert await service.get(kept.id) is not None

    # 重复调用没有副作用
    again = await service.purge_expired(now=now, retention_ms=retention)
    assert again.succeeded == 0


async def test_purge_expired_uses_configured_retention(ctx: ServiceContext, service: BookmarkService) -> None:
    old = await add_record(ctx, deleted_at=1)

    result = await service.purge_expired()

    assert result.succeeded == 1
    assert await service.get(old.id) is None


async def test_permanent_delete_prunes_empty_domain_dir(ctx: ServiceContext, service: BookmarkService) -> None:
    saved = await service.save(
        SaveInput(url="https://solo.example/", title="Only", html="<p/>", screenshot=PNG_DATA_URI)
    )
    html_file = ctx.files.to_absolute(saved.file_path)
    thumb_file = ctx.files.to_absolute(saved.thumb_path)

    assert await service.permanent_delete(saved.id) is True

    assert not html_file.exists()
    assert not thumb_file.exists()
    assert not html_file.parent.exists()
    assert await service.get(saved.id) is None


async def test_permanent_delete_keeps_dir_with_sibling(ctx: ServiceContext, service: BookmarkService) -> None:
    first = await service.save(SaveInput(url="https://shared.example/1", title="One", html="<p/>"))
    second = await service.save(SaveInput(url="https://shared.example/2", title="Two", html="<p/>"))
    first_file = ctx.files.to_absolute(first.file_path)

    assert await service.permanent_delete(first.id) is True

    assert not first_file.exists()
    assert first_file.parent.exists()
    assert ctx.files.to_absolute(second.file_path).exists()


async def test_permanent_delete_with_missing_file(ctx: ServiceContext, service: BookmarkService) -> None:
    saved = await service.save(SaveInput(url="https://example.com/", title="Gone", html="<p/>"))
    ctx.files.to_absolute(saved.file_path).unlink()

    assert await service.read_page(saved.id) is None
    assert await service.permanent_delete(saved.id) is True


async def test_empty_trash_continues_after_failure(
    ctx: ServiceContext, service: BookmarkService, monkeypatch: pytest.MonkeyPatch
) -> None:
    good = await service.save(SaveInput(url="https://example.com/", title="Good", html="<p/>"))
    bad = await service.save(SaveInput(url="https://example.com/", title="Bad", html="<p/>"))
    keep = await service.save(SaveInput(url="https://example.com/", title="Keep", html="<p/>"))
    await service.soft_delete(good.id)
    await service.soft_delete(bad.id)

    bad_file = ctx.files.to_absolute(bad.file_path)
    original_remove = ctx.files.remove

    def flaky_remove(path):
        if path == bad_file:
            raise PermissionError("locked")
        return original_remove(path)

    monkeypatch.setattr(ctx.files, "remove", flaky_remove)

    result = await service.empty_trash()

    assert result.succeeded == 1
    assert [failure.id for failure in result.failed] == [bad.id]
    assert "locked" in result.failed[0].cause
    assert await service.get(good.id) is None
    assert await service.get(bad.id) is not None
    assert await service.get(keep.id) is not None


async def test_stats(ctx: ServiceContext, service: BookmarkService) -> None:
    await add_record(ctx, file_size=100)
    await add_record(ctx, file_size=250)
    await add_record(ctx, file_size=999, deleted_at=5)

    stats = await service.stats()

    assert (stats.total, stats.total_size, stats.trash_count) == (2, 350, 1)


async def test_download_name(ctx: ServiceContext) -> None:
    with_alias = await add_record(ctx, alias="a/b", title="t")
    with_title = await add_record(ctx, title="Title?")
    bare = await add_record(ctx)

    assert BookmarkService.download_name(with_alias) == "a_b.html"
    assert BookmarkService.download_name(with_title) == "Title_.html"
    assert BookmarkService.download_name(bare) == f"{bare.id}.html"
