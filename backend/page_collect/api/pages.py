"""快照页面 / 缩略图（供管理界面 iframe 和卡片预览）"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse, Response

from ..services import BookmarkService
from .deps import get_service

router = APIRouter()

# Discourse 论坛快照中懒加载占位元素会遮挡内容，展示时移除
CLEANUP_SCRIPT = """<script>
(function(){
	var isDiscourse=!!document.querySelector('.post-stream');
	if(!isDiscourse)return;
	document.querySelectorAll('.post-stream--cloaked').forEach(function(el){el.remove();});
	document.querySelectorAll('[data-cc-id]').forEach(function(el){
		el.removeAttribute('data-cc-id');el.removeAttribute('data-cc-visible');
	});
})();
</script>"""


def inject_cleanup_script(html: str) -> str:
    if "</body>" in html:
        return html.replace("</body>", CLEANUP_SCRIPT + "</body>", 1)
    return html + CLEANUP_SCRIPT


@router.get("/pages/{bookmark_id}.html", response_class=HTMLResponse)
async def view_page(
    bookmark_id: str,
    service: BookmarkService = Depends(get_service)
):
    """查看快照"""
    content = await service.read_page(bookmark_id)
    if content is None:
        raise HTTPException(status_code=404, detail="Not Found")
    html = content.decode("utf-8", errors="replace")
    return HTMLResponse(inject_cleanup_script(html))


@router.get("/pages/{bookmark_id}.png")
async def view_thumbnail(
    bookmark_id: str,
    service: BookmarkService = Depends(get_service)
):
    """快照缩略图"""
    content = await service.read_thumbnail(bookmark_id)
    if content is None:
        raise HTTPException(status_code=404, detail="Not Found")
    return Response(content=content, media_type="image/png")
