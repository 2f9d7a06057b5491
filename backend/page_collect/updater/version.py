"""版本检查（GitHub 最新 release，带缓存）"""
import asyncio
import logging
from typing import Optional

import httpx
from cachetools import TTLCache

from ..config import Settings
from ..schemas import VersionInfo

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
CACHE_KEY = "latest"


class VersionChecker:
    """查询最新版本，结果缓存 VERSION_CACHE_TTL 秒（失败结果同样缓存）"""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport
        self._cache: TTLCache = TTLCache(maxsize=1, ttl=settings.VERSION_CACHE_TTL)
        self._lock = asyncio.Lock()

    @property
    def releases_page(self) -> str:
        return f"https://github.com/{self.settings.GITHUB_REPO}/releases/latest"

    def invalidate(self) -> None:
        self._cache.clear()

    async def get_info(self, force: bool = False) -> VersionInfo:
        async with self._lock:
            if force:
                self.invalidate()
            if CACHE_KEY in self._cache:
                return self._cache[CACHE_KEY]
            info = await self._fetch()
            self._cache[CACHE_KEY] = info
            return info

    async def _fetch(self) -> VersionInfo:
        current = self.settings.APP_VERSION
        info = VersionInfo(
            current=current,
            latest=current,
            update_available=False,
            releases_url=self.releases_page,
        )

        repo = self.settings.GITHUB_REPO
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.VERSION_CHECK_TIMEOUT,
                transport=self.transport,
            ) as client:
                response = await client.get(f"{GITHUB_API}/repos/{repo}/releases/latest")
            if response.status_code != 200:
                logger.warning(f"[Version] GitHub 返回状态码: {response.status_code}")
                return info
            tag = response.json().get("tag_name") or ""
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[Version] 检查更新失败: {e}")
            return info

        if not tag:
            return info

        info.latest = tag
        info.update_available = tag != current and current != "dev"
        info.download_url = (
            f"https://github.com/{repo}/releases/download/{tag}/{self.settings.UPDATE_ASSET_NAME}"
        )
        return info
