"""
快照文件存储

负责 data/pages/<域名>/<标题>.html|.png 文件树：
- 文件名清洗（按字符截断，不会切断多字节字符）
- 唯一路径分配（冲突时追加 _1、_2 ...）
- 读写删除 + 空目录清理
- 相对路径 <-> 绝对路径转换（数据库中统一保存正斜杠相对路径）

数据库是权威索引，目录结构只是方便浏览。
"""

import logging
import os
import re
import shutil
from pathlib import Path
from typing import Union
from urllib.parse import urlparse

import aiofiles

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

PAGES_DIRNAME = "pages"
FALLBACK_NAME = "untitled"
FALLBACK_DOMAIN = "unknown"
DEFAULT_MAX_LEN = 80

ILLEGAL_CHARS_RE = re.compile(r'[\\/:*?"<>|\r\n\t]')
MULTI_UNDERSCORE_RE = re.compile(r"_+")


def sanitize_name(raw: str, max_len: int = DEFAULT_MAX_LEN, fallback: str = FALLBACK_NAME) -> str:
    """
    清洗文件名

    非法字符替换为 _，合并连续 _，去掉首尾的点和空格，
    按字符数（不是字节数）截断，结果为空时返回 fallback（默认 "untitled"）。
    """
    if max_len <= 0:
        max_len = DEFAULT_MAX_LEN

    safe = ILLEGAL_CHARS_RE.sub("_", raw or "")
    safe = MULTI_UNDERSCORE_RE.sub("_", safe)
    safe = safe.strip(". ")
    if len(safe) > max_len:
        # 截断后可能露出新的尾部点/空格
        safe = safe[:max_len].strip(". ")
    return safe or fallback


def domain_of(url: str) -> str:
    """URL 的主机名，无法解析时返回 "unknown" """
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return FALLBACK_DOMAIN
    if not hostname:
        return FALLBACK_DOMAIN
    return sanitize_name(hostname, 255)


def unique_path(directory: PathLike, base: str, ext: str) -> Path:
    """返回当前不存在的路径，冲突时追加数字后缀

    单写者服务下足够，不保证跨进程无竞争。
    """
    directory = Path(directory)
    path = directory / f"{base}{ext}"
    counter = 1
    while path.exists():
        path = directory / f"{base}_{counter}{ext}"
        counter += 1
    return path


class FileStore:
    """数据目录下的快照文件操作"""

    def __init__(self, root: PathLike, max_name_length: int = DEFAULT_MAX_LEN):
        self.root = Path(root).resolve()
        self.pages_dir = self.root / PAGES_DIRNAME
        self.max_name_length = max_name_length

    def ensure_dirs(self) -> None:
        """创建数据目录（失败直接抛出，启动中止）"""
        self.pages_dir.mkdir(parents=True, exist_ok=True)

    def sanitize(self, raw: str, fallback: str = FALLBACK_NAME) -> str:
        return sanitize_name(raw, self.max_name_length, fallback)

    def domain_dir(self, url: str) -> Path:
        """URL 对应的域名目录（按需创建）"""
        directory = self.pages_dir / domain_of(url)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    # ==================== 路径转换 ====================

    def to_relative(self, path: PathLike) -> str:
        """绝对路径 -> 数据库中保存的正斜杠相对路径"""
        try:
            return Path(path).relative_to(self.root).as_posix()
        except ValueError:
            return str(path)

    def to_absolute(self, relative: str) -> Path:
        """数据库相对路径 -> 本机绝对路径"""
        return self.root.joinpath(*relative.split("/"))

    # ==================== 文件读写 ====================

    async def write_new(self, directory: PathLike, base: str, ext: str, data: bytes) -> Path:
        """
        在目录下创建新文件并写入，返回实际路径

        以独占模式（"xb"）创建，名字已被占用（包括并发请求刚创建的）
        时换下一个后缀，不会覆盖已有文件。
        """
        while True:
            path = unique_path(directory, base, ext)
            try:
                async with aiofiles.open(path, "xb") as f:
                    await f.write(data)
                return path
            except FileExistsError:
                logger.info(f"[FileStore] 文件名已被占用，重新分配: {path}")

    async def read(self, path: PathLike) -> bytes:
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    def remove(self, path: PathLike) -> bool:
        """删除文件，文件不存在不算错误"""
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False

    def prune_if_empty(self, directory: PathLike) -> bool:
        """目录为空时删除（不递归，不动数据根目录和 pages/）"""
        directory = Path(directory)
        if directory in (self.root, self.pages_dir):
            return False
        try:
            if any(directory.iterdir()):
                return False
            directory.rmdir()
            return True
        except OSError as e:
            logger.warning(f"[FileStore] 清理目录失败: {directory} - {e}")
            return False

    def move(self, src: PathLike, dst: PathLike) -> None:
        """移动文件（同盘重命名，跨盘自动复制后删除）"""
        shutil.move(str(src), str(dst))
