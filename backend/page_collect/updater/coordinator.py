"""
自更新协调

两个进程、两个角色：

1. 控制进程（当前运行的服务）：下载新版可执行文件到临时目录，
   带 --update-pid=<自身 PID> --update-target=<自身路径> 启动它，然后正常退出。
   自己不替换任何文件。
2. 更新进程（新下载的可执行文件）：轮询等待旧进程退出（最长 30 秒），
   再等 500ms 让系统释放文件句柄，把自己移动到目标路径
   （跨盘时复制后删除），以正常模式重新启动目标，然后退出。

进程之间没有 IPC，只靠命令行参数、进程存活探测和文件系统协调。
任何一步失败都只是放弃本次更新，旧版本继续运行。
"""

import argparse
import asyncio
import logging
import os
import shutil
import sys
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import aiofiles
import httpx
import psutil

from ..config import Settings
from ..services.errors import UpdateError
from ..storage import sanitize_name
from .process import ProcessProbe, default_probe, spawn_detached

logger = logging.getLogger(__name__)

UPDATE_PID_ARG = "--update-pid"
UPDATE_TARGET_ARG = "--update-target"
TEMP_PREFIX = "page-collect"


# ==================== 启动模式 ====================

@dataclass(frozen=True)
class ControllerMode:
    """正常服务模式"""
    pass


@dataclass(frozen=True)
class UpdaterMode:
    """更新模式：等待 pid 退出后覆盖 target_path"""
    pid: int
    target_path: Path


LaunchMode = Union[ControllerMode, UpdaterMode]


def parse_launch_mode(argv: Sequence[str]) -> LaunchMode:
    """两个交接参数都存在且合法时为更新模式，否则为正常模式"""
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(UPDATE_PID_ARG, dest="pid", default="")
    parser.add_argument(UPDATE_TARGET_ARG, dest="target", default="")
    args, _ = parser.parse_known_args(list(argv))

    try:
        pid = int(args.pid)
    except ValueError:
        pid = 0
    if pid > 0 and args.target:
        return UpdaterMode(pid=pid, target_path=Path(args.target))
    return ControllerMode()


def handoff_args(pid: int, target_path: Path) -> List[str]:
    return [f"{UPDATE_PID_ARG}={pid}", f"{UPDATE_TARGET_ARG}={target_path}"]


def current_executable() -> Optional[Path]:
    """打包后的可执行文件路径；源码运行时没有可替换的可执行文件"""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve()
    return None


def temp_download_path(version: str) -> Path:
    """临时下载路径，同一版本重复下载会覆盖"""
    ext = ".exe" if sys.platform == "win32" else ""
    name = f"{TEMP_PREFIX}-{sanitize_name(version)}{ext}"
    return Path(tempfile.gettempdir()) / name


# ==================== 第一阶段：控制进程 ====================

def _log_task_failure(task: asyncio.Task) -> None:
    """后台更新任务的意外异常只能在这里看到"""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"[Updater] 更新任务异常退出: {error!r}")


class UpdateCoordinator:
    """
    控制进程一侧的更新流程

    使用示例:
        coordinator = UpdateCoordinator(settings, shutdown=server_exit)
        coordinator.request_update(download_url, "v1.2.0")  # 立即返回
    """

    def __init__(
        self,
        settings: Settings,
        shutdown: Callable[[], None],
        executable: Optional[Path] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        launcher: Callable[[List[str]], object] = spawn_detached,
    ):
        self.settings = settings
        self.shutdown = shutdown
        self.executable = executable
        self.transport = transport
        self.launcher = launcher
        self._task: Optional[asyncio.Task] = None

    @property
    def in_progress(self) -> bool:
        return self._task is not None and not self._task.done()

    def request_update(self, download_url: str, version: str) -> asyncio.Task:
        """后台执行更新，调用方立即得到确认而不是结果"""
        if self.in_progress:
            raise UpdateError("更新已在进行中")
        self._task = asyncio.create_task(self.run_update(download_url, version))
        self._task.add_done_callback(_log_task_failure)
        return self._task

    async def run_update(self, download_url: str, version: str) -> bool:
        """下载 -> 启动更新进程 -> 退出自身；失败时当前进程继续运行"""
        try:
            target = self.executable or current_executable()
            if target is None:
                raise UpdateError("源码运行模式不支持自更新")
            tmp_path = await self.download_update(download_url, version)
            self.launch_updater(tmp_path, target)
        except (UpdateError, httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            logger.error(f"[Updater] 更新失败: {e}")
            return False

        logger.info("[Updater] 更新进程已启动，正在退出...")
        self.shutdown()
        return True

    async def download_update(self, download_url: str, version: str) -> Path:
        """下载新版本到临时目录，返回临时文件路径"""
        tmp_path = temp_download_path(version)
        logger.info(f"[Updater] 下载 {download_url} -> {tmp_path}")

        async with httpx.AsyncClient(
            timeout=self.settings.UPDATE_DOWNLOAD_TIMEOUT,
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            async with client.stream("GET", download_url) as response:
                if response.status_code != 200:
                    raise UpdateError(f"下载失败: HTTP {response.status_code}")
                async with aiofiles.open(tmp_path, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        await f.write(chunk)

        os.chmod(tmp_path, 0o755)
        return tmp_path

    def launch_updater(self, tmp_path: Path, target: Path) -> None:
        """启动临时文件，传入当前 PID 和要覆盖的路径"""
        command = [str(tmp_path), *handoff_args(os.getpid(), target)]
        self.launcher(command)


# ==================== 第二阶段：更新进程 ====================

def wait_for_exit(
    pid: int,
    probe: ProcessProbe,
    interval: float = 0.1,
    ceiling: float = 30.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """
    等待进程退出

    Returns:
        True: 进程已退出（或探测出错，视为已消失）
        False: 到达等待上限，调用方照常继续
    """
    deadline = clock() + ceiling
    while True:
        try:
            if not probe.is_alive(pid):
                return True
        except (OSError, psutil.Error) as e:
            logger.info(f"[Updater] 进程 {pid} 探测失败，视为已退出: {e}")
            return True
        if clock() >= deadline:
            logger.warning(f"[Updater] 等待进程 {pid} 超过 {ceiling}s，继续更新")
            return False
        sleep(interval)


def replace_executable(source: Path, target: Path) -> None:
    """用 source 覆盖 target：同盘重命名，失败则复制后删除源文件"""
    try:
        os.replace(source, target)
        return
    except OSError as e:
        logger.warning(f"[Updater] 重命名失败，改用复制: {e}")

    shutil.copyfile(source, target)
    os.chmod(target, 0o755)
    os.remove(source)


def run_updater_mode(
    mode: UpdaterMode,
    settings: Settings,
    probe: Optional[ProcessProbe] = None,
    self_path: Optional[Path] = None,
    sleep: Callable[[float], None] = time.sleep,
    launcher: Callable[[List[str]], object] = spawn_detached,
) -> bool:
    """更新进程入口，返回是否完成替换并重启"""
    probe = probe or default_probe()
    logger.info(f"[Updater] 等待旧进程 {mode.pid} 退出...")
    wait_for_exit(
        mode.pid,
        probe,
        interval=settings.UPDATE_WAIT_INTERVAL,
        ceiling=settings.UPDATE_WAIT_CEILING,
        sleep=sleep,
    )

    # 等文件句柄释放
    sleep(settings.UPDATE_RELEASE_DELAY)

    source = self_path or Path(sys.executable).resolve()
    try:
        replace_executable(source, mode.target_path)
    except OSError as e:
        logger.error(f"[Updater] 替换失败: {e}")
        return False

    logger.info(f"[Updater] 已替换 {mode.target_path}，重新启动")
    try:
        launcher([str(mode.target_path)])
    except OSError as e:
        logger.error(f"[Updater] 重新启动失败: {e}")
        return False
    return True
