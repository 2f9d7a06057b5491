"""
进程存活探测 + 独立子进程启动

探测策略通过 ProcessProbe 接口替换：
- PsutilProcessProbe: 跨平台，僵尸进程视为已退出（默认）
- SignalProcessProbe: Unix 信号 0
"""

import logging
import os
import subprocess
import sys
from typing import List, Protocol

import psutil

logger = logging.getLogger(__name__)


class ProcessProbe(Protocol):
    """进程存活探测"""

    def is_alive(self, pid: int) -> bool:
        ...


class PsutilProcessProbe:
    """基于 psutil 的探测（Windows / macOS / Linux 通用）"""

    def is_alive(self, pid: int) -> bool:
        try:
            process = psutil.Process(pid)
            # 僵尸进程已死亡，只是等待父进程回收
            return process.is_running() and process.status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            # 进程存在但无权限
            return True


class SignalProcessProbe:
    """Unix 平台发送信号 0 检查进程是否存在"""

    def is_alive(self, pid: int) -> bool:
        if pid <= 0:
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True


def default_probe() -> ProcessProbe:
    return PsutilProcessProbe()


def spawn_detached(command: List[str]) -> subprocess.Popen:
    """启动与当前进程脱离的子进程（父进程退出后继续运行）"""
    logger.info(f"[Process] 启动: {command}")
    if sys.platform == "win32":
        flags = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        return subprocess.Popen(command, creationflags=flags, close_fds=True)
    return subprocess.Popen(
        command,
        start_new_session=True,
        close_fds=True,
        stdin=subprocess.DEVNULL,
    )
