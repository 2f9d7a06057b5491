"""自更新"""
from .coordinator import (
    ControllerMode,
    UpdaterMode,
    LaunchMode,
    UpdateCoordinator,
    parse_launch_mode,
    handoff_args,
    wait_for_exit,
    replace_executable,
    run_updater_mode,
    temp_download_path,
)
from .process import ProcessProbe, PsutilProcessProbe, SignalProcessProbe, spawn_detached
from .version import VersionChecker

__all__ = [
    "ControllerMode", "UpdaterMode", "LaunchMode", "UpdateCoordinator",
    "parse_launch_mode", "handoff_args", "wait_for_exit", "replace_executable",
    "run_updater_mode", "temp_download_path",
    "ProcessProbe", "PsutilProcessProbe", "SignalProcessProbe", "spawn_detached",
    "VersionChecker",
]
