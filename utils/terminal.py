"""终端宽度探测（进度条占满整行）。

顺序：`COLUMNS` 环境变量 → `tput cols` → `stty size` → 默认值。
任何探测失败都在本地吞掉，返回默认宽度。
"""

from __future__ import annotations

import os
import re
import shutil
import subprocess
import sys

DEFAULT_WIDTH = 80


def terminal_width(default: int = DEFAULT_WIDTH) -> int:
    """返回终端列数；探测不到（或 <= 0）时返回 default。"""
    width = _probe_width()
    return width if width > 0 else default


def _probe_width() -> int:
    try:
        columns = os.environ.get("COLUMNS", "")
        if re.fullmatch(r"\d+", columns):
            return int(columns)
        if _tput_case():
            return int(_run(["tput", "cols"]).strip() or 0)
        if _stty_case():
            numbers = [int(n) for n in re.findall(r"\d+", _run(["stty", "size"]))]
            return numbers[1] if len(numbers) > 1 else 0
    except (OSError, ValueError, subprocess.SubprocessError):
        return 0
    return 0


def _run(cmd: list[str]) -> str:
    res = subprocess.run(cmd, capture_output=True, text=True, timeout=2, check=False)
    return res.stdout


def _stdin_is_tty() -> bool:
    try:
        return sys.stdin is not None and sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False


def _tput_case() -> bool:
    # 非交互（管道/CI）但声明了 TERM 时，tput 仍可给出宽度
    return not _stdin_is_tty() and bool(os.environ.get("TERM")) and _command_exists("tput")


def _stty_case() -> bool:
    return _stdin_is_tty() and _command_exists("stty")


def _command_exists(command: str) -> bool:
    return shutil.which(command) is not None
