"""批处理进度条（rich）。

禁用时所有操作都是 no-op，`progress` 返回哨兵值 -1。
"""

from __future__ import annotations

import sys
from typing import TextIO

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    TaskID,
    TaskProgressColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from utils.terminal import terminal_width

PROGRESS_DISABLED = -1


class ProgressReporter:
    """按“成功处理的条目数”推进的进度条。

    Parameters
    ----------
    total:
        进度总量；构造时确定，之后不再变化。
    output:
        进度条输出流，默认 stdout。
    enabled:
        为 False 时不创建任何显示对象。
    """

    def __init__(self, total: int, *, output: TextIO | None = None, enabled: bool = True):
        self.total = int(total)
        self.enabled = bool(enabled)
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        if self.enabled:
            console = Console(file=output or sys.stdout, width=terminal_width())
            self._progress = Progress(
                TimeElapsedColumn(),
                BarColumn(bar_width=None, complete_style="yellow", finished_style="green"),
                TaskProgressColumn(),
                TimeRemainingColumn(),
                console=console,
                auto_refresh=False,
                expand=True,
            )
            self._task_id = self._progress.add_task("processing", total=self.total)

    @property
    def progress(self) -> int:
        if self._progress is None or self._task_id is None:
            return PROGRESS_DISABLED
        return int(self._progress.tasks[0].completed)

    def start(self) -> None:
        if self._progress is not None:
            self._progress.start()

    def increment(self) -> None:
        if self._progress is None or self._task_id is None:
            return
        self._progress.update(self._task_id, advance=1, refresh=True)

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.stop()
