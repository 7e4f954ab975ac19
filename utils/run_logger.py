"""单次批处理运行的日志文件。

每次运行写一个追加式的分级日志：`log/migration-<NAME>-<TIMESTAMP>.log`。
文件在第一次写入时创建（目录不存在时一并创建），`end()` 之后关闭。
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from shared.utils.logging import LOG_FORMAT

START_LINE = "Start Processing..."
END_LINE = "...end of processing"
SUCCESS_PREFIX = "...successfully processed item: "
FAILURE_PREFIX = "...error while processing item: "
INTERRUPT_START_LINE = "...user interrupted, calling interrupt callback on migration strategy..."
INTERRUPT_END_LINE = "......end of interrupt callback after user interruption"

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def _underscore(name: str) -> str:
    """CamelCase -> snake_case（`HTTPItemSync` -> `http_item_sync`）。"""
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
    return name.replace("-", "_").lower()


def build_migration_name(name: str | None, strategy: Any) -> str:
    """解析运行名。

    显式 name（非空）优先；否则由策略类名派生：去掉 `.` 分隔符、
    转 snake_case。两种情况都会去掉所有非单词字符并转大写。
    """
    if name:
        result = name
    else:
        qualname = type(strategy).__qualname__.replace(".", "")
        result = _underscore(qualname)
    return re.sub(r"\W", "", result).upper()


def item_repr(item: Any) -> str:
    """条目日志表示：优先 `item.to_log()`，否则 `str(item)`。"""
    to_log = getattr(item, "to_log", None)
    if callable(to_log):
        return str(to_log())
    return str(item)


class RunLogger:
    """批处理运行日志。

    Parameters
    ----------
    strategy:
        策略实例；未给出 name 时用来派生运行名。
    name:
        运行名（日志文件名标签）。
    base_dir:
        日志目录，相对当前工作目录。
    """

    def __init__(self, strategy: Any, name: str | None = None, *, base_dir: str | Path = "log"):
        self.migration_name = build_migration_name(name, strategy)
        self.base_dir = Path(base_dir)
        self._timestamp: str | None = None
        self._log_file_path: Path | None = None
        self._handler: logging.FileHandler | None = None
        self._logger: logging.Logger | None = None

    @property
    def timestamp(self) -> str:
        if self._timestamp is None:
            self._timestamp = datetime.now().strftime(TIMESTAMP_FORMAT)
        return self._timestamp

    @property
    def log_file_path(self) -> Path:
        if self._log_file_path is None:
            log_dir = Path.cwd() / self.base_dir
            self._log_file_path = log_dir / f"migration-{self.migration_name}-{self.timestamp}.log"
        return self._log_file_path

    def start(self) -> None:
        self._write(logging.INFO, START_LINE)

    def end(self) -> None:
        self._write(logging.INFO, END_LINE)
        self.close()

    def success(self, item: Any) -> None:
        self._write(logging.INFO, SUCCESS_PREFIX + item_repr(item))

    def failure(self, item: Any) -> None:
        self._write(logging.ERROR, FAILURE_PREFIX + item_repr(item))

    def interrupt_start(self) -> None:
        self._write(logging.INFO, INTERRUPT_START_LINE)

    def interrupt_end(self) -> None:
        self._write(logging.INFO, INTERRUPT_END_LINE)

    def close(self) -> None:
        """刷新并关闭文件句柄；之后再写入会重新以追加方式打开。"""
        if self._handler is None:
            return
        if self._logger is not None:
            self._logger.removeHandler(self._handler)
        self._handler.close()
        self._handler = None

    def _ensure_logger(self) -> logging.Logger:
        if self._logger is None:
            # 不注册进全局 logger 表：随实例回收，也不会向 root 传播到控制台
            self._logger = logging.Logger(f"migration.{self.migration_name}", logging.INFO)
        if self._handler is None:
            self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(self.log_file_path, mode="a", encoding="utf-8", delay=True)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            self._logger.addHandler(handler)
            self._handler = handler
        return self._logger

    def _write(self, level: int, message: str) -> None:
        self._ensure_logger().log(level, message)
