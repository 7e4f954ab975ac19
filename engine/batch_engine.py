"""批处理执行引擎（BatchEngine）。

控制循环：取条目 → 策略处理 → 记录日志/推进进度 → 判断是否继续。

停止条件（取到条目之后的优先级）：
策略抛异常（记录后向上抛） > 策略返回失败 > 收到中断信号 > 达到条目上限 > 条目耗尽。

SIGINT/SIGTERM 的 handler 只置位 `_interrupted`；清理钩子与日志都由主循环
在两个条目之间完成，正在处理的条目不会被打断。
"""

from __future__ import annotations

import signal
from typing import Any, Iterator, TextIO

from engine.base_engine import BaseEngine
from shared.config.config_loader import RunConfig
from shared.utils.logging import setup_logger
from strategy.base import strategy_count
from utils.progress import ProgressReporter
from utils.run_logger import RunLogger, item_repr

INTERRUPT_SIGNALS = (signal.SIGINT, signal.SIGTERM)

STOP_COMPLETED = "completed"
STOP_LIMIT_REACHED = "limit_reached"
STOP_FAILED = "failed"
STOP_INTERRUPTED = "interrupted"
STOP_ERROR = "error"


class BatchEngine(BaseEngine):
    """驱动一个批处理策略跑完（或跑到上限）。

    Parameters
    ----------
    strategy:
        实现 `items()` / `process(item)` 的策略对象，见 `strategy.base`。
    name:
        运行名，用作日志文件名标签；缺省时由策略类名派生。
    items_to_process:
        最多成功处理多少条后停止；None 表示不限。
    progress:
        是否显示进度条。开启且未给出上限时，会先完整迭代一遍 `items()` 计数。
    progress_output:
        进度条输出流，默认 stdout。
    log_dir:
        日志目录，相对当前工作目录。
    """

    def __init__(
        self,
        strategy: Any,
        *,
        name: str | None = None,
        items_to_process: int | None = None,
        progress: bool = True,
        progress_output: TextIO | None = None,
        log_dir: str = "log",
    ):
        if items_to_process is not None and int(items_to_process) < 0:
            raise ValueError("items_to_process must be >= 0")
        self.strategy = strategy
        self.config = RunConfig(
            name=name,
            items_to_process=None if items_to_process is None else int(items_to_process),
            progress=bool(progress),
            progress_output=progress_output,
            log_dir=log_dir,
        )
        self.run_logger = RunLogger(strategy, name, base_dir=log_dir)
        self._logger = setup_logger("batchpilot.engine")

        self._items_total: int | None = None
        self._processed_count = 0
        self._last_processed_item: Any = None
        self._interrupted = False
        self._stop_reason: str | None = None

        total = self.items_to_process() if self.config.progress else 0
        self.reporter = ProgressReporter(total, output=progress_output, enabled=self.config.progress)

    @classmethod
    def from_config(cls, strategy: Any, cfg: RunConfig) -> "BatchEngine":
        return cls(
            strategy,
            name=cfg.name,
            items_to_process=cfg.items_to_process,
            progress=cfg.progress,
            progress_output=cfg.progress_output,
            log_dir=cfg.log_dir,
        )

    # ---- 只读状态 ----

    @property
    def run_name(self) -> str:
        return self.run_logger.migration_name

    @property
    def log_file_path(self):
        return self.run_logger.log_file_path

    @property
    def processed_count(self) -> int:
        return self._processed_count

    @property
    def last_processed_item(self) -> Any:
        return self._last_processed_item

    @property
    def stop_reason(self) -> str | None:
        return self._stop_reason

    def items_to_process(self) -> int:
        """条目上限；未设置时返回策略的条目总数（只计算一次）。"""
        if self.config.items_to_process is not None:
            return self.config.items_to_process
        if self._items_total is None:
            self._items_total = strategy_count(self.strategy)
        return self._items_total

    def progress_enabled(self) -> bool:
        return self.config.progress

    def progress(self) -> int:
        """当前进度；进度条关闭时返回 -1。"""
        return self.reporter.progress

    # ---- 执行 ----

    def execute(self) -> None:
        self._processed_count = 0
        self._last_processed_item = None
        self._interrupted = False
        self._stop_reason = None

        previous_handlers = self._install_signal_handlers()
        try:
            self.run_logger.start()
            self.reporter.start()
            self._stop_reason = self._run_loop()
        except BaseException:
            # items() 本身出错时没有可记录的条目，只标记停止原因
            if self._stop_reason is None:
                self._stop_reason = STOP_ERROR
            raise
        finally:
            try:
                self.run_logger.end()
            finally:
                self.reporter.stop()
                self._restore_signal_handlers(previous_handlers)

        self._logger.info(
            "Run %s finished: %s, %d item(s) processed, log: %s",
            self.run_name,
            self._stop_reason,
            self._processed_count,
            self.log_file_path,
        )

    def summary(self) -> dict[str, Any]:
        last = self._last_processed_item
        return {
            "name": self.run_name,
            "processed": self._processed_count,
            "last_item": None if last is None else item_repr(last),
            "stop_reason": self._stop_reason,
            "log_file": str(self.log_file_path),
        }

    def artifacts(self) -> dict[str, Any] | None:
        return {"log_file": self.log_file_path}

    def _run_loop(self) -> str:
        items: Iterator[Any] = iter(self.strategy.items())
        try:
            while True:
                # 中断优先于条目上限：最后一条处理期间收到信号也会调用清理钩子
                if self._interrupted:
                    self._handle_interrupt()
                    return STOP_INTERRUPTED
                if not self._process_more():
                    return STOP_LIMIT_REACHED
                try:
                    item = next(items)
                except StopIteration:
                    return STOP_COMPLETED
                if not self._process_item(item):
                    return STOP_FAILED
        finally:
            close = getattr(items, "close", None)
            if callable(close):
                close()

    def _process_item(self, item: Any) -> bool:
        try:
            ok = self.strategy.process(item)
        except BaseException:
            self.run_logger.failure(item)
            self._stop_reason = STOP_ERROR
            raise

        if not ok:
            self.run_logger.failure(item)
            return False

        self.run_logger.success(item)
        self._processed_count += 1
        self.reporter.increment()
        self._last_processed_item = item
        return True

    def _process_more(self) -> bool:
        limit = self.config.items_to_process
        return limit is None or self._processed_count < limit

    def _handle_interrupt(self) -> None:
        self.run_logger.interrupt_start()
        callback = getattr(self.strategy, "interrupt_callback", None)
        if callable(callback):
            callback()
        self.run_logger.interrupt_end()

    # ---- 信号 ----

    def _on_signal(self, signum, frame) -> None:
        self._interrupted = True

    def _install_signal_handlers(self) -> dict[int, Any]:
        previous: dict[int, Any] = {}
        for sig in INTERRUPT_SIGNALS:
            try:
                previous[sig] = signal.signal(sig, self._on_signal)
            except ValueError:
                # 非主线程不能注册信号处理器：照常运行，只是无法响应中断
                self._logger.warning("Cannot trap %s outside the main thread; interrupts disabled", sig.name)
        return previous

    @staticmethod
    def _restore_signal_handlers(previous: dict[int, Any]) -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
