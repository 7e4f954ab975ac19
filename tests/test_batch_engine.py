"""BatchEngine 控制循环测试。

测试策略持有连续整数 [1, 2, ..., 10]，便于按位置断言日志与状态。
"""

from __future__ import annotations

import io
import os
import signal
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

from engine.batch_engine import BatchEngine
from utils.progress import PROGRESS_DISABLED


@dataclass(frozen=True)
class Item:
    value: int

    def to_log(self) -> str:
        return f"item-{self.value}"


class SampleStrategy:
    def __init__(self, values=None):
        self.values = list(range(1, 11)) if values is None else list(values)
        self.failed_item = -1
        self.exception_item = -1
        self.signal_item = -1
        self.signal_to_send = signal.SIGINT
        self.fetched: list[int] = []
        self.interrupt_calls = 0

    def items(self):
        for value in self.values:
            self.fetched.append(value)
            yield Item(value)

    def count(self) -> int:
        return len(self.values)

    def process(self, item: Item) -> bool:
        if item.value == self.exception_item:
            raise RuntimeError("Cannot process this item")
        if item.value == self.signal_item:
            # 模拟用户在处理中途按下 Ctrl+C / 收到 kill
            os.kill(os.getpid(), self.signal_to_send)
        return item.value != self.failed_item

    def interrupt_callback(self) -> None:
        self.interrupt_calls += 1


class NoCleanupStrategy:
    def __init__(self, signal_item: int = 3):
        self.signal_item = signal_item

    def items(self):
        return [Item(v) for v in range(1, 6)]

    def process(self, item: Item) -> bool:
        if item.value == self.signal_item:
            os.kill(os.getpid(), signal.SIGINT)
        return True


def _log_lines(path: Path) -> list[str]:
    return path.read_text(encoding="utf-8").splitlines()


def _engine(strategy, **kwargs) -> BatchEngine:
    kwargs.setdefault("progress", False)
    return BatchEngine(strategy, **kwargs)


def test_items_to_process_uses_limit_when_set(workdir):
    assert _engine(SampleStrategy(), items_to_process=5).items_to_process() == 5


def test_items_to_process_defaults_to_strategy_count(workdir):
    assert _engine(SampleStrategy()).items_to_process() == 10
    assert _engine(SampleStrategy(values=[])).items_to_process() == 0


def test_items_to_process_counts_items_without_count_method(workdir):
    class _NoCount:
        def items(self):
            return iter([Item(1), Item(2), Item(3)])

        def process(self, item):
            return True

    assert _engine(_NoCount()).items_to_process() == 3


def test_negative_limit_rejected(workdir):
    with pytest.raises(ValueError):
        BatchEngine(SampleStrategy(), items_to_process=-1, progress=False)


def test_processes_all_items_without_limit(workdir):
    strategy = SampleStrategy()
    engine = _engine(strategy)
    engine.execute()

    assert engine.processed_count == 10
    assert engine.last_processed_item == Item(10)
    assert engine.stop_reason == "completed"


def test_empty_source_processes_nothing(workdir):
    engine = _engine(SampleStrategy(values=[]))
    engine.execute()

    assert engine.processed_count == 0
    assert engine.last_processed_item is None
    lines = _log_lines(engine.log_file_path)
    assert len(lines) == 2


def test_limit_stops_before_fetching_next_item(workdir):
    strategy = SampleStrategy()
    engine = _engine(strategy, items_to_process=5)
    engine.execute()

    assert engine.processed_count == 5
    assert engine.last_processed_item == Item(5)
    assert strategy.fetched == [1, 2, 3, 4, 5]
    assert engine.stop_reason == "limit_reached"


def test_limit_zero_processes_nothing(workdir):
    strategy = SampleStrategy()
    engine = _engine(strategy, items_to_process=0)
    engine.execute()

    assert engine.processed_count == 0
    assert strategy.fetched == []


@pytest.mark.parametrize("limit", [10, 11, 100])
def test_limit_not_below_total_processes_everything(workdir, limit):
    engine = _engine(SampleStrategy(), items_to_process=limit)
    engine.execute()

    assert engine.processed_count == 10
    assert engine.last_processed_item == Item(10)


def test_log_shape_for_successful_run(workdir):
    engine = _engine(SampleStrategy())
    engine.execute()

    path = engine.log_file_path
    assert path.exists()
    assert path.parent.resolve() == (workdir / "log").resolve()

    lines = _log_lines(path)
    assert len(lines) == 12
    assert "Start Processing..." in lines[0]
    assert "...end of processing" in lines[-1]
    for index, line in enumerate(lines[1:-1], 1):
        assert f"...successfully processed item: item-{index}" in line
        assert "[INFO]" in line


@pytest.mark.parametrize("failed_item", [1, 3, 5])
def test_failed_item_halts_run_without_raising(workdir, failed_item):
    strategy = SampleStrategy()
    strategy.failed_item = failed_item
    engine = BatchEngine(strategy, progress_output=io.StringIO())
    engine.execute()

    lines = _log_lines(engine.log_file_path)
    assert len(lines) == failed_item + 2
    for index, line in enumerate(lines[1:failed_item], 1):
        assert f"successfully processed item: item-{index}" in line
    assert f"...error while processing item: item-{failed_item}" in lines[-2]
    assert "[ERROR]" in lines[-2]
    assert "...end of processing" in lines[-1]

    assert engine.processed_count == failed_item - 1
    assert engine.progress() == failed_item - 1
    assert strategy.fetched == list(range(1, failed_item + 1))
    assert engine.stop_reason == "failed"


@pytest.mark.parametrize("exception_item", [1, 4])
def test_raising_item_is_logged_then_propagated(workdir, exception_item):
    strategy = SampleStrategy()
    strategy.exception_item = exception_item
    engine = _engine(strategy)

    with pytest.raises(RuntimeError, match="Cannot process this item"):
        engine.execute()

    lines = _log_lines(engine.log_file_path)
    assert len(lines) == exception_item + 2
    assert f"...error while processing item: item-{exception_item}" in lines[-2]
    assert "...end of processing" in lines[-1]
    assert engine.processed_count == exception_item - 1
    assert engine.stop_reason == "error"


def test_system_exit_from_process_is_logged_then_propagated(workdir):
    class _ExitingStrategy(SampleStrategy):
        def process(self, item: Item) -> bool:
            if item.value == 2:
                sys.exit(3)
            return True

    engine = _engine(_ExitingStrategy())
    with pytest.raises(SystemExit) as exc:
        engine.execute()

    assert exc.value.code == 3
    lines = _log_lines(engine.log_file_path)
    assert len(lines) == 4
    assert "...error while processing item: item-2" in lines[-2]
    assert "...end of processing" in lines[-1]
    assert engine.processed_count == 1
    assert engine.stop_reason == "error"


def test_faulty_item_source_marks_run_as_error(workdir):
    class _BrokenSource(SampleStrategy):
        def items(self):
            yield Item(1)
            raise OSError("source went away")

    engine = _engine(_BrokenSource())
    with pytest.raises(OSError, match="source went away"):
        engine.execute()

    lines = _log_lines(engine.log_file_path)
    assert "successfully processed item: item-1" in lines[1]
    assert "...end of processing" in lines[-1]
    assert engine.processed_count == 1
    assert engine.stop_reason == "error"


@pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
def test_interrupt_runs_cleanup_between_items(workdir, signum):
    strategy = SampleStrategy()
    strategy.signal_item = 3
    strategy.signal_to_send = signum
    engine = _engine(strategy)
    engine.execute()

    # 正在处理的第 3 条照常完成，第 4 条不再取出
    assert engine.processed_count == 3
    assert strategy.fetched == [1, 2, 3]
    assert strategy.interrupt_calls == 1
    assert engine.stop_reason == "interrupted"

    lines = _log_lines(engine.log_file_path)
    assert "user interrupted, calling interrupt callback on migration strategy..." in lines[-3]
    assert "...end of interrupt callback after user interruption" in lines[-2]
    assert "...end of processing" in lines[-1]


def test_interrupt_without_cleanup_hook_stops_cleanly(workdir):
    engine = _engine(NoCleanupStrategy(signal_item=2))
    engine.execute()

    assert engine.processed_count == 2
    assert engine.stop_reason == "interrupted"
    lines = _log_lines(engine.log_file_path)
    assert "...end of interrupt callback after user interruption" in lines[-2]


def test_interrupt_on_last_item_still_runs_cleanup(workdir):
    strategy = SampleStrategy()
    strategy.signal_item = 10
    engine = _engine(strategy)
    engine.execute()

    assert engine.processed_count == 10
    assert strategy.interrupt_calls == 1
    assert engine.stop_reason == "interrupted"


def test_interrupt_takes_priority_over_item_limit(workdir):
    strategy = SampleStrategy()
    strategy.signal_item = 4
    engine = _engine(strategy, items_to_process=4)
    engine.execute()

    assert engine.processed_count == 4
    assert strategy.interrupt_calls == 1
    assert engine.stop_reason == "interrupted"


def test_failure_takes_priority_over_interrupt(workdir):
    strategy = SampleStrategy()
    strategy.signal_item = 2
    strategy.failed_item = 2
    engine = _engine(strategy)
    engine.execute()

    assert strategy.interrupt_calls == 0
    assert engine.stop_reason == "failed"


def test_signal_handlers_restored_after_run(workdir):
    before = signal.getsignal(signal.SIGINT), signal.getsignal(signal.SIGTERM)
    strategy = SampleStrategy()
    strategy.exception_item = 2
    with pytest.raises(RuntimeError):
        _engine(strategy).execute()

    assert (signal.getsignal(signal.SIGINT), signal.getsignal(signal.SIGTERM)) == before


def test_progress_enabled_by_default(workdir):
    engine = BatchEngine(SampleStrategy(), progress_output=io.StringIO())
    assert engine.progress_enabled() is True
    assert engine.progress() == 0


def test_progress_advances_once_per_processed_item(workdir):
    engine = BatchEngine(SampleStrategy(), progress_output=io.StringIO())
    before = engine.progress()
    engine.execute()

    assert engine.progress() - before == 10


def test_progress_total_follows_item_limit(workdir):
    engine = BatchEngine(SampleStrategy(), items_to_process=4, progress_output=io.StringIO())
    assert engine.reporter.total == 4


def test_progress_advances_by_item_limit(workdir):
    engine = BatchEngine(SampleStrategy(), items_to_process=4, progress_output=io.StringIO())
    before = engine.progress()
    engine.execute()

    assert before == 0
    assert engine.progress() == 4
    assert engine.processed_count == 4


@pytest.mark.parametrize("outcome", ["completed", "failed", "error"])
def test_progress_disabled_reports_sentinel(workdir, outcome):
    strategy = SampleStrategy()
    if outcome == "failed":
        strategy.failed_item = 3
    elif outcome == "error":
        strategy.exception_item = 3
    engine = _engine(strategy)
    assert engine.progress_enabled() is False
    assert engine.progress() == PROGRESS_DISABLED

    if outcome == "error":
        with pytest.raises(RuntimeError):
            engine.execute()
    else:
        engine.execute()

    assert engine.stop_reason == outcome
    assert engine.progress() == -1


def test_run_name_derived_from_strategy_class(workdir):
    engine = _engine(SampleStrategy())
    assert engine.run_name == "SAMPLE_STRATEGY"
    assert engine.log_file_path.name.startswith("migration-SAMPLE_STRATEGY-")


def test_log_file_path_is_stable(workdir):
    engine = _engine(SampleStrategy(), name="backfill")
    first = engine.log_file_path
    engine.execute()
    assert engine.log_file_path == first


def test_run_returns_summary(workdir):
    result = _engine(SampleStrategy(), name="users", items_to_process=3).run()

    assert result.summary["name"] == "USERS"
    assert result.summary["processed"] == 3
    assert result.summary["last_item"] == "item-3"
    assert result.summary["stop_reason"] == "limit_reached"
    assert Path(result.summary["log_file"]).exists()
    assert result.artifacts == {"log_file": Path(result.summary["log_file"])}


def test_from_config_applies_run_config(workdir):
    from shared.config.config_loader import RunConfig

    cfg = RunConfig(name="from cfg", items_to_process=2, progress=False, log_dir="logs/batch")
    engine = BatchEngine.from_config(SampleStrategy(), cfg)
    engine.execute()

    assert engine.processed_count == 2
    assert engine.run_name == "FROMCFG"
    assert engine.log_file_path.parent.resolve() == (workdir / "logs" / "batch").resolve()
