from __future__ import annotations

from dataclasses import dataclass

from strategy.base import BatchStrategy


@dataclass(frozen=True)
class NumberItem:
    value: int

    def to_log(self) -> str:
        return str(self.value)


class RangeStrategy(BatchStrategy):
    """整数区间 [start, stop)，用于 dry-run/演示。

    fail_on 对应的条目返回 False；raise_on 对应的条目抛 RuntimeError。
    """

    def __init__(self, start: int = 1, stop: int = 11, fail_on: int | None = None, raise_on: int | None = None):
        self.start = int(start)
        self.stop = int(stop)
        self.fail_on = fail_on
        self.raise_on = raise_on
        self.interrupted = False

    def items(self):
        for value in range(self.start, self.stop):
            yield NumberItem(value)

    def count(self) -> int:
        return max(0, self.stop - self.start)

    def process(self, item: NumberItem) -> bool:
        if self.raise_on is not None and item.value == self.raise_on:
            raise RuntimeError(f"Cannot process item {item.value}")
        return self.fail_on is None or item.value != self.fail_on

    def interrupt_callback(self) -> None:
        self.interrupted = True
