"""批处理策略协议。

engine 只依赖以下约定（鸭子类型即可，不强制继承）：

- `items()`：返回有序、可重复迭代（可惰性）的条目序列；
- `process(item) -> bool`：处理单个条目，返回是否成功；抛异常表示不可恢复；
- `count()`（可选）：条目总数估计；
- `interrupt_callback()`（可选）：收到 SIGINT/SIGTERM 后、停止前的清理钩子。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sized
from typing import Any, Iterable


class BatchStrategy(ABC):
    @abstractmethod
    def items(self) -> Iterable[Any]:
        """返回待处理条目序列。"""
        ...

    @abstractmethod
    def process(self, item: Any) -> bool:
        """处理一个条目，成功返回 True。"""
        ...

    def count(self) -> int:
        return count_items(self.items())


def count_items(items: Iterable[Any]) -> int:
    """计数：Sized 直接 len，否则完整迭代一遍。"""
    if isinstance(items, Sized):
        return len(items)
    return sum(1 for _ in items)


def strategy_count(strategy: Any) -> int:
    count = getattr(strategy, "count", None)
    if callable(count):
        return int(count())
    return count_items(strategy.items())
