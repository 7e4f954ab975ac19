"""执行引擎基类（模板模式）。

子类只实现 `execute()`（控制循环）与 `summary()`（运行结果快照），
`run()` 负责把两者串成统一出口 `EngineResult`，CLI 只认这一个出口。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class EngineResult:
    """引擎运行结果。"""

    summary: dict[str, Any]
    artifacts: dict[str, Any] | None = None


class BaseEngine(ABC):
    @abstractmethod
    def execute(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def summary(self) -> dict[str, Any]:
        raise NotImplementedError

    def artifacts(self) -> dict[str, Any] | None:
        return None

    def run(self) -> EngineResult:
        """执行并返回结果；execute 抛出的异常原样向上传播。"""
        self.execute()
        return EngineResult(summary=self.summary(), artifacts=self.artifacts())
