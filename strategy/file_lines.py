"""逐行复制文本文件的批处理策略。

中断时写一个 `<target>.partial` 标记文件，记录最后复制的行号，
便于人工判断目标文件是否完整。
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from strategy.base import BatchStrategy


@dataclass(frozen=True)
class LineItem:
    lineno: int
    text: str

    def to_log(self) -> str:
        return f"line {self.lineno}: {self.text}"


class FileLinesStrategy(BatchStrategy):
    def __init__(self, source: str | Path, target: str | Path, skip_blank: bool = True):
        self.source = Path(source)
        self.target = Path(target)
        self.skip_blank = skip_blank
        self.last_lineno: int | None = None

    @property
    def partial_marker(self) -> Path:
        return self.target.with_name(self.target.name + ".partial")

    def items(self) -> Iterator[LineItem]:
        with self.source.open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, 1):
                text = line.rstrip("\r\n")
                if self.skip_blank and not text.strip():
                    continue
                yield LineItem(lineno, text)

    def process(self, item: LineItem) -> bool:
        self.target.parent.mkdir(parents=True, exist_ok=True)
        with self.target.open("a", encoding="utf-8") as f:
            f.write(item.text + "\n")
        self.last_lineno = item.lineno
        return True

    def interrupt_callback(self) -> None:
        self.partial_marker.write_text(f"{self.last_lineno or 0}\n", encoding="utf-8")
