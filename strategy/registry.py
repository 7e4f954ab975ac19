"""策略注册表：字符串 -> BatchStrategy 实现。

engine 只负责 orchestration，CLI 下的策略实例由配置驱动构建。
"""

from __future__ import annotations

import inspect
from typing import Any, Mapping

from shared.config.config_loader import StrategyConfig
from strategy.base import BatchStrategy
from strategy.file_lines import FileLinesStrategy
from strategy.range_items import RangeStrategy

_REGISTRY: dict[str, type[BatchStrategy]] = {}


def register_strategy(name: str, cls: type[BatchStrategy]) -> None:
    _REGISTRY[name] = cls


def get_strategy_cls(name: str) -> type[BatchStrategy]:
    if name not in _REGISTRY:
        raise ValueError(f"Unknown strategy: {name}")
    return _REGISTRY[name]


def _filter_init_kwargs(cls: type, params: Mapping[str, Any]) -> dict[str, Any]:
    """过滤出 __init__ 支持的参数，避免配置里多字段导致报错。"""
    try:
        sig = inspect.signature(cls.__init__)
    except (TypeError, ValueError):
        return dict(params)

    if any(p.kind == inspect.Parameter.VAR_KEYWORD for p in sig.parameters.values()):
        return dict(params)

    allowed = {name for name in sig.parameters.keys() if name != "self"}
    return {k: v for k, v in params.items() if k in allowed}


def build_strategy(cfg: StrategyConfig | Mapping[str, Any] | None) -> BatchStrategy:
    """从配置构建策略实例。

    支持：
    - StrategyConfig（来自 shared.config.config_loader）
    - dict（含 type + 参数字段）
    - None：默认 `range` 策略
    """
    if cfg is None:
        return RangeStrategy()

    if isinstance(cfg, StrategyConfig):
        name = str(cfg.type)
        params = cfg.params or {}
    elif isinstance(cfg, Mapping):
        name = str(cfg.get("type"))
        params = dict(cfg)
        params.pop("type", None)
    else:
        raise ValueError("strategy cfg must be StrategyConfig or dict")

    cls = get_strategy_cls(name)
    return cls(**_filter_init_kwargs(cls, params))


# 默认注册
register_strategy("range", RangeStrategy)
register_strategy("file_lines", FileLinesStrategy)
