"""配置 Schema 校验。

目标：
- 在启动阶段尽早失败，避免 typo 在跑了几万条之后才暴露；
- 对 `run` 段做严格校验；策略参数是“开放字段”，由策略自行解释。
"""

from __future__ import annotations

import difflib
from typing import Any, Iterable


def _suggest_key(key: str, allowed: Iterable[str]) -> str | None:
    matches = difflib.get_close_matches(key, list(allowed), n=1, cutoff=0.75)
    return matches[0] if matches else None


def _ensure_allowed_keys(block: dict[str, Any], *, allowed: set[str], ctx: str) -> None:
    unknown = [k for k in block.keys() if k not in allowed]
    if not unknown:
        return
    parts = []
    for k in sorted(unknown):
        suggestion = _suggest_key(k, allowed)
        if suggestion:
            parts.append(f"{k} (did you mean '{suggestion}'?)")
        else:
            parts.append(k)
    raise ValueError(f"{ctx} contains unknown keys: {', '.join(parts)}")


def _expect_dict(val: Any, *, ctx: str) -> dict[str, Any]:
    if not isinstance(val, dict):
        raise ValueError(f"{ctx} must be a dict")
    return val


def _expect_str(val: Any, *, ctx: str) -> str:
    if not isinstance(val, str) or not val.strip():
        raise ValueError(f"{ctx} must be a non-empty string")
    return val


def _expect_bool(val: Any, *, ctx: str) -> bool:
    if isinstance(val, bool):
        return val
    raise ValueError(f"{ctx} must be a bool")


def _expect_non_negative_int(val: Any, *, ctx: str) -> int:
    # bool 是 int 的子类，这里显式排除
    if isinstance(val, bool) or not isinstance(val, int):
        raise ValueError(f"{ctx} must be an integer")
    if val < 0:
        raise ValueError(f"{ctx} must be >= 0")
    return val


def validate_raw_config(cfg: dict[str, Any]) -> None:
    """校验 raw config dict（来自 YAML + env 展开后）。"""
    if not isinstance(cfg, dict):
        raise ValueError("Config root must be a dict")

    _ensure_allowed_keys(cfg, allowed={"run", "strategy"}, ctx="config")

    run = cfg.get("run")
    if run is not None:
        _validate_run(_expect_dict(run, ctx="config.run"))

    strategy = cfg.get("strategy")
    if strategy is not None:
        strategy = _expect_dict(strategy, ctx="config.strategy")
        # 只强约束 type；其余参数留给策略层解释
        if "type" in strategy:
            _expect_str(strategy["type"], ctx="config.strategy.type")


def _validate_run(run: dict[str, Any]) -> None:
    allowed = {"name", "items_to_process", "progress", "log_dir"}
    _ensure_allowed_keys(run, allowed=allowed, ctx="config.run")

    if run.get("name") is not None:
        _expect_str(run["name"], ctx="config.run.name")
    if run.get("items_to_process") is not None:
        _expect_non_negative_int(run["items_to_process"], ctx="config.run.items_to_process")
    if run.get("progress") is not None:
        _expect_bool(run["progress"], ctx="config.run.progress")
    if run.get("log_dir") is not None:
        _expect_str(run["log_dir"], ctx="config.run.log_dir")
