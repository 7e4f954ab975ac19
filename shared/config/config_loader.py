"""配置加载与数据结构。

支持 YAML 配置与环境变量占位符 `${VAR}` 展开。
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

import yaml
from pydantic import ValidationError

from shared.config.schema import ConfigSchema
from shared.config.validation import validate_raw_config


@dataclass(frozen=True)
class RunConfig:
    """单次运行配置；engine 开始执行后不再修改。"""
    name: str | None = None
    items_to_process: int | None = None
    progress: bool = True
    progress_output: TextIO | None = field(default=None, compare=False, repr=False)
    log_dir: str = "log"


@dataclass
class StrategyConfig:
    """策略配置（type + params）。"""
    type: str = "range"
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class AppConfig:
    """应用总配置。"""
    run: RunConfig = field(default_factory=RunConfig)
    strategy: StrategyConfig = field(default_factory=StrategyConfig)


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        # 未设置的变量直接报错，避免静默替换为空
        def replacer(match):
            var_name = match.group(1)
            if var_name not in os.environ:
                raise ValueError(f"Missing environment variable: {var_name}")
            return os.environ[var_name]

        return re.sub(r"\$\{([^}]+)\}", replacer, value)
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    return value


def parse_config(raw_cfg: dict[str, Any]) -> AppConfig:
    """把（已展开的）raw dict 解析为 AppConfig。

    Raises
    ------
    ValueError
        未知字段、类型错误或取值越界。
    """
    validate_raw_config(raw_cfg)

    run_raw = {k: v for k, v in (raw_cfg.get("run") or {}).items() if v is not None}
    strategy_raw = raw_cfg.get("strategy") or {}
    try:
        schema = ConfigSchema(run=run_raw, strategy=strategy_raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid config: {exc}") from exc

    return AppConfig(
        run=RunConfig(
            name=schema.run.name,
            items_to_process=schema.run.items_to_process,
            progress=schema.run.progress,
            log_dir=schema.run.log_dir,
        ),
        strategy=StrategyConfig(type=schema.strategy.type, params=dict(schema.strategy.params)),
    )


def load_config(path: str | Path, expand_env: bool = True) -> AppConfig:
    """从 YAML 读取并解析配置。

    Parameters
    ----------
    path:
        配置文件路径。
    expand_env:
        是否展开 `${VAR}` 占位符。

    Returns
    -------
    AppConfig
        解析后的配置对象。

    Raises
    ------
    FileNotFoundError
        配置文件不存在。
    ValueError
        配置不合法或缺失环境变量。
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as f:
        raw_cfg: dict[str, Any] = yaml.safe_load(f) or {}

    if expand_env:
        raw_cfg = _expand_env(raw_cfg)
    return parse_config(raw_cfg)
