"""配置架构定义（Pydantic Schema）。

`validation.py` 负责给出友好的 key 错误提示；这里负责类型与取值范围，
把 YAML 里的原始 dict 收敛成强类型对象。
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RunSection(BaseModel):
    """单次运行参数。"""
    name: Optional[str] = None
    items_to_process: Optional[int] = Field(default=None, ge=0)
    progress: bool = True
    log_dir: str = "log"

    model_config = ConfigDict(extra="forbid")


class StrategySection(BaseModel):
    """策略配置：type + 任意参数字段。"""
    type: str = "range"
    params: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def _collect_params(cls, data: Any) -> Any:
        # YAML 里参数与 type 平铺，这里收拢到 params
        if not isinstance(data, dict):
            return data
        data = dict(data)
        params = dict(data.pop("params", None) or {})
        strat_type = data.pop("type", "range")
        params.update(data)
        return {"type": strat_type, "params": params}


class ConfigSchema(BaseModel):
    run: RunSection = Field(default_factory=RunSection)
    strategy: StrategySection = Field(default_factory=StrategySection)

    model_config = ConfigDict(extra="forbid")
