"""BatchPilot 统一命令行入口。

子命令：

- `run`：按配置构建策略并执行一次批处理，返回运行 summary。
- `test`：运行 pytest。
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from engine.batch_engine import BatchEngine
from shared.config.config_loader import AppConfig, load_config
from strategy.registry import build_strategy


@dataclass
class CliArgs:
    """命令行参数结构。

    config: 配置文件路径；文件不存在且未显式给出时使用默认配置
    task: 要运行的任务类型 (run/test)
    """
    config: str
    task: str
    name: str | None = None
    limit: int | None = None        # 覆盖 run.items_to_process
    no_progress: bool = False
    config_given: bool = False


def build_parser() -> argparse.ArgumentParser:
    """构建 CLI 参数解析器。"""
    parser = argparse.ArgumentParser(prog="batchpilot", description="BatchPilot 批处理执行器")

    def _add_config_arg(p: argparse.ArgumentParser, *, default: Any) -> None:
        p.add_argument(
            "--config",
            default=default,
            help="配置文件路径 (默认: config/config.yml)",
        )

    # 允许 `main.py --config ... run` 与 `main.py run --config ...`
    _add_config_arg(parser, default=argparse.SUPPRESS)

    sub = parser.add_subparsers(dest="task")

    p_run = sub.add_parser("run", help="执行一次批处理")
    _add_config_arg(p_run, default=argparse.SUPPRESS)
    p_run.add_argument("--name", default=None, help="运行名（日志文件名标签）")
    p_run.add_argument("--limit", type=int, default=None, help="最多成功处理多少条后停止")
    p_run.add_argument("--no-progress", action="store_true", help="关闭进度条")

    sub.add_parser("test", help="运行 pytest")

    return parser


def parse_args(argv: list[str] | None = None) -> CliArgs:
    parser = build_parser()
    ns = parser.parse_args(argv)
    config = getattr(ns, "config", None)
    return CliArgs(
        config=str(config or "config/config.yml"),
        task=ns.task or "run",
        name=getattr(ns, "name", None),
        limit=getattr(ns, "limit", None),
        no_progress=bool(getattr(ns, "no_progress", False)),
        config_given=config is not None,
    )


def resolve_config(args: CliArgs) -> AppConfig:
    """加载配置并叠加命令行覆盖项（命令行优先）。"""
    if args.config_given or Path(args.config).exists():
        cfg = load_config(args.config)
    else:
        cfg = AppConfig()

    run_cfg = cfg.run
    if args.name:
        run_cfg = replace(run_cfg, name=args.name)
    if args.limit is not None:
        if args.limit < 0:
            raise ValueError("--limit must be >= 0")
        run_cfg = replace(run_cfg, items_to_process=args.limit)
    if args.no_progress:
        run_cfg = replace(run_cfg, progress=False)
    return AppConfig(run=run_cfg, strategy=cfg.strategy)


def main(argv: list[str] | None = None) -> Any:
    """程序主入口。

    Returns
    -------
    Any
        `run` 返回 summary dict；`test` 返回 pytest 退出码。
    """
    args = parse_args(argv)

    if args.task == "run":
        cfg = resolve_config(args)
        strategy = build_strategy(cfg.strategy)
        # 策略抛出的异常不在这里捕获：进程以非零码退出，日志文件已完整写完
        return BatchEngine.from_config(strategy, cfg.run).run().summary

    if args.task == "test":
        import pytest

        return pytest.main(["-q"])

    raise ValueError(f"Unknown task: {args.task}")


if __name__ == "__main__":
    main()
