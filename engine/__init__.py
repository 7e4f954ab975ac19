"""执行引擎层（engine）。

统一入口：`BatchEngine.execute()` 跑一次批处理，`run() -> EngineResult` 附带 summary；
命令行入口由仓库根目录 `main.py` 统一承载。
"""
