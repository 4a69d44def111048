"""
Fraction Flow - 基于线程调度器的异步分数运算流水线

主要功能:
- BigFraction 任意精度分数：约分、乘法、加法、带分数输出
- Deferred 异步计算句柄：map / on_success / then / zip / block_and_get
- 调度器：single 单线程上下文与 parallel 并行线程池
- asyncio 互通适配
"""

# 主要API导出
from .types import (
    DeferredState,
    FractionFormatError,
    FractionArithmeticError,
    ZeroDenominatorError,
    TaskFailure,
    DeferredStateError,
    OptionsError,
)
from .fraction import BigFraction
from .deferred import Deferred
from .interfaces import ExecutionContext, UnitOfWork
from .scheduler import (
    WorkerContext,
    ImmediateContext,
    single,
    parallel,
    immediate,
    new_single,
    new_parallel,
    shutdown_all,
    submit,
)
from .common import Options, DiagnosticLogger, create_default_logger
from .async_adapter import AsyncLoopAdapter, from_coroutine, await_deferred
from . import examples

__version__ = "1.0.0"
__author__ = "Fraction Flow Team"

# 主要接口
__all__ = [
    # 核心类型
    "BigFraction",
    "Deferred",
    "DeferredState",

    # 调度
    "ExecutionContext",
    "UnitOfWork",
    "WorkerContext",
    "ImmediateContext",
    "single",
    "parallel",
    "immediate",
    "new_single",
    "new_parallel",
    "shutdown_all",
    "submit",

    # 配置与日志
    "Options",
    "DiagnosticLogger",
    "create_default_logger",

    # asyncio 互通
    "AsyncLoopAdapter",
    "from_coroutine",
    "await_deferred",

    # 示例模块
    "examples",

    # 异常
    "FractionFormatError",
    "FractionArithmeticError",
    "ZeroDenominatorError",
    "TaskFailure",
    "DeferredStateError",
    "OptionsError",
]


def get_version() -> str:
    """获取版本信息"""
    return __version__
