"""
核心类型定义

包含异步分数流水线的状态枚举与异常层次。
"""

from __future__ import annotations
from enum import Enum
from typing import Optional


class DeferredState(Enum):
    """Deferred 状态枚举"""
    PENDING = "pending"           # 已创建，尚未订阅
    SCHEDULED = "scheduled"       # 已订阅，等待结果
    FULFILLED = "fulfilled"       # 成功完成
    FAILED = "failed"             # 异常失败

    @property
    def is_terminal(self) -> bool:
        return self in (DeferredState.FULFILLED, DeferredState.FAILED)


class FractionFormatError(ValueError):
    """分数文本格式错误"""

    def __init__(self, message: str, *, text: Optional[str] = None):
        super().__init__(message)
        self.text = text


class FractionArithmeticError(ArithmeticError):
    """分数运算错误基类"""


class ZeroDenominatorError(FractionArithmeticError, ZeroDivisionError):
    """分母为零"""


class TaskFailure(RuntimeError):
    """工作单元执行失败，由 Deferred.block() 抛出"""

    def __init__(self, message: str, *, error: Optional[BaseException] = None):
        super().__init__(message)
        self.error = error


class DeferredStateError(RuntimeError):
    """重复交付结果 - 编程错误，不可恢复"""


class OptionsError(ValueError):
    """命令行参数错误"""
