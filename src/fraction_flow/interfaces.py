"""
执行上下文与工作单元接口定义
"""

from typing import Protocol, runtime_checkable, Callable, TypeVar

T = TypeVar("T")

# 零参数、可抛异常的计算
UnitOfWork = Callable[[], T]


@runtime_checkable
class ExecutionContext(Protocol):
    """执行上下文协议 - Deferred 在其上调度工作"""

    name: str

    def submit(self, task: Callable[[], None]) -> None:
        """
        异步执行 task

        task 自行捕获工作单元的异常；submit 只在上下文不可用时抛出。
        """
        ...
