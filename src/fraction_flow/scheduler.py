"""
调度器 - 进程级命名执行上下文

- single: 单个专用工作线程，按提交顺序依次执行
- parallel: 按硬件并发度确定大小的共享线程池，不保证顺序
- immediate: 在提交线程上直接执行

上下文在首次提交时懒初始化，并在各 Deferred 间复用。
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Optional

from .deferred import Deferred
from .interfaces import ExecutionContext, UnitOfWork

logger = logging.getLogger(__name__)


class WorkerContext:
    """基于线程池的执行上下文"""

    def __init__(self, name: str, max_workers: int):
        if max_workers <= 0:
            raise ValueError("max_workers 必须大于0")
        self.name = name
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, task: Callable[[], None]) -> None:
        """在工作线程上执行 task"""
        executor = self._ensure_executor()
        executor.submit(self._run_task, task)

    def _ensure_executor(self) -> ThreadPoolExecutor:
        """懒初始化线程池"""
        with self._lock:
            if self._closed:
                raise RuntimeError(f"执行上下文 {self.name} 已关闭")
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix=self.name,
                )
                logger.debug(f"启动执行上下文 {self.name}，线程数 {self.max_workers}")
            return self._executor

    def _run_task(self, task: Callable[[], None]) -> None:
        try:
            task()
        except BaseException as exc:
            # 线程池会把异常吞进无人读取的 Future，这里先记录
            logger.error(f"执行上下文 {self.name} 中的任务异常: {exc!r}", exc_info=True)
            raise

    def dispose(self, wait: bool = True) -> None:
        """释放线程池，下次提交时重新创建"""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
            logger.debug(f"执行上下文 {self.name} 已释放")

    def close(self, wait: bool = True) -> None:
        """永久关闭，之后的提交抛出 RuntimeError"""
        with self._lock:
            self._closed = True
        self.dispose(wait=wait)

    @property
    def started(self) -> bool:
        with self._lock:
            return self._executor is not None

    def __repr__(self) -> str:
        return f"WorkerContext(name={self.name!r}, max_workers={self.max_workers})"


class ImmediateContext:
    """在提交线程上直接执行"""

    name = "immediate"

    def submit(self, task: Callable[[], None]) -> None:
        task()


class SchedulerRegistry:
    """进程级上下文注册表"""

    SINGLE = "single"
    PARALLEL = "parallel"

    def __init__(self):
        self._contexts: Dict[str, WorkerContext] = {}
        self._lock = threading.Lock()
        self._immediate = ImmediateContext()

    def single(self) -> WorkerContext:
        return self._get_or_create(self.SINGLE, 1)

    def parallel(self) -> WorkerContext:
        return self._get_or_create(self.PARALLEL, os.cpu_count() or 1)

    def immediate(self) -> ImmediateContext:
        return self._immediate

    def _get_or_create(self, name: str, max_workers: int) -> WorkerContext:
        with self._lock:
            context = self._contexts.get(name)
            if context is None:
                context = WorkerContext(name, max_workers)
                self._contexts[name] = context
            return context

    def shutdown_all(self, wait: bool = True) -> None:
        with self._lock:
            contexts = list(self._contexts.values())
        for context in contexts:
            context.dispose(wait=wait)


# 全局注册表实例
_registry = SchedulerRegistry()


def single() -> WorkerContext:
    """单工作线程上下文"""
    return _registry.single()


def parallel() -> WorkerContext:
    """共享并行线程池上下文"""
    return _registry.parallel()


def immediate() -> ImmediateContext:
    """调用线程上下文"""
    return _registry.immediate()


def new_single(name: str = "single-isolated") -> WorkerContext:
    """创建独立的单线程上下文（不登记到全局注册表）"""
    return WorkerContext(name, 1)


def new_parallel(name: str = "parallel-isolated", workers: Optional[int] = None) -> WorkerContext:
    """创建独立的线程池上下文（不登记到全局注册表）"""
    return WorkerContext(name, workers or os.cpu_count() or 1)


def shutdown_all(wait: bool = True) -> None:
    """释放全部进程级上下文"""
    _registry.shutdown_all(wait=wait)


def submit(context: ExecutionContext, work: UnitOfWork) -> Deferred:
    """
    提交工作单元并立即返回处于 SCHEDULED 状态的 Deferred

    work 在 context 上异步开始执行，不一定早于本函数返回。
    """
    return Deferred.from_work(work).schedule_on(context).subscribe()
