"""
流水线运行器 - 运行已注册的演示流水线并汇总结果
"""

import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..common import DiagnosticLogger
from ..deferred import Deferred
from ..types import TaskFailure

PipelineFactory = Callable[[], Deferred]


@dataclass
class PipelineOutcome:
    """单条流水线的运行结果"""
    name: str
    succeeded: bool
    elapsed: float = 0.0
    error: Optional[BaseException] = None


class PipelineRunner:
    """注册流水线工厂，顺序或并发地运行它们"""

    def __init__(self, diagnostics: Optional[DiagnosticLogger] = None):
        self.diagnostics = diagnostics or DiagnosticLogger()
        self._pipelines: List[Tuple[str, PipelineFactory]] = []

    def register(self, factory: PipelineFactory, name: Optional[str] = None) -> "PipelineRunner":
        self._pipelines.append((name or factory.__name__, factory))
        return self

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self._pipelines]

    def run(self, sequential: bool = True) -> List[PipelineOutcome]:
        """
        运行全部流水线

        sequential 为 True 时逐条运行并等待；否则先全部启动再逐一等待。
        """
        if sequential:
            outcomes = []
            for name, factory in self._pipelines:
                started_at = time.time()
                outcomes.append(self._await(name, self._start(name, factory), started_at))
            return outcomes

        started_at = time.time()
        running = [(name, self._start(name, factory)) for name, factory in self._pipelines]
        return [self._await(name, deferred, started_at) for name, deferred in running]

    def _start(self, name: str, factory: PipelineFactory) -> Deferred:
        self.diagnostics.debug(f"启动流水线 {name}", tag="runner")
        try:
            deferred = factory()
        except Exception as exc:
            return Deferred.failed(exc)
        return deferred.subscribe()

    def _await(self, name: str, deferred: Deferred, started_at: float) -> PipelineOutcome:
        try:
            deferred.block()
        except TaskFailure as failure:
            self.diagnostics.error(f"流水线 {name} 失败: {failure.error!r}")
            return PipelineOutcome(name, False, time.time() - started_at, failure.error)

        elapsed = time.time() - started_at
        self.diagnostics.debug(f"流水线 {name} 完成，用时 {elapsed:.3f}s", tag="runner")
        return PipelineOutcome(name, True, elapsed)
