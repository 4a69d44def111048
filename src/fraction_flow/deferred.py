"""
Deferred - 异步计算句柄与组合算子

Deferred 是冷启动的：在被订阅之前不执行任何工作。
- from_work / schedule_on 构造叶子节点并绑定执行上下文
- map / on_success / then / zip_with 注册续延并立即返回
- block_and_get / block 是仅有的会阻塞调用线程的操作

续延在完成上游结果的线程上运行，不隐含线程切换。
"""

from __future__ import annotations

import logging
import threading
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Generic,
    List,
    Optional,
    TypeVar,
)

from .interfaces import ExecutionContext, UnitOfWork
from .types import DeferredState, DeferredStateError, TaskFailure

if TYPE_CHECKING:
    from .common import DiagnosticLogger

T = TypeVar("T")
U = TypeVar("U")
V = TypeVar("V")
R = TypeVar("R")

logger = logging.getLogger(__name__)

# 订阅时被调用一次，负责最终交付目标 Deferred 的终态
Source = Callable[["Deferred[Any]"], None]
Callback = Callable[["Deferred[Any]"], None]


class Deferred(Generic[T]):
    """
    异步计算句柄

    状态机：PENDING -> SCHEDULED -> FULFILLED | FAILED。
    终态只写一次，由完成工作的线程在内部条件变量保护下写入；
    第二次交付视为编程错误，抛出 DeferredStateError。
    """

    def __init__(
        self,
        source: Source,
        *,
        name: Optional[str] = None,
        work: Optional[UnitOfWork] = None,
        context: Optional[ExecutionContext] = None,
    ):
        self.name = name or "deferred"
        self._source = source
        self._work = work
        self._context = context
        self._state = DeferredState.PENDING
        self._value: Optional[T] = None
        self._error: Optional[BaseException] = None
        self._callbacks: List[Callback] = []
        self._condition = threading.Condition()

    # ------------------------------------------------------------------
    # 构造
    # ------------------------------------------------------------------
    @classmethod
    def from_work(cls, work: UnitOfWork, *, name: Optional[str] = None) -> "Deferred[Any]":
        """包装零参数计算，不指定执行上下文（订阅线程上执行）"""
        return cls._leaf(work, None, name or getattr(work, "__name__", None))

    @classmethod
    def _leaf(
        cls,
        work: UnitOfWork,
        context: Optional[ExecutionContext],
        name: Optional[str],
    ) -> "Deferred[Any]":
        def source(target: Deferred[Any]) -> None:
            if context is None:
                target._run_work(work)
            else:
                context.submit(lambda: target._run_work(work))

        return cls(source, name=name, work=work, context=context)

    @classmethod
    def just(cls, value: T) -> "Deferred[T]":
        return cls(lambda target: target._complete(value), name="just")

    @classmethod
    def empty(cls) -> "Deferred[None]":
        return cls(lambda target: target._complete(None), name="empty")

    @classmethod
    def failed(cls, error: BaseException) -> "Deferred[Any]":
        return cls(lambda target: target._fail(error), name="failed")

    # ------------------------------------------------------------------
    # 状态
    # ------------------------------------------------------------------
    @property
    def state(self) -> DeferredState:
        with self._condition:
            return self._state

    @property
    def done(self) -> bool:
        return self.state.is_terminal

    @property
    def failure(self) -> Optional[BaseException]:
        """失败时的异常，其余情况为 None"""
        with self._condition:
            return self._error if self._state is DeferredState.FAILED else None

    @property
    def context(self) -> Optional[ExecutionContext]:
        return self._context

    def __repr__(self) -> str:
        return f"Deferred(name={self.name!r}, state={self._state.value})"

    # ------------------------------------------------------------------
    # 调度
    # ------------------------------------------------------------------
    def schedule_on(self, context: ExecutionContext) -> "Deferred[T]":
        """
        绑定（或重新绑定）执行上下文

        叶子节点返回绑定到新上下文的新叶子；
        派生节点则把整个上游链的订阅移到 context 上执行。
        """
        if self._work is not None:
            return Deferred._leaf(self._work, context, self.name)

        upstream = self

        def source(target: Deferred[Any]) -> None:
            # 提交成功后再挂接转发，提交失败时上游不残留回调
            context.submit(upstream.subscribe)
            upstream._add_callback(target._relay)

        return Deferred(source, name=f"{self.name}.schedule_on({context.name})", context=context)

    def subscribe(
        self,
        on_success: Optional[Callable[[T], Any]] = None,
        on_error: Optional[Callable[[BaseException], Any]] = None,
    ) -> "Deferred[T]":
        """启动计算（幂等），可选地注册结果回调；不阻塞"""
        if on_success is not None or on_error is not None:
            self._add_callback(
                lambda deferred: deferred._notify_subscriber(on_success, on_error)
            )
        self._start()
        return self

    # ------------------------------------------------------------------
    # 组合算子
    # ------------------------------------------------------------------
    def map(self, fn: Callable[[T], U]) -> "Deferred[U]":
        """成功值经 fn 变换；上游失败或 fn 抛异常时结果失败"""
        return self._on_value("map", fn)

    def on_success(self, observer: Callable[[T], Any]) -> "Deferred[T]":
        """成功时运行 observer 后原样传递值；失败时跳过"""

        def observe(value: T) -> T:
            observer(value)
            return value

        return self._on_value("on_success", observe)

    def then(self, other: Optional["Deferred[V]"] = None) -> "Deferred[Any]":
        """
        丢弃值，只保留成功/失败

        给定 other 时，成功后订阅 other 并转交其结果。
        """
        if other is None:
            return self._on_value("then", lambda value: None)

        def on_done(upstream: Deferred[T], target: Deferred[Any]) -> None:
            if upstream._state is DeferredState.FAILED:
                target._fail(upstream._error)
                return
            try:
                other.subscribe()
            except Exception as exc:
                target._fail(exc)
                return
            other._add_callback(target._relay)

        return self._derive(on_done, f"then({other.name})")

    def zip_with(
        self,
        other: "Deferred[U]",
        combiner: Callable[[T, U], R],
    ) -> "Deferred[R]":
        return Deferred.zip(self, other, combiner)

    @staticmethod
    def zip(
        first: "Deferred[T]",
        second: "Deferred[U]",
        combiner: Callable[[T, U], R],
    ) -> "Deferred[R]":
        """
        两个 Deferred 都到达终态后合并

        任一失败则结果以最先观察到的失败结束；否则为 combiner(a, b)。
        combiner 在后完成一方的线程上运行。
        """

        def source(target: Deferred[Any]) -> None:
            lock = threading.Lock()
            arrived: List[Deferred[Any]] = []
            failures: List[BaseException] = []

            def on_done(upstream: Deferred[Any]) -> None:
                with lock:
                    arrived.append(upstream)
                    if upstream._state is DeferredState.FAILED:
                        failures.append(upstream._error)
                    if len(arrived) < 2:
                        return

                if failures:
                    target._fail(failures[0])
                    return
                try:
                    combined = combiner(first._value, second._value)
                except Exception as exc:
                    target._fail(exc)
                    return
                target._complete(combined)

            first._add_callback(on_done)
            second._add_callback(on_done)
            first.subscribe()
            second.subscribe()

        return Deferred(source, name=f"zip({first.name}, {second.name})")

    @staticmethod
    def when_all(*deferreds: "Deferred[Any]") -> "Deferred[List[Any]]":
        """全部到达终态后按参数顺序给出值列表；任一失败则失败"""
        if not deferreds:
            return Deferred.just([])

        def source(target: Deferred[Any]) -> None:
            lock = threading.Lock()
            remaining = [len(deferreds)]
            failures: List[BaseException] = []

            def on_done(upstream: Deferred[Any]) -> None:
                with lock:
                    if upstream._state is DeferredState.FAILED:
                        failures.append(upstream._error)
                    remaining[0] -= 1
                    if remaining[0]:
                        return

                if failures:
                    target._fail(failures[0])
                else:
                    target._complete([deferred._value for deferred in deferreds])

            for deferred in deferreds:
                deferred._add_callback(on_done)
            for deferred in deferreds:
                deferred.subscribe()

        return Deferred(source, name=f"when_all({len(deferreds)})")

    def do_on_error(self, observer: Callable[[BaseException], Any]) -> "Deferred[T]":
        """失败时运行 observer 后继续传递原失败；observer 抛出的异常取而代之"""

        def on_done(upstream: Deferred[T], target: Deferred[T]) -> None:
            if upstream._state is not DeferredState.FAILED:
                target._complete(upstream._value)
                return
            try:
                observer(upstream._error)
            except Exception as exc:
                target._fail(exc)
                return
            target._fail(upstream._error)

        return self._derive(on_done, "do_on_error")

    def on_error_return(self, fallback: T) -> "Deferred[T]":
        """失败时以 fallback 成功完成"""

        def on_done(upstream: Deferred[T], target: Deferred[T]) -> None:
            if upstream._state is DeferredState.FAILED:
                target._complete(fallback)
            else:
                target._complete(upstream._value)

        return self._derive(on_done, "on_error_return")

    def log(self, diagnostics: "DiagnosticLogger", tag: Optional[str] = None) -> "Deferred[T]":
        """经 DiagnosticLogger.debug 打印订阅与结果信号"""
        upstream = self

        def on_done(deferred: Deferred[T], target: Deferred[T]) -> None:
            if deferred._state is DeferredState.FAILED:
                if diagnostics.is_enabled(tag):
                    diagnostics.debug(f"{upstream.name} | on_error({deferred._error!r})", tag=tag)
                target._fail(deferred._error)
            else:
                if diagnostics.is_enabled(tag):
                    diagnostics.debug(f"{upstream.name} | on_success({deferred._value})", tag=tag)
                target._complete(deferred._value)

        def source(target: Deferred[T]) -> None:
            diagnostics.debug(f"{upstream.name} | subscribe", tag=tag)
            upstream._add_callback(lambda deferred: on_done(deferred, target))
            upstream.subscribe()

        return Deferred(source, name=f"{self.name}.log")

    # ------------------------------------------------------------------
    # 阻塞获取
    # ------------------------------------------------------------------
    def block_and_get(self) -> Optional[T]:
        """
        阻塞直到终态，返回值；失败时返回 None 而不抛出

        不得在执行本链的单线程上下文内调用，否则会自我等待。
        """
        self._wait()
        if self._state is DeferredState.FAILED:
            logger.debug(f"{self.name} 失败，block_and_get 返回 None: {self._error!r}")
            return None
        return self._value

    def block(self) -> T:
        """阻塞直到终态，返回值；失败时抛出 TaskFailure，保留原始异常"""
        self._wait()
        if self._state is DeferredState.FAILED:
            raise TaskFailure(f"{self.name} 执行失败: {self._error}", error=self._error) from self._error
        return self._value

    # ------------------------------------------------------------------
    # 内部实现
    # ------------------------------------------------------------------
    def _wait(self) -> None:
        self._start()
        with self._condition:
            self._condition.wait_for(lambda: self._state.is_terminal)

    def _start(self) -> None:
        with self._condition:
            if self._state is not DeferredState.PENDING:
                return
            self._state = DeferredState.SCHEDULED

        try:
            self._source(self)
        except Exception as exc:
            if self.done:
                raise
            logger.debug(f"{self.name} 启动失败: {exc!r}")
            self._fail(exc)

    def _run_work(self, work: UnitOfWork) -> None:
        try:
            value = work()
        except Exception as exc:
            self._fail(exc)
            return
        except BaseException as exc:
            # SystemExit / KeyboardInterrupt 同样记为失败，之后继续向外抛出
            self._fail(exc)
            raise
        self._complete(value)

    def _derive(
        self,
        on_done: Callable[["Deferred[T]", "Deferred[Any]"], None],
        name: str,
    ) -> "Deferred[Any]":
        upstream = self

        def source(target: Deferred[Any]) -> None:
            upstream._add_callback(lambda deferred: on_done(deferred, target))
            upstream.subscribe()

        return Deferred(source, name=f"{self.name}.{name}")

    def _on_value(self, name: str, fn: Callable[[T], Any]) -> "Deferred[Any]":
        def on_done(upstream: Deferred[T], target: Deferred[Any]) -> None:
            if upstream._state is DeferredState.FAILED:
                target._fail(upstream._error)
                return
            try:
                result = fn(upstream._value)
            except Exception as exc:
                target._fail(exc)
                return
            target._complete(result)

        return self._derive(on_done, name)

    def _relay(self, upstream: "Deferred[Any]") -> None:
        if upstream._state is DeferredState.FAILED:
            self._fail(upstream._error)
        else:
            self._complete(upstream._value)

    def _notify_subscriber(
        self,
        on_success: Optional[Callable[[T], Any]],
        on_error: Optional[Callable[[BaseException], Any]],
    ) -> None:
        try:
            if self._state is DeferredState.FAILED:
                if on_error is not None:
                    on_error(self._error)
                else:
                    logger.debug(f"{self.name} 失败且未注册错误回调: {self._error!r}")
            elif on_success is not None:
                on_success(self._value)
        except Exception as exc:
            # 订阅者回调的异常无处传递，记录后丢弃
            logger.error(f"{self.name} 的订阅回调抛出异常，已丢弃: {exc!r}", exc_info=True)

    def _add_callback(self, callback: Callback) -> None:
        with self._condition:
            if not self._state.is_terminal:
                self._callbacks.append(callback)
                return
        callback(self)

    def _complete(self, value: Any) -> None:
        self._settle(DeferredState.FULFILLED, value, None)

    def _fail(self, error: BaseException) -> None:
        self._settle(DeferredState.FAILED, None, error)

    def _settle(
        self,
        state: DeferredState,
        value: Any,
        error: Optional[BaseException],
    ) -> None:
        with self._condition:
            if self._state.is_terminal:
                raise DeferredStateError(
                    f"{self.name} 已处于终态 {self._state.value}，不能再次交付"
                )
            self._state = state
            self._value = value
            self._error = error
            callbacks, self._callbacks = self._callbacks, []
            self._condition.notify_all()

        for callback in callbacks:
            try:
                callback(self)
            except Exception as exc:
                # 单个回调出错不影响其余回调
                logger.error(f"{self.name} 的回调执行失败: {exc!r}", exc_info=True)
