"""
asyncio 适配器 - Deferred 与协程互通

- from_coroutine(): 在后台事件循环线程上运行协程，结果交付给 Deferred
- await_deferred(): 在当前事件循环中等待 Deferred 的结果
"""

import asyncio
import threading
from concurrent.futures import Future as ConcurrentFuture
from typing import Any, Awaitable, Callable, Optional

from .deferred import Deferred

CoroutineFactory = Callable[[], Awaitable[Any]]


class AsyncLoopAdapter:
    """后台事件循环 - 首次使用时在守护线程中启动"""

    def __init__(self, name: str = "asyncio-loop"):
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def run_coroutine(self, coro: Awaitable[Any]) -> ConcurrentFuture:
        """把协程投递到后台事件循环"""
        with self._lock:
            if self._loop is None or self._loop.is_closed():
                self._start_event_loop_thread()
            loop = self._loop
        return asyncio.run_coroutine_threadsafe(coro, loop)

    def _start_event_loop_thread(self):
        """启动事件循环线程"""
        ready = threading.Event()
        loop = asyncio.new_event_loop()

        def run_loop():
            asyncio.set_event_loop(loop)
            loop.call_soon(ready.set)
            loop.run_forever()

        self._loop = loop
        self._thread = threading.Thread(target=run_loop, name=self.name, daemon=True)
        self._thread.start()

        # 等待循环启动
        ready.wait()

    def stop(self):
        """停止后台事件循环"""
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop, self._thread = None, None
        if loop is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join()
        loop.close()


# 全局适配器实例
_loop_adapter = AsyncLoopAdapter()


def from_coroutine(
    factory: CoroutineFactory,
    *,
    adapter: Optional[AsyncLoopAdapter] = None,
    name: Optional[str] = None,
) -> Deferred:
    """订阅时在后台事件循环上运行 factory() 返回的协程"""
    loop_adapter = adapter or _loop_adapter

    def source(target: Deferred) -> None:
        def on_done(future: ConcurrentFuture) -> None:
            if future.cancelled():
                target._fail(asyncio.CancelledError(f"{target.name} 的协程被取消"))
                return
            error = future.exception()
            if error is not None:
                target._fail(error)
            else:
                target._complete(future.result())

        loop_adapter.run_coroutine(factory()).add_done_callback(on_done)

    return Deferred(source, name=name or getattr(factory, "__name__", "coroutine"))


async def await_deferred(deferred: Deferred) -> Any:
    """订阅 deferred 并在当前事件循环中等待，失败时抛出原始异常"""
    loop = asyncio.get_running_loop()
    waiter = loop.create_future()

    def resolve(value: Any) -> None:
        if not waiter.done():
            waiter.set_result(value)

    def reject(error: BaseException) -> None:
        if not waiter.done():
            waiter.set_exception(error)

    deferred.subscribe(
        on_success=lambda value: loop.call_soon_threadsafe(resolve, value),
        on_error=lambda error: loop.call_soon_threadsafe(reject, error),
    )
    return await waiter
