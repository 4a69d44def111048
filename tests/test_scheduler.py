"""调度器测试"""

import logging
import os
import threading

import pytest

from fraction_flow import (
    Deferred,
    DeferredState,
    ExecutionContext,
    WorkerContext,
    immediate,
    new_parallel,
    new_single,
    parallel,
    shutdown_all,
    single,
    submit,
)


def test_single_runs_in_submission_order(single_context):
    """单线程上下文按提交顺序执行"""
    order = []
    threads = set()

    def task(index):
        def work():
            order.append(index)
            threads.add(threading.current_thread().name)
            return index

        return work

    deferreds = [submit(single_context, task(index)) for index in range(50)]
    assert [deferred.block() for deferred in deferreds] == list(range(50))
    assert order == list(range(50))
    assert len(threads) == 1


def test_submit_returns_without_waiting(single_context):
    """submit 立即返回，工作异步进行"""
    release = threading.Event()
    deferred = submit(single_context, lambda: release.wait() and "finished")

    assert deferred.state == DeferredState.SCHEDULED
    release.set()
    assert deferred.block() == "finished"


def test_parallel_runs_concurrently(parallel_context):
    """并行上下文允许任务同时运行"""
    barrier = threading.Barrier(3, timeout=5)

    deferreds = [submit(parallel_context, barrier.wait) for _ in range(3)]
    results = [deferred.block() for deferred in deferreds]
    assert sorted(results) == [0, 1, 2]


def test_process_wide_contexts_are_reused():
    """进程级上下文懒初始化并复用"""
    assert single() is single()
    assert parallel() is parallel()
    assert single().max_workers == 1
    assert parallel().max_workers == (os.cpu_count() or 1)


def test_process_wide_contexts_survive_shutdown():
    """shutdown_all 释放线程池，下次提交时重建"""
    assert submit(single(), lambda: 1).block() == 1
    assert single().started

    shutdown_all()
    assert not single().started

    assert submit(single(), lambda: 2).block() == 2
    assert single().started
    shutdown_all()


def test_contexts_satisfy_protocol():
    assert isinstance(new_single("protocol-check"), ExecutionContext)
    assert isinstance(immediate(), ExecutionContext)


def test_worker_context_validation():
    with pytest.raises(ValueError):
        WorkerContext("broken", 0)


def test_new_parallel_uses_requested_size():
    context = new_parallel("sized", workers=3)
    assert context.max_workers == 3
    context.close()


def test_closed_context_rejects_submission():
    context = new_single("closing")
    assert submit(context, lambda: "ok").block() == "ok"
    context.close()

    with pytest.raises(RuntimeError):
        context.submit(lambda: None)

    deferred = submit(context, lambda: "never")
    assert deferred.block_and_get() is None


def test_task_exception_is_logged(single_context, caplog):
    """逃逸到工作线程的异常会被记录"""
    finished = threading.Event()

    def broken():
        try:
            raise RuntimeError("escaped")
        finally:
            finished.set()

    with caplog.at_level(logging.ERROR, logger="fraction_flow"):
        single_context.submit(broken)
        assert finished.wait(5)
        # 等待同一线程上的后续任务，确保日志已写出
        assert submit(single_context, lambda: True).block()

    assert any("escaped" in record.getMessage() for record in caplog.records)


def test_deferred_chain_across_contexts(single_context, parallel_context):
    """上游在并行池计算，下游在单线程上下文合并"""
    values = [
        Deferred.from_work(lambda index=index: index).schedule_on(parallel_context)
        for index in range(4)
    ]
    total = Deferred.when_all(*values).map(sum).schedule_on(single_context)
    assert total.block() == 6
