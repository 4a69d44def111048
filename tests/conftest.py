"""测试夹具 - 独立执行上下文与诊断日志器"""

import pytest

from fraction_flow import DiagnosticLogger, Options, new_parallel, new_single


@pytest.fixture
def single_context():
    context = new_single("test-single")
    yield context
    context.close()


@pytest.fixture
def parallel_context():
    context = new_parallel("test-parallel", workers=4)
    yield context
    context.close()


@pytest.fixture
def make_diagnostics():
    def factory(diagnostics_enabled: bool = False, tags=()):
        return DiagnosticLogger(Options(diagnostics_enabled=diagnostics_enabled, tags=frozenset(tags)))

    return factory


@pytest.fixture
def make_contexts():
    created = []

    def factory(count: int):
        contexts = [new_single(f"test-ctx-{len(created) + index}") for index in range(count)]
        created.extend(contexts)
        return contexts

    yield factory
    for context in created:
        context.close()
