"""
演示流水线测试

验证各流水线的输出与运行器的结果汇总。
"""

import logging
import random

import pytest

from fraction_flow import BigFraction, Deferred, DiagnosticLogger, Options
from fraction_flow.examples import (
    PipelineRunner,
    build_runner,
    combine_fractions,
    main,
    multiply_fractions_async,
    multiply_fractions_blocking,
    reduce_fraction_async,
)
from fraction_flow.fraction_utils import BI1, BI2, BIG_REDUCED_FRACTION, F1, F2, make_big_fraction


@pytest.fixture
def diagnostics(caplog):
    diagnostics = DiagnosticLogger(Options(diagnostics_enabled=True, tags=frozenset({"pipeline"})))
    caplog.set_level(logging.DEBUG, logger="fraction_flow")
    return diagnostics


def _messages(caplog):
    return "\n".join(record.getMessage() for record in caplog.records)


def test_reduce_fraction_async(diagnostics, single_context, caplog):
    """约分后以带分数形式打印"""
    done = reduce_fraction_async(diagnostics, context=single_context)
    assert done.block() is None

    expected = BigFraction.value_of(BI1, BI2, reduced=True).to_mixed_string()
    output = _messages(caplog)
    assert f"mixed reduced fraction = {expected}" in output
    assert f"unreduced fraction {BI1}/{BI2}" in output
    assert "calling BigFraction.to_mixed_string" in output
    assert "| subscribe" in output


def test_multiply_fractions_blocking(diagnostics, single_context, caplog):
    """阻塞取得乘积"""
    done = multiply_fractions_blocking(diagnostics, context=single_context)
    assert done.block() is None

    product = BigFraction.parse(F1).multiply(BigFraction.parse(F2))
    assert f"multiply() = {product.to_mixed_string()}" in _messages(caplog)
    assert product.reduce().to_mixed_string() == "2 2/3"


def test_multiply_fractions_blocking_reports_error(diagnostics, single_context, caplog):
    """工作失败时打印 error 而不抛出"""
    done = multiply_fractions_blocking(diagnostics, context=single_context, operands=("1/2", "bad"))
    assert done.block() is None
    assert "multiply() = error" in _messages(caplog)


def test_multiply_fractions_async(diagnostics, single_context, caplog):
    done = multiply_fractions_async(diagnostics, context=single_context)
    assert done.block() is None

    product = BigFraction.parse(F1).multiply(BigFraction.parse(F2))
    assert f"mixed reduced fraction = {product.to_mixed_string()}" in _messages(caplog)


def test_multiply_fractions_async_failure(diagnostics, single_context, caplog):
    done = multiply_fractions_async(diagnostics, context=single_context, operands=("1/0", "1/2"))
    assert done.block_and_get() is None
    assert done.failure is not None
    assert "mixed reduced fraction" not in _messages(caplog)


def test_combine_fractions(diagnostics, parallel_context, caplog):
    """两个随机分数 zip 后相加"""
    seed_source = random.Random(2024)
    seeds = (seed_source.getrandbits(64), seed_source.getrandbits(64))

    done = combine_fractions(diagnostics, rng=random.Random(2024), context=parallel_context)
    assert done.block() is None

    first, second = (
        make_big_fraction(random.Random(seed), True).multiply(BIG_REDUCED_FRACTION) for seed in seeds
    )
    expected = first.add(second).to_mixed_string()
    assert f"combined result = {expected}" in _messages(caplog)


def test_runner_reports_outcomes(diagnostics):
    runner = PipelineRunner(diagnostics)
    runner.register(lambda: Deferred.just(1).then(), "ok")
    runner.register(lambda: Deferred.failed(ValueError("boom")), "failing")

    def broken_factory():
        raise RuntimeError("factory broke")

    runner.register(broken_factory)

    for sequential in (True, False):
        outcomes = runner.run(sequential=sequential)
        assert [outcome.name for outcome in outcomes] == ["ok", "failing", "broken_factory"]
        assert [outcome.succeeded for outcome in outcomes] == [True, False, False]
        assert isinstance(outcomes[1].error, ValueError)
        assert isinstance(outcomes[2].error, RuntimeError)


def test_build_runner_registers_all_pipelines(diagnostics):
    assert build_runner(diagnostics).names == [
        "reduce_fraction_async",
        "multiply_fractions_blocking",
        "multiply_fractions_async",
        "combine_fractions",
    ]


@pytest.mark.parametrize("argv", [[], ["-s", "false"], ["-d", "true", "-T", "pipeline,runner"]])
def test_main_runs_all_pipelines(argv, caplog):
    caplog.set_level(logging.INFO, logger="fraction_flow")
    assert main(argv) == 0
    assert "4/4" in _messages(caplog)


def test_main_rejects_bad_arguments(capsys):
    assert main(["-q", "true"]) == 2
    assert "Usage:" in capsys.readouterr().out
