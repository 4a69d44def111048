#!/usr/bin/env python3
"""
演示流水线 - 通过 Deferred 与调度器组装 BigFraction 运算

运行方式：
  python -m fraction_flow [-d true] [-T pipeline,runner] [-s false]

包含的流水线：
1. reduce_fraction_async: 单线程上下文中约分，map 为带分数，on_success 打印
2. multiply_fractions_blocking: 后台相乘，调用线程阻塞取结果
3. multiply_fractions_async: 后台相乘，结果由后台线程打印
4. combine_fractions: 两个随机分数在并行池中计算，zip 后相加
"""

import random
import sys
from typing import List, Optional, Sequence, Tuple

from .. import scheduler
from ..common import DiagnosticLogger, Options
from ..deferred import Deferred
from ..fraction import BigFraction
from ..fraction_utils import BI1, BI2, BIG_REDUCED_FRACTION, F1, F2, make_big_fraction
from ..interfaces import ExecutionContext
from .runner import PipelineRunner

PIPELINE_TAG = "pipeline"


def _print_result(diagnostics: DiagnosticLogger, lines: List[str], mixed: str) -> None:
    lines.append(f"     mixed reduced fraction = {mixed}")
    diagnostics.print("\n".join(lines))


def reduce_fraction_async(
    diagnostics: DiagnosticLogger,
    context: Optional[ExecutionContext] = None,
) -> Deferred:
    """后台约分大分数并以带分数形式打印"""
    context = context or scheduler.single()
    lines = [">> Calling reduce_fraction_async()"]

    unreduced = BigFraction.value_of(BI1, BI2, reduced=False)

    def reduce_fraction() -> BigFraction:
        reduced = unreduced.reduce()
        lines.append(f"     unreduced fraction {unreduced}")
        lines.append(f"     reduced improper fraction = {reduced}")
        return reduced

    def convert_to_mixed_string(result: BigFraction) -> str:
        lines.append("     calling BigFraction.to_mixed_string")
        return result.to_mixed_string()

    return (
        Deferred.from_work(reduce_fraction)
        # 全部处理在单个后台线程中运行
        .schedule_on(context)
        .map(convert_to_mixed_string)
        .log(diagnostics, tag=PIPELINE_TAG)
        .on_success(lambda mixed: _print_result(diagnostics, lines, mixed))
        .then()
    )


def _multiply(operands: Tuple[str, str]) -> BigFraction:
    first, second = (BigFraction.parse(text) for text in operands)
    return first.multiply(second)


def multiply_fractions_blocking(
    diagnostics: DiagnosticLogger,
    context: Optional[ExecutionContext] = None,
    operands: Tuple[str, str] = (F1, F2),
) -> Deferred:
    """后台相乘，调用线程阻塞等待；失败时打印 error"""
    context = context or scheduler.single()
    lines = [">> Calling multiply_fractions_blocking()"]

    deferred = Deferred.from_work(lambda: _multiply(operands), name="multiply").schedule_on(context)

    # 阻塞调用线程直到结果可用，错误转为 None
    result = deferred.block_and_get()
    mixed = result.to_mixed_string() if result is not None else "error"
    lines.append(f"     multiply() = {mixed}")
    diagnostics.print("\n".join(lines))

    return Deferred.empty()


def multiply_fractions_async(
    diagnostics: DiagnosticLogger,
    context: Optional[ExecutionContext] = None,
    operands: Tuple[str, str] = (F1, F2),
) -> Deferred:
    """后台相乘，结果由后台线程以非阻塞方式打印"""
    context = context or scheduler.single()
    lines = [">> Calling multiply_fractions_async()"]

    return (
        Deferred.from_work(lambda: _multiply(operands), name="multiply")
        .schedule_on(context)
        .on_success(lambda product: _print_result(diagnostics, lines, product.to_mixed_string()))
        .then()
    )


def _make_big_fraction_async(seed: int, context: ExecutionContext) -> Deferred:
    """随机大分数与共享约分分数相乘，在 context 上计算"""

    def make_and_multiply() -> BigFraction:
        return make_big_fraction(random.Random(seed), True).multiply(BIG_REDUCED_FRACTION)

    return Deferred.from_work(make_and_multiply, name="make_big_fraction").schedule_on(context)


def combine_fractions(
    diagnostics: DiagnosticLogger,
    rng: Optional[random.Random] = None,
    context: Optional[ExecutionContext] = None,
) -> Deferred:
    """两个随机分数并行计算，都完成后相加并打印"""
    rng = rng or random.Random()
    context = context or scheduler.parallel()
    lines = [">> Calling combine_fractions()"]

    # 种子在调用线程上抽取，工作线程间不共享随机数生成器
    first = _make_big_fraction_async(rng.getrandbits(64), context)
    second = _make_big_fraction_async(rng.getrandbits(64), context)

    def print_combined(combined: BigFraction) -> None:
        lines.append(f"     combined result = {combined.to_mixed_string()}")
        diagnostics.print("\n".join(lines))

    return (
        first.zip_with(second, BigFraction.add)
        .log(diagnostics, tag=PIPELINE_TAG)
        .on_success(print_combined)
        .then()
    )


def build_runner(diagnostics: DiagnosticLogger) -> PipelineRunner:
    """注册全部演示流水线"""
    runner = PipelineRunner(diagnostics)
    runner.register(lambda: reduce_fraction_async(diagnostics), "reduce_fraction_async")
    runner.register(lambda: multiply_fractions_blocking(diagnostics), "multiply_fractions_blocking")
    runner.register(lambda: multiply_fractions_async(diagnostics), "multiply_fractions_async")
    runner.register(lambda: combine_fractions(diagnostics), "combine_fractions")
    return runner


def main(argv: Optional[Sequence[str]] = None) -> int:
    """主程序：0 全部成功，1 有流水线失败，2 参数错误"""
    options = Options.parse_args(sys.argv[1:] if argv is None else argv)
    if options is None:
        return 2

    diagnostics = DiagnosticLogger(options)
    diagnostics.debug(f"运行配置: {options}")

    runner = build_runner(diagnostics)
    try:
        outcomes = runner.run(sequential=options.sequential and not options.concurrent)
    finally:
        scheduler.shutdown_all()

    failed = [outcome for outcome in outcomes if not outcome.succeeded]
    diagnostics.print(f"{len(outcomes) - len(failed)}/{len(outcomes)} 条流水线成功")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
