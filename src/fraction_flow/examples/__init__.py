"""
示例流水线 - 演示 Deferred 与调度器的典型组合方式
"""

from .pipelines import (
    reduce_fraction_async,
    multiply_fractions_blocking,
    multiply_fractions_async,
    combine_fractions,
    build_runner,
    main,
)
from .runner import PipelineRunner, PipelineOutcome

__all__ = [
    "reduce_fraction_async",
    "multiply_fractions_blocking",
    "multiply_fractions_async",
    "combine_fractions",
    "build_runner",
    "main",
    "PipelineRunner",
    "PipelineOutcome",
]
