"""
分数工具 - 演示流水线共用的常量与随机分数工厂
"""

import random as _random
from typing import Optional

from .fraction import BigFraction

# 演示用的大整数字面量
BI1 = "846122553600669882"
BI2 = "188027234133482196"

# 演示用的可约分分数字面量
F1 = "62675744/15668936"
F2 = "609136/913704"

# 各流水线共享的已约分大分数
BIG_REDUCED_FRACTION = BigFraction.value_of(BI1, BI2, reduced=True)

# 随机分子的默认位数，保持在 int -> str 的默认位数上限之内
DEFAULT_RANDOM_BITS = 4096


def make_big_fraction(
    rng: Optional[_random.Random] = None,
    reduced: bool = True,
    bits: int = DEFAULT_RANDOM_BITS,
) -> BigFraction:
    """
    生成随机大分数

    分子为 bits 位随机整数（最高位置 1，保证非零），
    分母为分子除以 1..10 之间的随机整数。
    """
    if bits < 8:
        raise ValueError("bits 必须不小于 8")

    rng = rng or _random.Random()
    numerator = rng.getrandbits(bits) | (1 << (bits - 1))
    denominator = numerator // rng.randint(1, 10)
    return BigFraction.value_of(numerator, denominator, reduced)
