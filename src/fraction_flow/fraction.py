"""Arbitrary-precision fraction value type."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Union

from .types import FractionFormatError, ZeroDenominatorError

IntLike = Union[int, str]

_INTEGER_TOKEN = re.compile(r"[+-]?[0-9]+")


def _to_int(value: IntLike, field_name: str) -> int:
    if isinstance(value, bool):
        raise TypeError(f"{field_name} must be an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if not _INTEGER_TOKEN.fullmatch(value):
            raise FractionFormatError(f"{field_name} {value!r} is not an integer", text=value)
        return int(value)
    raise TypeError(f"{field_name} must be int or str, got {type(value).__name__}")


@dataclass(frozen=True)
class BigFraction:
    """Immutable rational number with arbitrary-precision parts.

    Arithmetic does not reduce its results; call :meth:`reduce` explicitly
    when the lowest-terms form is needed.
    """

    numerator: int
    denominator: int = 1

    def __post_init__(self) -> None:
        for name in ("numerator", "denominator"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
        if self.denominator == 0:
            raise ZeroDenominatorError(f"zero denominator in {self.numerator}/0")

    # ------------------------------------------------------------------
    # construction
    # ------------------------------------------------------------------
    @classmethod
    def parse(cls, text: str) -> "BigFraction":
        """Parse ``"n/d"``, each token an optionally signed run of ASCII digits.

        Whitespace, underscores and anything else raise FractionFormatError.
        """

        if not isinstance(text, str):
            raise FractionFormatError(f"expected a string, got {type(text).__name__}")

        tokens = text.split("/")
        if len(tokens) != 2:
            raise FractionFormatError(f"{text!r} is not of the form 'n/d'", text=text)

        numerator, denominator = (_to_int(token, "fraction token") for token in tokens)
        if denominator == 0:
            raise FractionFormatError(f"{text!r} has a zero denominator", text=text)
        return cls(numerator, denominator)

    @classmethod
    def value_of(
        cls,
        numerator: IntLike,
        denominator: IntLike = 1,
        reduced: bool = False,
    ) -> "BigFraction":
        """Build a fraction from ints or digit strings, optionally reduced."""

        n = _to_int(numerator, "numerator")
        d = _to_int(denominator, "denominator")
        fraction = cls(n, d)
        return fraction.reduce() if reduced else fraction

    # ------------------------------------------------------------------
    # arithmetic
    # ------------------------------------------------------------------
    def reduce(self) -> "BigFraction":
        """Lowest terms with a positive denominator; ``0/d`` becomes ``0/1``."""

        if self.numerator == 0:
            return BigFraction(0, 1)

        g = math.gcd(self.numerator, self.denominator)
        numerator, denominator = self.numerator // g, self.denominator // g
        if denominator < 0:
            numerator, denominator = -numerator, -denominator
        return BigFraction(numerator, denominator)

    def multiply(self, other: "BigFraction") -> "BigFraction":
        return BigFraction(
            self.numerator * other.numerator,
            self.denominator * other.denominator,
        )

    def add(self, other: "BigFraction") -> "BigFraction":
        return BigFraction(
            self.numerator * other.denominator + other.numerator * self.denominator,
            self.denominator * other.denominator,
        )

    def subtract(self, other: "BigFraction") -> "BigFraction":
        return self.add(other.negate())

    def divide(self, other: "BigFraction") -> "BigFraction":
        if other.numerator == 0:
            raise ZeroDenominatorError(f"division of {self} by zero fraction {other}")
        return BigFraction(
            self.numerator * other.denominator,
            self.denominator * other.numerator,
        )

    def negate(self) -> "BigFraction":
        return BigFraction(-self.numerator, self.denominator)

    @property
    def is_reduced(self) -> bool:
        return self.denominator > 0 and math.gcd(self.numerator, self.denominator) == 1

    def equivalent(self, other: "BigFraction") -> bool:
        """Value equality, independent of reduction."""

        return self.numerator * other.denominator == other.numerator * self.denominator

    # ------------------------------------------------------------------
    # rendering
    # ------------------------------------------------------------------
    def _normalized_sign(self) -> "tuple[int, int]":
        if self.denominator < 0:
            return -self.numerator, -self.denominator
        return self.numerator, self.denominator

    def to_mixed_string(self) -> str:
        """Render as ``"whole n/d"`` when ``|n| >= d``, else ``"n/d"``.

        The sign goes on the whole part. A zero remainder renders the whole
        part alone.
        """

        numerator, denominator = self._normalized_sign()
        whole, remainder = divmod(abs(numerator), denominator)
        sign = "-" if numerator < 0 else ""

        if whole == 0:
            return f"{numerator}/{denominator}"
        if remainder == 0:
            return f"{sign}{whole}"
        return f"{sign}{whole} {remainder}/{denominator}"

    def __str__(self) -> str:
        numerator, denominator = self._normalized_sign()
        return f"{numerator}/{denominator}"
