"""Compute resource units, Kubernetes-style quantities and the Fargate task size table."""

from __future__ import annotations

import math
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from fractions import Fraction

# One virtual CPU core in EC2, in CPU units.
VCPU = 1024
# 2^20 bytes.
MiB = 1024 * 1024
# 2^30 bytes.
GiB = 1024 * MiB

_BINARY_SUFFIXES = {
    "Ki": 2**10,
    "Mi": 2**20,
    "Gi": 2**30,
    "Ti": 2**40,
    "Pi": 2**50,
    "Ei": 2**60,
}

_DECIMAL_SUFFIXES = {
    "n": Fraction(1, 10**9),
    "u": Fraction(1, 10**6),
    "m": Fraction(1, 10**3),
    "": Fraction(1),
    "k": Fraction(10**3),
    "M": Fraction(10**6),
    "G": Fraction(10**9),
    "T": Fraction(10**12),
    "P": Fraction(10**15),
    "E": Fraction(10**18),
}

_NUMBER = re.compile(r"([+-]?(?:\d+(?:\.\d*)?|\.\d+))(.*)", re.DOTALL)
_EXPONENT = re.compile(r"[eE]([+-]?\d+)")


@dataclass(frozen=True, order=True)
class Quantity:
    """An exact resource amount, compared by value regardless of how it was written."""

    amount: Fraction
    text: str = field(default="", compare=False)

    def value(self) -> int:
        """The amount in base units, rounded up to the next integer."""
        return math.ceil(self.amount)

    def milli_value(self) -> int:
        """The amount in thousandths of base units, rounded up."""
        return math.ceil(self.amount * 1000)

    def __str__(self) -> str:
        return self.text or str(self.amount)


def parse_quantity(text: str) -> Quantity:
    """Parse a quantity such as ``"250m"``, ``"512Mi"`` or ``"1e3"``.

    Raises ValueError when the text is not a valid quantity.
    """
    match = _NUMBER.fullmatch(text)
    if match is None:
        raise ValueError(f"quantities must match the regular expression: {text!r}")
    number, suffix = match.groups()
    base = Fraction(number)

    if suffix in _BINARY_SUFFIXES:
        multiplier = Fraction(_BINARY_SUFFIXES[suffix])
    elif suffix in _DECIMAL_SUFFIXES:
        multiplier = _DECIMAL_SUFFIXES[suffix]
    elif (exponent := _EXPONENT.fullmatch(suffix)) is not None:
        multiplier = Fraction(10) ** int(exponent.group(1))
    else:
        raise ValueError(f"unable to parse quantity's suffix: {text!r}")

    return Quantity(base * multiplier, text)


@dataclass(frozen=True)
class MemorySizeRange:
    """A range of Fargate task memory sizes, in bytes."""

    minimum: int
    maximum: int
    increment: int

    def sizes(self) -> Iterator[int]:
        """Yield every memory size in the range, smallest first."""
        size = self.minimum
        while size <= self.maximum:
            yield size
            size += self.increment


@dataclass(frozen=True)
class TaskSize:
    """A Fargate task size: CPU units and the memory sizes allowed with them."""

    cpu: int
    memory: MemorySizeRange


# Fargate task size table, in ascending order by CPU.
#
# VCPU     Memory (in MiBs, available in 1GiB increments)
#  256     512, 1024 ...  2048
#  512          1024 ...  4096
# 1024          2048 ...  8192
# 2048          4096 ... 16384
# 4096          8192 ... 30720
TASK_SIZE_TABLE: tuple[TaskSize, ...] = (
    TaskSize(VCPU // 4, MemorySizeRange(512 * MiB, 512 * MiB, 1)),
    TaskSize(VCPU // 4, MemorySizeRange(1 * GiB, 2 * GiB, 1 * GiB)),
    TaskSize(VCPU // 2, MemorySizeRange(1 * GiB, 4 * GiB, 1 * GiB)),
    TaskSize(1 * VCPU, MemorySizeRange(2 * GiB, 8 * GiB, 1 * GiB)),
    TaskSize(2 * VCPU, MemorySizeRange(4 * GiB, 16 * GiB, 1 * GiB)),
    TaskSize(4 * VCPU, MemorySizeRange(8 * GiB, 30 * GiB, 1 * GiB)),
)