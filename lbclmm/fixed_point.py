"""Unsigned fixed-point arithmetic on Q64.64 numbers and the errors it raises."""

from __future__ import annotations

import enum

SCALE_OFFSET = 64
ONE = 1 << SCALE_OFFSET
BASIS_POINT_MAX = 10_000

U16_MAX = (1 << 16) - 1
U32_MAX = (1 << 32) - 1
U64_MAX = (1 << 64) - 1
U128_MAX = (1 << 128) - 1
I32_MIN = -(1 << 31)
I32_MAX = (1 << 31) - 1

# Exponents at or above this bound are rejected by the power routine.
MAX_EXPONENTIAL = 0x80000


class Rounding(enum.Enum):
    """Direction in which an inexact quotient is rounded."""

    UP = "up"
    DOWN = "down"


class LBError(Exception):
    """Error raised by pair, bin and position arithmetic; ``kind`` names the failure."""

    KINDS = frozenset(
        {
            "MathOverflow",
            "TypeCastFailed",
            "InvalidBinId",
            "InvalidStartBinIndex",
            "ExcessiveFeeUpdate",
            "PairInsufficientLiquidity",
            "CannotFindNonZeroLiquidityBinArrayId",
            "BitmapExtensionAccountIsNotProvided",
            "InvalidPosition",
            "InvalidBinArray",
            "InvalidInput",
            "InsufficientSample",
        }
    )

    def __init__(self, kind: str, detail: str = "") -> None:
        if kind not in self.KINDS:
            raise ValueError(f"unknown error kind: {kind!r}")
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind}: {detail}" if detail else kind)


def mul_div(x: int, y: int, denominator: int, rounding: Rounding) -> int:
    """Return ``x * y / denominator`` rounded as asked; the result must fit in 128 bits."""
    if x < 0 or y < 0 or denominator < 0:
        raise ValueError("operands must be unsigned")
    if denominator == 0:
        raise LBError("MathOverflow", "division by zero")
    quotient, remainder = divmod(x * y, denominator)
    if rounding is Rounding.UP and remainder:
        quotient += 1
    if quotient > U128_MAX:
        raise LBError("MathOverflow", "result exceeds 128 bits")
    return quotient


def mul_shr(x: int, y: int, offset: int, rounding: Rounding) -> int:
    """Return ``(x * y) >> offset`` rounded as asked."""
    return mul_div(x, y, 1 << offset, rounding)


def shl_div(x: int, y: int, offset: int, rounding: Rounding) -> int:
    """Return ``(x << offset) / y`` rounded as asked."""
    return mul_div(x, 1 << offset, y, rounding)


def _pow(base: int, exp: int) -> int | None:
    """Raise a Q64.64 ``base`` to an integer power, or None when out of range."""
    if exp == 0:
        return ONE
    invert = exp < 0
    magnitude = abs(exp)
    if magnitude >= MAX_EXPONENTIAL:
        return None

    squared_base = base
    if squared_base >= ONE:
        if squared_base == 0:
            return None
        squared_base = U128_MAX // squared_base
        invert = not invert

    result = ONE
    for bit in range(MAX_EXPONENTIAL.bit_length() - 1):
        if magnitude & (1 << bit):
            result = (result * squared_base) >> SCALE_OFFSET
        squared_base = (squared_base * squared_base) >> SCALE_OFFSET

    if result == 0:
        return None
    if invert:
        result = U128_MAX // result
    return result


def get_price_from_id(active_id: int, bin_step: int) -> int:
    """Return the Q64.64 price ``(1 + bin_step / 10000) ** active_id``."""
    bps = (bin_step << SCALE_OFFSET) // BASIS_POINT_MAX
    price = _pow(ONE + bps, active_id)
    if price is None:
        raise LBError("MathOverflow", f"price for bin {active_id} is out of range")
    return price