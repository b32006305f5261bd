"""Bitmap of initialized bin arrays lying beyond the pair's built-in bitmap."""

from __future__ import annotations

from dataclasses import dataclass, field

from lbclmm.fixed_point import LBError
from lbclmm.pubkey import Pubkey

# Bin arrays per bitmap word; the pair's own bitmap covers indices -512..511.
BIN_ARRAY_BITMAP_SIZE = 512
# Number of 512-bit words on each side of the extension.
EXTENSION_BINARRAY_BITMAP_SIZE = 12

_WORD_MASK = (1 << BIN_ARRAY_BITMAP_SIZE) - 1


def _empty_words() -> list[int]:
    return [0] * EXTENSION_BINARRAY_BITMAP_SIZE


def _bitmap_offset(bin_array_index: int) -> int:
    """Word holding ``bin_array_index``; positive indices start at 512, negative at -513."""
    if bin_array_index > 0:
        offset = bin_array_index // BIN_ARRAY_BITMAP_SIZE - 1
    else:
        distance = -(bin_array_index + 1)
        offset = distance // BIN_ARRAY_BITMAP_SIZE - 1 if distance >= 0 else -1
    if not 0 <= offset < EXTENSION_BINARRAY_BITMAP_SIZE:
        raise ValueError(f"bin array index {bin_array_index} is outside the extension bitmap")
    return offset


def _offset_in_bitmap(bin_array_index: int) -> int:
    if bin_array_index > 0:
        return bin_array_index % BIN_ARRAY_BITMAP_SIZE
    return (-(bin_array_index + 1)) % BIN_ARRAY_BITMAP_SIZE


def _to_bin_array_index(offset: int, bin_array_offset: int, is_positive: bool) -> int:
    value = (offset + 1) * BIN_ARRAY_BITMAP_SIZE + bin_array_offset
    return value if is_positive else -value - 1


@dataclass
class BinArrayBitmapExtension:
    """Which bin arrays outside the default bitmap range hold liquidity."""

    lb_pair: Pubkey = field(default_factory=Pubkey)
    positive_bin_array_bitmap: list[int] = field(default_factory=_empty_words)
    negative_bin_array_bitmap: list[int] = field(default_factory=_empty_words)

    def initialize(self, lb_pair: Pubkey) -> None:
        """Attach to ``lb_pair`` with every bit cleared."""
        self.lb_pair = lb_pair
        self.positive_bin_array_bitmap = _empty_words()
        self.negative_bin_array_bitmap = _empty_words()

    def _words(self, bin_array_index: int) -> list[int]:
        if bin_array_index < 0:
            return self.negative_bin_array_bitmap
        return self.positive_bin_array_bitmap

    def flip_bin_array_bit(self, bin_array_index: int) -> None:
        """Toggle the bit of ``bin_array_index``."""
        offset = _bitmap_offset(bin_array_index)
        words = self._words(bin_array_index)
        words[offset] ^= 1 << _offset_in_bitmap(bin_array_index)

    def bit(self, bin_array_index: int) -> bool:
        """Whether the bit of ``bin_array_index`` is set."""
        offset = _bitmap_offset(bin_array_index)
        word = self._words(bin_array_index)[offset]
        return bool(word >> _offset_in_bitmap(bin_array_index) & 1)

    @staticmethod
    def bitmap_range() -> tuple[int, int]:
        """Lowest and highest bin array index the extension can address."""
        span = BIN_ARRAY_BITMAP_SIZE * (EXTENSION_BINARRAY_BITMAP_SIZE + 1)
        return -span, span - 1

    def iter_bitmap(self, start_index: int, end_index: int) -> int | None:
        """First set bin array index met going from ``start_index`` toward ``end_index``."""
        offset = _bitmap_offset(start_index)
        bin_array_offset = _offset_in_bitmap(start_index)
        is_positive = start_index >= 0
        words = self.positive_bin_array_bitmap if is_positive else self.negative_bin_array_bitmap
        # Bit offsets grow away from zero on both sides.
        ascending = is_positive == (start_index <= end_index)

        if ascending:
            for i in range(offset, EXTENSION_BINARRAY_BITMAP_SIZE):
                word = words[i]
                if i == offset:
                    word = (word >> bin_array_offset) << bin_array_offset
                if word:
                    lowest = (word & -word).bit_length() - 1
                    return _to_bin_array_index(i, lowest, is_positive)
        else:
            for i in range(offset, -1, -1):
                word = words[i]
                if i == offset:
                    word &= (1 << (bin_array_offset + 1)) - 1
                word &= _WORD_MASK
                if word:
                    return _to_bin_array_index(i, word.bit_length() - 1, is_positive)
        return None

    def next_bin_array_index_with_liquidity(
        self, swap_for_y: bool, start_index: int
    ) -> tuple[int, bool]:
        """Next initialized bin array and True, or the edge of the default range and False."""
        min_bitmap_id, max_bitmap_id = BinArrayBitmapExtension.bitmap_range()
        if start_index > 0:
            if swap_for_y:
                found = self.iter_bitmap(start_index, BIN_ARRAY_BITMAP_SIZE)
                if found is None:
                    return BIN_ARRAY_BITMAP_SIZE - 1, False
                return found, True
            found = self.iter_bitmap(start_index, max_bitmap_id)
            if found is None:
                raise LBError("CannotFindNonZeroLiquidityBinArrayId")
            return found, True
        if swap_for_y:
            found = self.iter_bitmap(start_index, min_bitmap_id)
            if found is None:
                raise LBError("CannotFindNonZeroLiquidityBinArrayId")
            return found, True
        found = self.iter_bitmap(start_index, -BIN_ARRAY_BITMAP_SIZE - 1)
        if found is None:
            return -BIN_ARRAY_BITMAP_SIZE, False
        return found, True