"""Price bins holding pair liquidity, and arrays of consecutive bins."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from lbclmm.fixed_point import (
    BASIS_POINT_MAX,
    I32_MAX,
    I32_MIN,
    SCALE_OFFSET,
    U64_MAX,
    U128_MAX,
    LBError,
    Rounding,
    get_price_from_id,
    mul_div,
    mul_shr,
    shl_div,
)
from lbclmm.pubkey import Pubkey

MAX_BIN_PER_ARRAY = 70
NUM_REWARDS = 2
MAX_BIN_ID = 443636
MIN_BIN_ID = -443636


def _checked(value: int, upper: int, lower: int = 0) -> int:
    if not lower <= value <= upper:
        raise LBError("MathOverflow")
    return value


def _cast(value: int, upper: int) -> int:
    if not 0 <= value <= upper:
        raise LBError("TypeCastFailed")
    return value


def _i32(value: int) -> int:
    return _checked(value, I32_MAX, I32_MIN)


def _liquidity_units(liquidity_supply: int) -> int:
    """Integer part of a Q64.64 liquidity amount, as a 64-bit value."""
    return _cast(liquidity_supply >> SCALE_OFFSET, U64_MAX)


def get_out_amount(liquidity_share: int, bin_token_amount: int, liquidity_supply: int) -> int:
    """Token amount owed to a liquidity share; zero when the bin has no supply."""
    if liquidity_supply == 0:
        return 0
    out = mul_div(liquidity_share, bin_token_amount, liquidity_supply, Rounding.DOWN)
    return _cast(out, U64_MAX)


def get_liquidity_share(in_liquidity: int, bin_liquidity: int, liquidity_supply: int) -> int:
    """Liquidity share minted for a deposit of ``in_liquidity``."""
    return mul_div(in_liquidity, liquidity_supply, bin_liquidity, Rounding.DOWN)


@dataclass(frozen=True)
class SwapResult:
    """Outcome of swapping through one bin."""

    amount_in_with_fees: int
    amount_out: int
    fee: int
    protocol_fee_after_host_fee: int
    host_fee: int


@dataclass
class Bin:
    """Liquidity and fee bookkeeping for one price bin."""

    amount_x: int = 0
    amount_y: int = 0
    price: int = 0
    liquidity_supply: int = 0
    reward_per_token_stored: list[int] = field(default_factory=lambda: [0] * NUM_REWARDS)
    fee_amount_x_per_token_stored: int = 0
    fee_amount_y_per_token_stored: int = 0
    amount_x_in: int = 0
    amount_y_in: int = 0

    def is_zero_liquidity(self) -> bool:
        return self.liquidity_supply == 0

    def deposit(self, amount_x: int, amount_y: int, liquidity_share: int) -> None:
        """Add tokens and the liquidity minted for them."""
        new_x = _checked(self.amount_x + amount_x, U64_MAX)
        new_y = _checked(self.amount_y + amount_y, U64_MAX)
        new_supply = _checked(self.liquidity_supply + liquidity_share, U128_MAX)
        self.amount_x, self.amount_y, self.liquidity_supply = new_x, new_y, new_supply

    def deposit_composition_fee(self, fee_x: int, fee_y: int) -> None:
        """Add a composition fee to the bin's reserves."""
        new_x = _checked(self.amount_x + fee_x, U64_MAX)
        new_y = _checked(self.amount_y + fee_y, U64_MAX)
        self.amount_x, self.amount_y = new_x, new_y

    def get_or_store_bin_price(self, bin_id: int, bin_step: int) -> int:
        """Return the bin price, computing and caching it when unset."""
        if self.price == 0:
            self.price = get_price_from_id(bin_id, bin_step)
        return self.price

    def update_fee_per_token_stored(self, fee: int, swap_for_y: bool) -> None:
        """Spread a swap fee over the bin's liquidity, on the swap-in side."""
        per_token = _cast(
            shl_div(fee, _liquidity_units(self.liquidity_supply), SCALE_OFFSET, Rounding.DOWN),
            U128_MAX,
        )
        if swap_for_y:
            self.fee_amount_x_per_token_stored = _checked(
                self.fee_amount_x_per_token_stored + per_token, U128_MAX
            )
        else:
            self.fee_amount_y_per_token_stored = _checked(
                self.fee_amount_y_per_token_stored + per_token, U128_MAX
            )

    def swap(
        self,
        amount_in: int,
        price: int,
        swap_for_y: bool,
        lb_pair: Any,
        host_fee_bps: int | None = None,
    ) -> SwapResult:
        """Swap as much of ``amount_in`` as this bin can take, fees included."""
        max_amount_out = self.get_max_amount_out(swap_for_y)
        max_amount_in = self.get_max_amount_in(price, swap_for_y)
        max_fee = lb_pair.compute_fee(max_amount_in)
        max_amount_in = _checked(max_amount_in + max_fee, U64_MAX)

        if amount_in > max_amount_in:
            amount_in_with_fees = max_amount_in
            amount_out = max_amount_out
            fee = max_fee
        else:
            fee = lb_pair.compute_fee_from_amount(amount_in)
            amount_in_after_fee = _checked(amount_in - fee, U64_MAX)
            amount_in_with_fees = amount_in
            amount_out = min(
                Bin.get_amount_out(amount_in_after_fee, price, swap_for_y), max_amount_out
            )
        protocol_fee = lb_pair.compute_protocol_fee(fee)

        if host_fee_bps is None:
            host_fee = 0
        else:
            host_fee = _checked(protocol_fee * host_fee_bps, U64_MAX) // BASIS_POINT_MAX
        protocol_fee_after_host_fee = _checked(protocol_fee - host_fee, U64_MAX)

        amount_into_bin = _checked(amount_in_with_fees - fee, U64_MAX)
        if swap_for_y:
            new_x = _checked(self.amount_x + amount_into_bin, U64_MAX)
            new_y = _checked(self.amount_y - amount_out, U64_MAX)
        else:
            new_y = _checked(self.amount_y + amount_into_bin, U64_MAX)
            new_x = _checked(self.amount_x - amount_out, U64_MAX)
        self.amount_x, self.amount_y = new_x, new_y

        return SwapResult(
            amount_in_with_fees=amount_in_with_fees,
            amount_out=amount_out,
            fee=fee,
            protocol_fee_after_host_fee=protocol_fee_after_host_fee,
            host_fee=host_fee,
        )

    def withdraw(self, liquidity_share: int) -> tuple[int, int]:
        """Remove a liquidity share, returning the token X and Y paid out."""
        out_x, out_y = self.calculate_out_amount(liquidity_share)
        new_x = _checked(self.amount_x - out_x, U64_MAX)
        new_y = _checked(self.amount_y - out_y, U64_MAX)
        new_supply = _checked(self.liquidity_supply - liquidity_share, U128_MAX)
        self.amount_x, self.amount_y, self.liquidity_supply = new_x, new_y, new_supply
        return out_x, out_y

    def calculate_out_amount(self, liquidity_share: int) -> tuple[int, int]:
        """Token X and Y owed to a liquidity share, rounded down."""
        out_x = mul_div(liquidity_share, self.amount_x, self.liquidity_supply, Rounding.DOWN)
        out_y = mul_div(liquidity_share, self.amount_y, self.liquidity_supply, Rounding.DOWN)
        return _cast(out_x, U64_MAX), _cast(out_y, U64_MAX)

    def is_empty(self, is_x: bool) -> bool:
        return (self.amount_x if is_x else self.amount_y) == 0

    def get_max_amount_out(self, swap_for_y: bool) -> int:
        """Most of the output token the bin can pay out."""
        return self.amount_y if swap_for_y else self.amount_x

    @staticmethod
    def get_amount_out(amount_in: int, price: int, swap_for_y: bool) -> int:
        """Output for ``amount_in`` at ``price``, rounded down."""
        if swap_for_y:
            out = mul_shr(price, amount_in, SCALE_OFFSET, Rounding.DOWN)
        else:
            out = shl_div(amount_in, price, SCALE_OFFSET, Rounding.DOWN)
        return _cast(out, U64_MAX)

    def get_max_amount_in(self, price: int, swap_for_y: bool) -> int:
        """Input needed to drain the opposite token, without fees, rounded up."""
        if swap_for_y:
            needed = shl_div(self.amount_y, price, SCALE_OFFSET, Rounding.UP)
        else:
            needed = mul_shr(self.amount_x, price, SCALE_OFFSET, Rounding.UP)
        return _cast(needed, U64_MAX)

    def get_max_amounts_in(self, price: int) -> tuple[int, int]:
        return self.get_max_amount_in(price, True), self.get_max_amount_in(price, False)

    def accumulate_amounts_in(self, amount_x_in: int, amount_y_in: int) -> None:
        """Track swapped-in volume; the totals wrap at 128 bits."""
        self.amount_x_in = (self.amount_x_in + amount_x_in) & U128_MAX
        self.amount_y_in = (self.amount_y_in + amount_y_in) & U128_MAX


class LayoutVersion(enum.IntEnum):
    """Layout version of a bin array."""

    V0 = 0
    V1 = 1


def _new_bins() -> list[Bin]:
    return [Bin() for _ in range(MAX_BIN_PER_ARRAY)]


@dataclass
class BinArray:
    """A run of ``MAX_BIN_PER_ARRAY`` consecutive bins starting at ``index * MAX_BIN_PER_ARRAY``."""

    index: int = 0
    version: int = LayoutVersion.V0
    lb_pair: Pubkey = field(default_factory=Pubkey)
    bins: list[Bin] = field(default_factory=_new_bins)

    def is_zero_liquidity(self) -> bool:
        return all(b.is_zero_liquidity() for b in self.bins)

    def initialize(self, index: int, lb_pair: Pubkey) -> None:
        """Reset the array to empty bins at ``index`` for ``lb_pair``."""
        if not I32_MIN <= index <= I32_MAX:
            raise LBError("InvalidStartBinIndex", "index does not fit 32 bits")
        BinArray.check_valid_index(index)
        self.index = index
        self.lb_pair = lb_pair
        self.version = LayoutVersion.V1
        self.bins = _new_bins()

    def migrate_to_v2(self) -> None:
        """Rescale liquidity of an old-layout array to Q64.64."""
        try:
            version = LayoutVersion(self.version)
        except ValueError:
            raise LBError("TypeCastFailed", f"unknown layout version {self.version}") from None
        if version is LayoutVersion.V0:
            self.version = LayoutVersion.V1
            for b in self.bins:
                b.liquidity_supply = (b.liquidity_supply << SCALE_OFFSET) & U128_MAX

    def _bin_index_in_array(self, bin_id: int) -> int:
        self.is_bin_id_within_range(bin_id)
        lower_bin_id, _ = BinArray.get_bin_array_lower_upper_bin_id(_i32(self.index))
        position = bin_id - lower_bin_id
        if not 0 <= position < MAX_BIN_PER_ARRAY:
            raise LBError("InvalidBinId")
        return position

    def get_bin(self, bin_id: int) -> Bin:
        """The bin with ``bin_id``; it may be modified in place."""
        return self.bins[self._bin_index_in_array(bin_id)]

    def is_bin_id_within_range(self, bin_id: int) -> None:
        """Raise ``LBError('InvalidBinId')`` unless the array holds ``bin_id``."""
        lower_bin_id, upper_bin_id = BinArray.get_bin_array_lower_upper_bin_id(_i32(self.index))
        if not lower_bin_id <= bin_id <= upper_bin_id:
            raise LBError("InvalidBinId", f"bin {bin_id} is outside array {self.index}")

    @staticmethod
    def bin_id_to_bin_array_index(bin_id: int) -> int:
        """Index of the array holding ``bin_id``."""
        return bin_id // MAX_BIN_PER_ARRAY

    @staticmethod
    def get_bin_array_lower_upper_bin_id(index: int) -> tuple[int, int]:
        """First and last bin id of the array at ``index``."""
        lower_bin_id = _i32(index * MAX_BIN_PER_ARRAY)
        upper_bin_id = _i32(_i32(lower_bin_id + MAX_BIN_PER_ARRAY) - 1)
        return lower_bin_id, upper_bin_id

    @staticmethod
    def check_valid_index(index: int) -> None:
        """Raise ``LBError('InvalidStartBinIndex')`` if the array leaves the bin id range."""
        lower_bin_id, upper_bin_id = BinArray.get_bin_array_lower_upper_bin_id(index)
        if lower_bin_id < MIN_BIN_ID or upper_bin_id > MAX_BIN_ID:
            raise LBError("InvalidStartBinIndex", f"array {index} is out of range")

    def update_all_rewards(self, lb_pair: Any, current_time: int) -> None:
        """Accrue each initialized reward into the pair's active bin."""
        for reward_idx in range(NUM_REWARDS):
            active_bin = self.get_bin(lb_pair.active_id)
            reward_info = lb_pair.reward_infos[reward_idx]
            if not reward_info.initialized():
                continue
            if active_bin.liquidity_supply > 0:
                delta = reward_info.calculate_reward_per_token_stored_since_last_update(
                    current_time, _liquidity_units(active_bin.liquidity_supply)
                )
                active_bin.reward_per_token_stored[reward_idx] = _checked(
                    active_bin.reward_per_token_stored[reward_idx] + delta, U128_MAX
                )
            else:
                # Rewards for time the bin stood empty carry over to the next window.
                time_period = reward_info.get_seconds_elapsed_since_last_update(current_time)
                reward_info.cumulative_seconds_with_empty_liquidity_reward = _checked(
                    reward_info.cumulative_seconds_with_empty_liquidity_reward + time_period,
                    U64_MAX,
                )
            reward_info.update_last_update_time(current_time)