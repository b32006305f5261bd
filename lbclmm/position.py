"""Liquidity positions spanning a range of bins, with their fee and reward earnings."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field

from lbclmm.bin import NUM_REWARDS, Bin
from lbclmm.fixed_point import (
    I32_MAX,
    I32_MIN,
    SCALE_OFFSET,
    U64_MAX,
    U128_MAX,
    LBError,
    Rounding,
    mul_shr,
)
from lbclmm.pubkey import Pubkey

MAX_BIN_PER_POSITION = 70


def _checked(value: int, upper: int, lower: int = 0) -> int:
    if not lower <= value <= upper:
        raise LBError("MathOverflow")
    return value


def _cast_u64(value: int) -> int:
    if not 0 <= value <= U64_MAX:
        raise LBError("TypeCastFailed")
    return value


def _i32(value: int) -> int:
    return _checked(value, I32_MAX, I32_MIN)


def _earned(liquidity_share: int, stored: int, completed: int) -> int:
    """Earnings of a Q64.64 share for the per-token growth from ``completed`` to ``stored``."""
    units = _cast_u64(liquidity_share >> SCALE_OFFSET)
    delta = _checked(stored - completed, U128_MAX)
    return _cast_u64(mul_shr(units, delta, SCALE_OFFSET, Rounding.DOWN))


@dataclass
class FeeInfo:
    """Swap fee earned by a position in one bin."""

    fee_x_per_token_complete: int = 0
    fee_y_per_token_complete: int = 0
    fee_x_pending: int = 0
    fee_y_pending: int = 0


def _zero_rewards() -> list[int]:
    return [0] * NUM_REWARDS


@dataclass
class UserRewardInfo:
    """Farming rewards earned by a position in one bin."""

    reward_per_token_completes: list[int] = field(default_factory=_zero_rewards)
    reward_pendings: list[int] = field(default_factory=_zero_rewards)


def _zero_shares() -> list[int]:
    return [0] * MAX_BIN_PER_POSITION


def _new_reward_infos() -> list[UserRewardInfo]:
    return [UserRewardInfo() for _ in range(MAX_BIN_PER_POSITION)]


def _new_fee_infos() -> list[FeeInfo]:
    return [FeeInfo() for _ in range(MAX_BIN_PER_POSITION)]


def _zero_claimed() -> list[int]:
    return [0, 0]


@dataclass
class Position:
    """Old-layout position whose liquidity shares are plain 64-bit integers."""

    lb_pair: Pubkey = field(default_factory=Pubkey)
    owner: Pubkey = field(default_factory=Pubkey)
    liquidity_shares: list[int] = field(default_factory=_zero_shares)
    reward_infos: list[UserRewardInfo] = field(default_factory=_new_reward_infos)
    fee_infos: list[FeeInfo] = field(default_factory=_new_fee_infos)
    lower_bin_id: int = 0
    upper_bin_id: int = 0
    last_updated_at: int = 0
    total_claimed_fee_x_amount: int = 0
    total_claimed_fee_y_amount: int = 0
    total_claimed_rewards: list[int] = field(default_factory=_zero_claimed)


@dataclass
class PositionV2:
    """A position whose liquidity shares are Q64.64 numbers."""

    lb_pair: Pubkey = field(default_factory=Pubkey)
    owner: Pubkey = field(default_factory=Pubkey)
    liquidity_shares: list[int] = field(default_factory=_zero_shares)
    reward_infos: list[UserRewardInfo] = field(default_factory=_new_reward_infos)
    fee_infos: list[FeeInfo] = field(default_factory=_new_fee_infos)
    lower_bin_id: int = 0
    upper_bin_id: int = 0
    last_updated_at: int = 0
    total_claimed_fee_x_amount: int = 0
    total_claimed_fee_y_amount: int = 0
    total_claimed_rewards: list[int] = field(default_factory=_zero_claimed)
    operator: Pubkey = field(default_factory=Pubkey)
    lock_release_slot: int = 0
    subjected_to_bootstrap_liquidity_locking: int = 0
    fee_owner: Pubkey = field(default_factory=Pubkey)

    def init(
        self,
        lb_pair: Pubkey,
        owner: Pubkey,
        operator: Pubkey,
        lower_bin_id: int,
        upper_bin_id: int,
        current_time: int,
        lock_release_slot: int,
        subjected_to_bootstrap_liquidity_locking: bool,
        fee_owner: Pubkey,
    ) -> None:
        """Set up a new position; the fee owner is kept only for locked positions."""
        self.lb_pair = lb_pair
        self.owner = owner
        self.operator = operator
        self.lower_bin_id = lower_bin_id
        self.upper_bin_id = upper_bin_id
        self.liquidity_shares = _zero_shares()
        self.reward_infos = _new_reward_infos()
        self.last_updated_at = current_time
        self.lock_release_slot = lock_release_slot
        self.subjected_to_bootstrap_liquidity_locking = int(
            bool(subjected_to_bootstrap_liquidity_locking)
        )
        if subjected_to_bootstrap_liquidity_locking:
            self.fee_owner = fee_owner

    def migrate_from_v1(self, position: Position) -> None:
        """Copy an old-layout position, scaling its shares to Q64.64."""
        self.lb_pair = position.lb_pair
        self.owner = position.owner
        self.reward_infos = copy.deepcopy(position.reward_infos)
        self.fee_infos = copy.deepcopy(position.fee_infos)
        self.lower_bin_id = position.lower_bin_id
        self.upper_bin_id = position.upper_bin_id
        self.total_claimed_fee_x_amount = position.total_claimed_fee_x_amount
        self.total_claimed_fee_y_amount = position.total_claimed_fee_y_amount
        self.total_claimed_rewards = list(position.total_claimed_rewards)
        self.last_updated_at = position.last_updated_at
        for i, share in enumerate(position.liquidity_shares):
            self.liquidity_shares[i] = (share << SCALE_OFFSET) & U128_MAX

    def id_within_position(self, bin_id: int) -> None:
        """Raise ``LBError('InvalidPosition')`` unless ``bin_id`` is in the position."""
        if not self.lower_bin_id <= bin_id <= self.upper_bin_id:
            raise LBError("InvalidPosition", f"bin {bin_id} is outside the position")

    def width(self) -> int:
        """Number of bins the position spans."""
        return _i32(_i32(self.upper_bin_id - self.lower_bin_id) + 1)

    def get_idx(self, bin_id: int) -> int:
        """Slot of ``bin_id`` in the position's per-bin lists."""
        self.id_within_position(bin_id)
        return _i32(bin_id - self.lower_bin_id)

    def from_idx_to_bin_id(self, i: int) -> int:
        return _i32(self.lower_bin_id + i)

    def withdraw(self, bin_id: int, liquidity_share: int) -> None:
        idx = self.get_idx(bin_id)
        self.liquidity_shares[idx] = _checked(
            self.liquidity_shares[idx] - liquidity_share, U128_MAX
        )

    def deposit(self, bin_id: int, liquidity_share: int) -> None:
        idx = self.get_idx(bin_id)
        self.liquidity_shares[idx] = _checked(
            self.liquidity_shares[idx] + liquidity_share, U128_MAX
        )

    def get_liquidity_share_in_bin(self, bin_id: int) -> int:
        return self.liquidity_shares[self.get_idx(bin_id)]

    def accumulate_total_claimed_rewards(self, reward_index: int, reward: int) -> None:
        """Track claimed rewards; the total wraps at 64 bits."""
        self.total_claimed_rewards[reward_index] = (
            self.total_claimed_rewards[reward_index] + reward
        ) & U64_MAX

    def accumulate_total_claimed_fees(self, fee_x: int, fee_y: int) -> None:
        """Track claimed fees; the totals wrap at 64 bits."""
        self.total_claimed_fee_x_amount = (self.total_claimed_fee_x_amount + fee_x) & U64_MAX
        self.total_claimed_fee_y_amount = (self.total_claimed_fee_y_amount + fee_y) & U64_MAX

    def update_fee_per_token_stored(self, bin_id: int, bin: Bin) -> None:
        """Move the bin's swap fee growth into the position's pending fees."""
        idx = self.get_idx(bin_id)
        info = self.fee_infos[idx]
        share = self.liquidity_shares[idx]

        new_fee_x = _earned(
            share, bin.fee_amount_x_per_token_stored, info.fee_x_per_token_complete
        )
        info.fee_x_pending = _checked(new_fee_x + info.fee_x_pending, U64_MAX)
        info.fee_x_per_token_complete = bin.fee_amount_x_per_token_stored

        new_fee_y = _earned(
            share, bin.fee_amount_y_per_token_stored, info.fee_y_per_token_complete
        )
        info.fee_y_pending = _checked(new_fee_y + info.fee_y_pending, U64_MAX)
        info.fee_y_per_token_complete = bin.fee_amount_y_per_token_stored

    def update_reward_per_token_stored(self, bin_id: int, bin: Bin) -> None:
        """Move the bin's reward growth into the position's pending rewards."""
        idx = self.get_idx(bin_id)
        info = self.reward_infos[idx]
        share = self.liquidity_shares[idx]
        for reward_idx in range(NUM_REWARDS):
            stored = bin.reward_per_token_stored[reward_idx]
            new_reward = _earned(share, stored, info.reward_per_token_completes[reward_idx])
            info.reward_pendings[reward_idx] = _checked(
                new_reward + info.reward_pendings[reward_idx], U64_MAX
            )
            info.reward_per_token_completes[reward_idx] = stored

    def get_total_reward(self, reward_index: int) -> int:
        """Pending reward of one kind summed over all bins."""
        total = 0
        for info in self.reward_infos:
            total = _checked(total + info.reward_pendings[reward_index], U64_MAX)
        return total

    def reset_all_pending_reward(self, reward_index: int) -> None:
        for info in self.reward_infos:
            info.reward_pendings[reward_index] = 0

    def claim_fee(self) -> tuple[int, int]:
        """Return and clear the pending fees of token X and Y."""
        fee_x = fee_y = 0
        for info in self.fee_infos:
            fee_x = _checked(fee_x + info.fee_x_pending, U64_MAX)
            fee_y = _checked(fee_y + info.fee_y_pending, U64_MAX)
        for info in self.fee_infos:
            info.fee_x_pending = 0
            info.fee_y_pending = 0
        return fee_x, fee_y

    def is_empty(self) -> bool:
        """Whether the position holds no liquidity, pending reward or pending fee."""
        for share, rewards, fees in zip(self.liquidity_shares, self.reward_infos, self.fee_infos):
            if share:
                return False
            if any(rewards.reward_pendings):
                return False
            if fees.fee_x_pending or fees.fee_y_pending:
                return False
        return True

    def is_liquidity_locked(self, current_slot: int) -> bool:
        return current_slot < self.lock_release_slot

    def is_subjected_to_initial_liquidity_locking(self) -> bool:
        return self.subjected_to_bootstrap_liquidity_locking != 0