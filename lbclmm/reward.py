"""Liquidity-mining reward state of a pair."""

from __future__ import annotations

from dataclasses import dataclass, field

from lbclmm.fixed_point import (
    SCALE_OFFSET,
    U64_MAX,
    U128_MAX,
    LBError,
    Rounding,
    mul_div,
    mul_shr,
    shl_div,
)
from lbclmm.pubkey import Pubkey

U256_MAX = (1 << 256) - 1


def _u64(value: int) -> int:
    if not 0 <= value <= U64_MAX:
        raise LBError("MathOverflow")
    return value


def _cast_u64(value: int) -> int:
    if not 0 <= value <= U64_MAX:
        raise LBError("TypeCastFailed")
    return value


@dataclass
class RewardInfo:
    """State used to track one liquidity-mining reward of a pair."""

    mint: Pubkey = field(default_factory=Pubkey)
    vault: Pubkey = field(default_factory=Pubkey)
    funder: Pubkey = field(default_factory=Pubkey)
    reward_duration: int = 0
    reward_duration_end: int = 0
    reward_rate: int = 0
    last_update_time: int = 0
    # Seconds during which rewards were distributed while the bin was empty; they
    # are paid out in the next reward window.
    cumulative_seconds_with_empty_liquidity_reward: int = 0

    def initialized(self) -> bool:
        """Whether a reward mint has been set; this never reverts once true."""
        return self.mint != Pubkey()

    def init_reward(
        self, mint: Pubkey, vault: Pubkey, funder: Pubkey, reward_duration: int
    ) -> None:
        """Set up the reward's mint, vault, funder and duration."""
        self.mint = mint
        self.vault = vault
        self.funder = funder
        self.reward_duration = reward_duration

    def update_last_update_time(self, current_time: int) -> None:
        """Record the update time, never past the end of the reward window."""
        self.last_update_time = min(current_time, self.reward_duration_end)

    def get_seconds_elapsed_since_last_update(self, current_time: int) -> int:
        """Seconds of the reward window elapsed since the last update."""
        last_applicable = min(current_time, self.reward_duration_end)
        return _u64(last_applicable - self.last_update_time)

    def calculate_reward_per_token_stored_since_last_update(
        self, current_time: int, liquidity_supply: int
    ) -> int:
        """Reward per unit of liquidity accrued since the last update, rounded down."""
        time_period = self.get_seconds_elapsed_since_last_update(current_time)
        return mul_div(time_period, self.reward_rate, liquidity_supply, Rounding.DOWN)

    def calculate_reward_accumulated_since_last_update(self, current_time: int) -> int:
        """Total Q64.64 reward accrued since the last update, as a 256-bit value."""
        last_applicable = min(current_time, self.reward_duration_end)
        time_period = _u64(last_applicable - self.last_update_time)
        accumulated = time_period * self.reward_rate
        if accumulated > U256_MAX:
            raise LBError("MathOverflow", "accumulated reward exceeds 256 bits")
        return accumulated

    def update_rate_after_funding(self, current_time: int, funding_amount: int) -> None:
        """Spread new funding plus any undistributed reward over a fresh window."""
        if current_time >= self.reward_duration_end:
            total_amount = funding_amount
        else:
            remaining_seconds = _u64(self.reward_duration_end - current_time)
            leftover = _cast_u64(
                mul_shr(self.reward_rate, remaining_seconds, SCALE_OFFSET, Rounding.DOWN)
            )
            total_amount = _u64(leftover + funding_amount)

        new_rate = shl_div(total_amount, self.reward_duration, SCALE_OFFSET, Rounding.DOWN)
        if new_rate > U128_MAX:
            raise LBError("TypeCastFailed", "reward rate exceeds 128 bits")
        new_end = _u64(current_time + self.reward_duration)

        self.reward_rate = new_rate
        self.last_update_time = current_time
        self.reward_duration_end = new_end