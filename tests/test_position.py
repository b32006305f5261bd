import pytest
from hypothesis import given
from hypothesis import strategies as st

from lbclmm.bin import NUM_REWARDS, Bin
from lbclmm.fixed_point import SCALE_OFFSET, U64_MAX, U128_MAX, LBError
from lbclmm.position import (
    MAX_BIN_PER_POSITION,
    FeeInfo,
    Position,
    PositionV2,
    UserRewardInfo,
)
from lbclmm.pubkey import Pubkey


def make_position(lower=10, upper=19, locked=False, lock_release_slot=0):
    position = PositionV2()
    position.init(
        Pubkey(), Pubkey(), Pubkey(), lower, upper, 1_000, lock_release_slot, locked, Pubkey()
    )
    return position


def test_init_sets_range_and_time():
    position = make_position(lower=-5, upper=4)
    assert position.lower_bin_id == -5
    assert position.upper_bin_id == 4
    assert position.last_updated_at == 1_000
    assert position.width() == 10
    assert position.liquidity_shares == [0] * MAX_BIN_PER_POSITION


def test_single_bin_width_is_one():
    position = make_position(lower=7, upper=7)
    assert position.width() == 1


def test_locking_flag():
    assert make_position(locked=True).is_subjected_to_initial_liquidity_locking()
    assert not make_position(locked=False).is_subjected_to_initial_liquidity_locking()


def test_is_liquidity_locked():
    position = make_position(lock_release_slot=500)
    assert position.is_liquidity_locked(499)
    assert not position.is_liquidity_locked(500)


def test_get_idx_and_back():
    position = make_position(lower=10, upper=19)
    for bin_id in range(10, 20):
        idx = position.get_idx(bin_id)
        assert position.from_idx_to_bin_id(idx) == bin_id


@pytest.mark.parametrize("bin_id", [9, 20])
def test_get_idx_outside_raises(bin_id):
    position = make_position(lower=10, upper=19)
    with pytest.raises(LBError) as excinfo:
        position.get_idx(bin_id)
    assert excinfo.value.kind == "InvalidPosition"


@given(st.integers(min_value=10, max_value=19), st.integers(min_value=0, max_value=U128_MAX))
def test_deposit_withdraw_round_trip(bin_id, share):
    position = make_position()
    position.deposit(bin_id, share)
    assert position.get_liquidity_share_in_bin(bin_id) == share
    position.withdraw(bin_id, share)
    assert position.get_liquidity_share_in_bin(bin_id) == 0
    assert position.is_empty()


def test_withdraw_more_than_held_raises():
    position = make_position()
    position.deposit(12, 5)
    with pytest.raises(LBError) as excinfo:
        position.withdraw(12, 6)
    assert excinfo.value.kind == "MathOverflow"
    assert position.get_liquidity_share_in_bin(12) == 5


def test_deposit_overflow_raises():
    position = make_position()
    position.deposit(12, U128_MAX)
    with pytest.raises(LBError) as excinfo:
        position.deposit(12, 1)
    assert excinfo.value.kind == "MathOverflow"


def test_migrate_from_v1_scales_shares():
    old = Position(lower_bin_id=3, upper_bin_id=5, last_updated_at=77)
    old.liquidity_shares[0] = 123
    old.liquidity_shares[2] = U64_MAX
    old.fee_infos[1].fee_x_pending = 9
    old.total_claimed_rewards = [4, 8]
    position = PositionV2()
    position.migrate_from_v1(old)
    assert position.liquidity_shares[0] >> SCALE_OFFSET == 123
    assert position.liquidity_shares[2] >> SCALE_OFFSET == U64_MAX
    assert position.liquidity_shares[1] == 0
    assert position.fee_infos[1].fee_x_pending == 9
    assert position.total_claimed_rewards == [4, 8]
    assert (position.lower_bin_id, position.upper_bin_id) == (3, 5)
    assert position.last_updated_at == 77
    old.fee_infos[1].fee_x_pending = 0
    assert position.fee_infos[1].fee_x_pending == 9


def test_fee_update_and_claim():
    position = make_position()
    position.deposit(11, 2 << SCALE_OFFSET)
    bin_ = Bin(fee_amount_x_per_token_stored=3 << SCALE_OFFSET)
    position.update_fee_per_token_stored(11, bin_)
    info = position.fee_infos[position.get_idx(11)]
    assert info.fee_x_pending == 6
    assert info.fee_y_pending == 0
    assert info.fee_x_per_token_complete == bin_.fee_amount_x_per_token_stored
    # A second update without new growth earns nothing more.
    position.update_fee_per_token_stored(11, bin_)
    assert info.fee_x_pending == 6
    assert position.claim_fee() == (6, 0)
    assert position.claim_fee() == (0, 0)


def test_fee_growth_going_backwards_raises():
    position = make_position()
    position.fee_infos[0].fee_x_per_token_complete = 5
    with pytest.raises(LBError) as excinfo:
        position.update_fee_per_token_stored(10, Bin(fee_amount_x_per_token_stored=4))
    assert excinfo.value.kind == "MathOverflow"


def test_fee_too_large_for_u64_raises():
    position = make_position()
    position.deposit(10, U128_MAX)
    with pytest.raises(LBError) as excinfo:
        position.update_fee_per_token_stored(10, Bin(fee_amount_x_per_token_stored=U128_MAX))
    assert excinfo.value.kind == "TypeCastFailed"


def test_reward_update_total_and_reset():
    position = make_position()
    position.deposit(10, 1 << SCALE_OFFSET)
    position.deposit(15, 1 << SCALE_OFFSET)
    bin_ = Bin(reward_per_token_stored=[7 << SCALE_OFFSET, 0])
    position.update_reward_per_token_stored(10, bin_)
    position.update_reward_per_token_stored(15, bin_)
    first = position.reward_infos[position.get_idx(10)].reward_pendings[0]
    second = position.reward_infos[position.get_idx(15)].reward_pendings[0]
    assert first == second
    assert position.get_total_reward(0) == first + second
    assert position.get_total_reward(1) == 0
    assert not position.is_empty() or first == 0
    position.reset_all_pending_reward(0)
    assert position.get_total_reward(0) == 0
    assert position.reward_infos[0].reward_per_token_completes == bin_.reward_per_token_stored


def test_is_empty_detects_pending_fee():
    position = make_position()
    assert position.is_empty()
    position.fee_infos[3].fee_y_pending = 1
    assert not position.is_empty()
    position.claim_fee()
    assert position.is_empty()


def test_is_empty_detects_pending_reward():
    position = make_position()
    position.reward_infos[2].reward_pendings[NUM_REWARDS - 1] = 1
    assert not position.is_empty()


def test_claimed_totals_wrap():
    position = make_position()
    position.accumulate_total_claimed_fees(U64_MAX, 3)
    position.accumulate_total_claimed_fees(1, 4)
    assert position.total_claimed_fee_x_amount == 0
    assert position.total_claimed_fee_y_amount == 7
    position.accumulate_total_claimed_rewards(1, U64_MAX)
    position.accumulate_total_claimed_rewards(1, 2)
    assert position.total_claimed_rewards == [0, 1]


def test_default_infos_are_independent():
    position = PositionV2()
    position.fee_infos[0].fee_x_pending = 1
    position.reward_infos[0].reward_pendings[0] = 1
    assert position.fee_infos[1] == FeeInfo()
    assert position.reward_infos[1] == UserRewardInfo()
    assert len(position.fee_infos) == MAX_BIN_PER_POSITION