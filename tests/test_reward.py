import pytest
from hypothesis import given
from hypothesis import strategies as st

from lbclmm.fixed_point import SCALE_OFFSET, U64_MAX, LBError
from lbclmm.pubkey import Pubkey
from lbclmm.reward import RewardInfo

MINT = Pubkey(bytes([1]) * 32)
VAULT = Pubkey(bytes([2]) * 32)
FUNDER = Pubkey(bytes([3]) * 32)


def _funded(duration: int, amount: int, start: int = 0) -> RewardInfo:
    info = RewardInfo()
    info.init_reward(MINT, VAULT, FUNDER, duration)
    info.update_rate_after_funding(start, amount)
    return info


def test_default_is_not_initialized():
    assert RewardInfo().initialized() is False


def test_init_reward_sets_fields_and_initializes():
    info = RewardInfo()
    info.init_reward(MINT, VAULT, FUNDER, 3600)
    assert info.initialized() is True
    assert (info.mint, info.vault, info.funder, info.reward_duration) == (
        MINT,
        VAULT,
        FUNDER,
        3600,
    )


def test_update_last_update_time_is_capped_at_window_end():
    info = RewardInfo(reward_duration_end=100)
    info.update_last_update_time(250)
    assert info.last_update_time == 100
    info.update_last_update_time(40)
    assert info.last_update_time == 40


def test_seconds_elapsed_within_and_past_window():
    info = RewardInfo(reward_duration_end=100, last_update_time=10)
    assert info.get_seconds_elapsed_since_last_update(50) == 50 - 10
    assert info.get_seconds_elapsed_since_last_update(1000) == 100 - 10


def test_seconds_elapsed_negative_raises():
    info = RewardInfo(reward_duration_end=100, last_update_time=80)
    with pytest.raises(LBError) as excinfo:
        info.get_seconds_elapsed_since_last_update(20)
    assert excinfo.value.kind == "MathOverflow"


def test_reward_per_token_zero_liquidity_raises():
    info = RewardInfo(reward_duration_end=100, reward_rate=1 << SCALE_OFFSET)
    with pytest.raises(LBError):
        info.calculate_reward_per_token_stored_since_last_update(50, 0)


def test_reward_per_token_single_unit_of_liquidity_equals_accumulated():
    info = _funded(1000, 5000)
    per_token = info.calculate_reward_per_token_stored_since_last_update(400, 1)
    assert per_token == info.calculate_reward_accumulated_since_last_update(400)


def test_reward_per_token_scales_inversely_with_liquidity():
    info = _funded(1000, 5000)
    one = info.calculate_reward_per_token_stored_since_last_update(400, 1)
    ten = info.calculate_reward_per_token_stored_since_last_update(400, 10)
    assert ten == one // 10


def test_accumulated_reward_is_time_times_rate():
    info = RewardInfo(reward_duration_end=500, last_update_time=100, reward_rate=7 << 64)
    assert info.calculate_reward_accumulated_since_last_update(300) == 200 * (7 << 64)
    assert info.calculate_reward_accumulated_since_last_update(900) == 400 * (7 << 64)


def test_funding_sets_window():
    info = _funded(3600, 1_000_000, start=50)
    assert info.last_update_time == 50
    assert info.reward_duration_end == 50 + 3600


def test_funding_exact_rate_when_divisible():
    info = _funded(100, 500)
    assert info.reward_rate == 5 << SCALE_OFFSET


@given(
    duration=st.integers(min_value=1, max_value=10**8),
    amount=st.integers(min_value=0, max_value=U64_MAX // 2),
)
def test_distributed_reward_never_exceeds_funding(duration, amount):
    info = _funded(duration, amount)
    distributed = info.calculate_reward_accumulated_since_last_update(duration) >> SCALE_OFFSET
    assert distributed <= amount


def test_refunding_after_window_ignores_leftover():
    info = _funded(1000, 5000)
    info.update_rate_after_funding(info.reward_duration_end, 777)
    fresh = _funded(1000, 777, start=1000)
    assert info.reward_rate == fresh.reward_rate
    assert info.reward_duration_end == fresh.reward_duration_end


def test_refunding_midway_carries_leftover():
    info = _funded(1000, 5000)
    before = info.reward_rate
    info.update_rate_after_funding(500, 0)
    assert 0 < info.reward_rate <= before
    info_with_more = _funded(1000, 5000)
    info_with_more.update_rate_after_funding(500, 5000)
    assert info_with_more.reward_rate > info.reward_rate


def test_funding_zero_duration_raises():
    info = RewardInfo()
    info.init_reward(MINT, VAULT, FUNDER, 0)
    with pytest.raises(LBError):
        info.update_rate_after_funding(10, 100)


def test_funding_end_overflow_raises_and_keeps_state():
    info = RewardInfo()
    info.init_reward(MINT, VAULT, FUNDER, 10)
    with pytest.raises(LBError) as excinfo:
        info.update_rate_after_funding(U64_MAX, 100)
    assert excinfo.value.kind == "MathOverflow"
    assert info.reward_rate == 0
    assert info.reward_duration_end == 0