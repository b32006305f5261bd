import copy

import pytest

from lbclmm.fixed_point import U64_MAX, LBError
from lbclmm.oracle import (
    DEFAULT_OBSERVATION_LENGTH,
    SAMPLE_LIFETIME,
    DynamicOracle,
    Observation,
    Oracle,
)


def make_oracle(length):
    return DynamicOracle(
        Oracle(length=length), [Observation() for _ in range(length)]
    )


def test_observation_uninitialized():
    obs = Observation()
    assert obs.initialized() is False
    assert obs.accumulate_active_bin_id(-7, 1000) == -7
    assert obs.compute_next_sampling_timestamp() is None


def test_observation_update_sets_created_once():
    obs = Observation()
    obs.update(5, 100)
    assert (obs.created_at, obs.last_updated_at) == (100, 100)
    obs.update(9, 150)
    assert obs.created_at == 100
    assert obs.last_updated_at == 150
    assert obs.cumulative_active_bin_id == 9


def test_observation_next_sampling_timestamp():
    obs = Observation(cumulative_active_bin_id=1, created_at=10, last_updated_at=10)
    assert obs.compute_next_sampling_timestamp() == 10 + SAMPLE_LIFETIME


def test_observation_next_sampling_overflow_is_none():
    obs = Observation(created_at=(1 << 63) - 2, last_updated_at=1)
    assert obs.compute_next_sampling_timestamp() is None


def test_observation_accumulate_zero_elapsed_keeps_value():
    obs = Observation(cumulative_active_bin_id=42, created_at=5, last_updated_at=5)
    assert obs.accumulate_active_bin_id(1000, 5) == 42


def test_observation_reset():
    obs = Observation(cumulative_active_bin_id=3, created_at=4, last_updated_at=5)
    obs.reset()
    assert obs == Observation()


def test_oracle_init_and_increase():
    oracle = Oracle()
    oracle.init()
    assert oracle.length == DEFAULT_OBSERVATION_LENGTH
    oracle.increase_length(5)
    assert oracle.length == DEFAULT_OBSERVATION_LENGTH + 5


def test_oracle_increase_overflow():
    oracle = Oracle(length=U64_MAX)
    with pytest.raises(LBError) as info:
        oracle.increase_length(1)
    assert info.value.kind == "MathOverflow"


def test_oracle_space():
    assert Oracle.metadata_len() == 32
    assert Oracle.space(0) == Oracle.metadata_len()
    assert Oracle.space(11) - Oracle.space(10) == 32


def test_empty_oracle_has_no_samples():
    oracle = make_oracle(3)
    assert oracle.get_latest_sample() is None
    assert oracle.get_earliest_sample() is None


def test_first_update_creates_sample():
    oracle = make_oracle(3)
    oracle.update(5, 100)
    latest = oracle.get_latest_sample()
    assert latest == Observation(cumulative_active_bin_id=5, created_at=100, last_updated_at=100)
    assert oracle.metadata.active_size == 1
    assert oracle.get_earliest_sample() is latest


def test_update_within_lifetime_accumulates():
    oracle = make_oracle(3)
    oracle.update(5, 100)
    before = copy.deepcopy(oracle.get_latest_sample())
    oracle.update(7, 110)
    latest = oracle.get_latest_sample()
    assert latest.cumulative_active_bin_id == before.accumulate_active_bin_id(7, 110)
    assert latest.created_at == 100
    assert oracle.metadata.idx == 0


def test_update_after_lifetime_opens_new_sample():
    oracle = make_oracle(3)
    oracle.update(5, 100)
    later = 100 + SAMPLE_LIFETIME
    expected = copy.deepcopy(oracle.get_latest_sample()).accumulate_active_bin_id(2, later)
    oracle.update(2, later)
    assert oracle.metadata.idx == 1
    assert oracle.metadata.active_size == 2
    latest = oracle.get_latest_sample()
    assert latest.created_at == later
    assert latest.cumulative_active_bin_id == expected
    assert oracle.get_earliest_sample() is oracle.observations[0]


def test_ring_wraps_and_earliest_moves():
    oracle = make_oracle(2)
    ts = 100
    oracle.update(1, ts)
    for _ in range(2):
        ts += SAMPLE_LIFETIME
        oracle.update(1, ts)
    assert oracle.metadata.idx == 0
    assert oracle.metadata.active_size == 2
    assert oracle.get_latest_sample().created_at == ts
    assert oracle.get_earliest_sample() is oracle.observations[1]
    assert oracle.get_earliest_sample().created_at == ts - SAMPLE_LIFETIME