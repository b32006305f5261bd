"""Time-weighted samples of a pair's active bin."""

from __future__ import annotations

from dataclasses import dataclass, field

from lbclmm.fixed_point import U64_MAX, LBError

SAMPLE_LIFETIME = 120
DEFAULT_OBSERVATION_LENGTH = 100

ACCOUNT_DISCRIMINATOR_SIZE = 8
ORACLE_SIZE = 24
OBSERVATION_SIZE = 32

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1
_I128_MIN = -(1 << 127)
_I128_MAX = (1 << 127) - 1


def _checked(value: int, lower: int, upper: int) -> int:
    if not lower <= value <= upper:
        raise LBError("MathOverflow")
    return value


@dataclass
class Observation:
    """One sample of the cumulative active bin id."""

    cumulative_active_bin_id: int = 0
    created_at: int = 0
    last_updated_at: int = 0

    def initialized(self) -> bool:
        return self.created_at > 0 and self.last_updated_at > 0

    def reset(self) -> None:
        self.cumulative_active_bin_id = 0
        self.created_at = 0
        self.last_updated_at = 0

    def accumulate_active_bin_id(self, active_id: int, current_timestamp: int) -> int:
        """Cumulative active bin id after adding ``active_id`` for the elapsed seconds."""
        if not self.initialized():
            return active_id
        delta = _checked(current_timestamp - self.last_updated_at, _I64_MIN, _I64_MAX)
        increment = _checked(active_id * delta, _I128_MIN, _I128_MAX)
        return _checked(self.cumulative_active_bin_id + increment, _I128_MIN, _I128_MAX)

    def compute_next_sampling_timestamp(self) -> int | None:
        """When this sample expires, or None if it is unset or the time overflows."""
        if not self.initialized():
            return None
        next_timestamp = self.created_at + SAMPLE_LIFETIME
        return next_timestamp if next_timestamp <= _I64_MAX else None

    def update(self, cumulative_active_bin_id: int, current_timestamp: int) -> None:
        self.cumulative_active_bin_id = cumulative_active_bin_id
        self.last_updated_at = current_timestamp
        if not self.initialized():
            self.created_at = current_timestamp


@dataclass
class Oracle:
    """Ring-buffer bookkeeping of an oracle's observations."""

    idx: int = 0
    active_size: int = 0
    length: int = 0

    def init(self) -> None:
        self.length = DEFAULT_OBSERVATION_LENGTH

    def increase_length(self, length_to_increase: int) -> None:
        self.length = _checked(self.length + length_to_increase, 0, U64_MAX)

    @staticmethod
    def space(observation_length: int) -> int:
        """Account bytes needed for ``observation_length`` observations."""
        return Oracle.metadata_len() + observation_length * OBSERVATION_SIZE

    @staticmethod
    def metadata_len() -> int:
        """Account bytes before the first observation."""
        return ACCOUNT_DISCRIMINATOR_SIZE + ORACLE_SIZE


@dataclass
class DynamicOracle:
    """Oracle metadata together with its observation ring."""

    metadata: Oracle = field(default_factory=Oracle)
    observations: list[Observation] = field(default_factory=list)

    def _is_initial_sampling(self) -> bool:
        return self.metadata.active_size == 0

    def get_latest_sample(self) -> Observation | None:
        if self._is_initial_sampling():
            return None
        return self.observations[self.metadata.idx]

    def get_earliest_sample(self) -> Observation | None:
        if self._is_initial_sampling():
            return None
        return self.observations[(self.metadata.idx + 1) % self.metadata.active_size]

    def _next_reset(self) -> Observation | None:
        if self.metadata.length == 0:
            return None
        next_idx = (self.metadata.idx + 1) % self.metadata.length
        self.metadata.idx = next_idx
        sample = self.observations[next_idx]
        if not sample.initialized():
            self.metadata.active_size = min(self.metadata.active_size + 1, self.metadata.length)
        sample.reset()
        return sample

    def update(self, active_id: int, current_timestamp: int) -> None:
        """Extend the latest sample, or open a new one once it has expired."""
        if self._is_initial_sampling():
            self.metadata.active_size += 1
        latest = self.get_latest_sample()
        if latest is None:
            raise LBError("InsufficientSample")
        cumulative = latest.accumulate_active_bin_id(active_id, current_timestamp)
        next_timestamp = latest.compute_next_sampling_timestamp()
        if next_timestamp is not None and current_timestamp >= next_timestamp:
            latest = self._next_reset()
            if latest is None:
                raise LBError("MathOverflow")
        latest.update(cumulative, current_timestamp)