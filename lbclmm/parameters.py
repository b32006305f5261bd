"""Static and variable fee parameters of a liquidity-book pair."""

from __future__ import annotations

from dataclasses import dataclass

from lbclmm.fixed_point import BASIS_POINT_MAX, I32_MAX, I32_MIN, U32_MAX, LBError

# A single fee update may move the base factor by at most 100 bps.
MAX_BASE_FACTOR_STEP = 100
# The protocol never keeps more than 25% of the swap fee.
MAX_PROTOCOL_SHARE = 2_500


@dataclass
class FeeParameter:
    """Requested new fee settings for a pair."""

    base_factor: int
    protocol_share: int


@dataclass
class StaticParameters:
    """Parameters set by the protocol; the defaults follow common market practice."""

    base_factor: int = 10_000
    filter_period: int = 30
    decay_period: int = 600
    reduction_factor: int = 500
    variable_fee_control: int = 40_000
    # Capped at 35 bins crossed: 350_000 / 10_000 bps.
    max_volatility_accumulator: int = 350_000
    min_bin_id: int = I32_MIN
    max_bin_id: int = I32_MAX
    protocol_share: int = 1_000

    def update(self, parameter: FeeParameter) -> None:
        """Apply a fee update, refusing changes larger than allowed."""
        base_factor_delta = abs(parameter.base_factor - self.base_factor)
        if base_factor_delta > self.base_factor:
            raise LBError("ExcessiveFeeUpdate", "change exceeds 100% of the current fee")
        if base_factor_delta > MAX_BASE_FACTOR_STEP:
            raise LBError("ExcessiveFeeUpdate", "change exceeds the maximum step")
        if parameter.protocol_share > MAX_PROTOCOL_SHARE:
            raise LBError("ExcessiveFeeUpdate", "protocol share too high")
        self.protocol_share = parameter.protocol_share
        self.base_factor = parameter.base_factor


@dataclass
class VariableParameters:
    """Parameters that follow the dynamics of the market."""

    volatility_accumulator: int = 0
    volatility_reference: int = 0
    index_reference: int = 0
    last_update_timestamp: int = 0

    def update_volatility_accumulator(
        self, active_id: int, static_params: StaticParameters
    ) -> None:
        """Set the accumulator to reference plus bins crossed, capped at the maximum."""
        delta_id = abs(self.index_reference - active_id)
        accumulator = self.volatility_reference + delta_id * BASIS_POINT_MAX
        capped = min(accumulator, static_params.max_volatility_accumulator)
        if not 0 <= capped <= U32_MAX:
            raise LBError("TypeCastFailed", "volatility accumulator does not fit 32 bits")
        self.volatility_accumulator = capped

    def update_references(
        self, active_id: int, current_timestamp: int, static_params: StaticParameters
    ) -> None:
        """Move the reference bin and decay the volatility reference."""
        elapsed = current_timestamp - self.last_update_timestamp
        if elapsed < static_params.filter_period:
            return
        self.index_reference = active_id
        if elapsed < static_params.decay_period:
            scaled = self.volatility_accumulator * static_params.reduction_factor
            if scaled > U32_MAX:
                raise LBError("MathOverflow", "volatility reference overflow")
            self.volatility_reference = scaled // BASIS_POINT_MAX
        else:
            self.volatility_reference = 0

    def update_volatility_parameter(
        self, active_id: int, current_timestamp: int, static_params: StaticParameters
    ) -> None:
        """Update the references, then the accumulator."""
        self.update_references(active_id, current_timestamp, static_params)
        self.update_volatility_accumulator(active_id, static_params)