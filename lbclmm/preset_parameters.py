"""Preset fee parameters from which new pairs are configured."""

from __future__ import annotations

from dataclasses import dataclass

from lbclmm.fixed_point import BASIS_POINT_MAX, U128_MAX, LBError, get_price_from_id
from lbclmm.parameters import MAX_PROTOCOL_SHARE, StaticParameters

U24_MAX = (1 << 24) - 1

# Bins priced at 1 or at the top of the 128-bit range cannot be swapped, so a preset
# must bound its prices to exactly these values.
REQUIRED_MAX_PRICE = U128_MAX >> 1
REQUIRED_MIN_PRICE = 2


@dataclass
class PresetParameter:
    """A named set of fee parameters for a given bin step."""

    bin_step: int = 0
    base_factor: int = 0
    filter_period: int = 0
    decay_period: int = 0
    reduction_factor: int = 0
    variable_fee_control: int = 0
    max_volatility_accumulator: int = 0
    min_bin_id: int = 0
    max_bin_id: int = 0
    protocol_share: int = 0

    def update(
        self,
        base_factor: int,
        filter_period: int,
        decay_period: int,
        reduction_factor: int,
        variable_fee_control: int,
        max_volatility_accumulator: int,
        protocol_share: int,
    ) -> None:
        """Replace the fee settings, keeping the bin step and bin id bounds."""
        self.base_factor = base_factor
        self.filter_period = filter_period
        self.decay_period = decay_period
        self.reduction_factor = reduction_factor
        self.variable_fee_control = variable_fee_control
        self.max_volatility_accumulator = max_volatility_accumulator
        self.protocol_share = protocol_share

    def validate(self) -> None:
        """Raise ``LBError('InvalidInput')`` unless every setting is acceptable."""
        checks = (
            (self.bin_step <= BASIS_POINT_MAX, "bin step too large"),
            (self.protocol_share <= MAX_PROTOCOL_SHARE, "protocol share too high"),
            (self.filter_period < self.decay_period, "filter period must precede decay period"),
            (self.reduction_factor <= BASIS_POINT_MAX, "reduction factor too large"),
            (self.variable_fee_control <= U24_MAX, "variable fee control too large"),
            (self.max_volatility_accumulator <= U24_MAX, "max volatility accumulator too large"),
        )
        for ok, message in checks:
            if not ok:
                raise LBError("InvalidInput", message)

        try:
            max_price = get_price_from_id(self.max_bin_id, self.bin_step)
            min_price = get_price_from_id(self.min_bin_id, self.bin_step)
        except LBError as error:
            raise LBError("InvalidInput", "bin id bounds give no price") from error

        if max_price != REQUIRED_MAX_PRICE:
            raise LBError("InvalidInput", "max bin id does not reach the price ceiling")
        if min_price != REQUIRED_MIN_PRICE:
            raise LBError("InvalidInput", "min bin id does not reach the price floor")

    def to_static_parameters(self) -> StaticParameters:
        """The static parameters a pair created from this preset starts with."""
        return StaticParameters(
            base_factor=self.base_factor,
            filter_period=self.filter_period,
            decay_period=self.decay_period,
            reduction_factor=self.reduction_factor,
            variable_fee_control=self.variable_fee_control,
            max_volatility_accumulator=self.max_volatility_accumulator,
            min_bin_id=self.min_bin_id,
            max_bin_id=self.max_bin_id,
            protocol_share=self.protocol_share,
        )