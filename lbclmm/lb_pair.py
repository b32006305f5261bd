"""State and fee arithmetic of a liquidity-book pair."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from lbclmm.bin import MAX_BIN_ID, MIN_BIN_ID, BinArray
from lbclmm.bitmap_extension import BIN_ARRAY_BITMAP_SIZE, BinArrayBitmapExtension
from lbclmm.fixed_point import BASIS_POINT_MAX, U64_MAX, U128_MAX, LBError
from lbclmm.parameters import FeeParameter, StaticParameters, VariableParameters
from lbclmm.pubkey import Pubkey
from lbclmm.reward import RewardInfo

# Fee rates are expressed in units of 1e-9.
FEE_PRECISION = 1_000_000_000
# Total fee rate never exceeds 10%.
MAX_FEE_RATE = 100_000_000
# Seconds that must pass between two fee parameter updates.
MAX_FEE_UPDATE_WINDOW = 0

# The built-in bitmap covers bin array indices -512..511 in 1024 bits.
BITMAP_BITS = 2 * BIN_ARRAY_BITMAP_SIZE
_BITMAP_MASK = (1 << BITMAP_BITS) - 1

_VARIABLE_FEE_SCALE = 100_000_000_000


def _u64(value: int) -> int:
    if not 0 <= value <= U64_MAX:
        raise LBError("MathOverflow")
    return value


def _u128(value: int) -> int:
    if not 0 <= value <= U128_MAX:
        raise LBError("MathOverflow")
    return value


def _cast_u64(value: int) -> int:
    if not 0 <= value <= U64_MAX:
        raise LBError("TypeCastFailed")
    return value


class PairType(enum.IntEnum):
    """Kind of pair; permissionless is 0 for backward compatibility."""

    PERMISSIONLESS = 0
    PERMISSION = 1

    def get_pair_default_launch_pad_params(self) -> LaunchPadParams:
        """Launch settings a new pair of this kind starts with."""
        if self is PairType.PERMISSION:
            # Unreachable slot: the pair stays closed until an admin sets activation.
            return LaunchPadParams(activation_slot=U64_MAX)
        return LaunchPadParams(activation_slot=0)


@dataclass(frozen=True)
class LaunchPadParams:
    """Launch settings of a pair."""

    activation_slot: int


class PairStatus(enum.IntEnum):
    """Whether the pair accepts inflows; enabled is 0 for backward compatibility."""

    ENABLED = 0
    DISABLED = 1


@dataclass
class ProtocolFee:
    """Protocol fees collected but not yet withdrawn."""

    amount_x: int = 0
    amount_y: int = 0


def _default_reward_infos() -> list[RewardInfo]:
    return [RewardInfo(), RewardInfo()]


@dataclass
class LbPair:
    """A liquidity-book pair: its parameters, reserves, fees and bin array bitmap."""

    parameters: StaticParameters = field(default_factory=StaticParameters)
    v_parameters: VariableParameters = field(default_factory=VariableParameters)
    bump_seed: bytes = b"\x00"
    bin_step_seed: bytes = b"\x00\x00"
    pair_type: int = PairType.PERMISSIONLESS
    active_id: int = 0
    bin_step: int = 0
    status: int = PairStatus.ENABLED
    require_base_factor_seed: int = 0
    base_factor_seed: bytes = b"\x00\x00"
    token_x_mint: Pubkey = field(default_factory=Pubkey)
    token_y_mint: Pubkey = field(default_factory=Pubkey)
    reserve_x: Pubkey = field(default_factory=Pubkey)
    reserve_y: Pubkey = field(default_factory=Pubkey)
    protocol_fee: ProtocolFee = field(default_factory=ProtocolFee)
    fee_owner: Pubkey = field(default_factory=Pubkey)
    reward_infos: list[RewardInfo] = field(default_factory=_default_reward_infos)
    oracle: Pubkey = field(default_factory=Pubkey)
    # 1024-bit map of initialized bin arrays; bit i stands for index i - 512.
    bin_array_bitmap: int = 0
    last_updated_at: int = 0
    whitelisted_wallet: Pubkey = field(default_factory=Pubkey)
    pre_activation_swap_address: Pubkey = field(default_factory=Pubkey)
    base_key: Pubkey = field(default_factory=Pubkey)
    activation_slot: int = field(
        default_factory=lambda: PairType.PERMISSIONLESS.get_pair_default_launch_pad_params().activation_slot
    )
    pre_activation_slot_duration: int = 0
    lock_durations_in_slot: int = 0
    creator: Pubkey = field(default_factory=Pubkey)

    def initialize(
        self,
        bump: int,
        active_id: int,
        bin_step: int,
        token_mint_x: Pubkey,
        token_mint_y: Pubkey,
        reserve_x: Pubkey,
        reserve_y: Pubkey,
        oracle: Pubkey,
        static_parameter: StaticParameters,
        pair_type: PairType,
        pair_status: int,
        base_key: Pubkey,
        lock_duration_in_slot: int,
        creator: Pubkey,
        fee_owner: Pubkey,
    ) -> None:
        """Set up a freshly created pair."""
        self.parameters = static_parameter
        self.active_id = active_id
        self.bin_step = bin_step
        self.token_x_mint = token_mint_x
        self.token_y_mint = token_mint_y
        self.reserve_x = reserve_x
        self.reserve_y = reserve_y
        self.fee_owner = fee_owner
        self.bump_seed = bytes([bump])
        self.bin_step_seed = bin_step.to_bytes(2, "little")
        self.oracle = oracle
        self.pair_type = PairType(pair_type)
        self.base_key = base_key
        self.status = pair_status
        self.creator = creator
        self.activation_slot = PairType(pair_type).get_pair_default_launch_pad_params().activation_slot
        self.lock_durations_in_slot = lock_duration_in_slot

    def get_release_slot(self, current_slot: int) -> int:
        """Slot at which liquidity added now unlocks, or 0 when it is not locked."""
        if self.parsed_pair_type() is PairType.PERMISSION:
            if self.lock_durations_in_slot > 0 and current_slot < self.activation_slot:
                return min(self.activation_slot + self.lock_durations_in_slot, U64_MAX)
        return 0

    def get_pre_activation_start_slot(self) -> int:
        """First slot at which the pre-activation swap address may swap."""
        return max(self.activation_slot - self.pre_activation_slot_duration, 0)

    def update_whitelisted_wallet(self, wallet: Pubkey) -> None:
        self.whitelisted_wallet = wallet

    def parsed_status(self) -> PairStatus:
        try:
            return PairStatus(self.status)
        except ValueError:
            raise LBError("TypeCastFailed", f"unknown pair status {self.status}") from None

    def parsed_pair_type(self) -> PairType:
        try:
            return PairType(self.pair_type)
        except ValueError:
            raise LBError("TypeCastFailed", f"unknown pair type {self.pair_type}") from None

    def is_permission_pair(self) -> bool:
        return self.parsed_pair_type() is PairType.PERMISSION

    def update_fee_parameters(self, parameter: FeeParameter, current_timestamp: int) -> None:
        """Apply a fee update, no sooner than the update window allows."""
        if self.last_updated_at > 0:
            second_elapsed = current_timestamp - self.last_updated_at
            if second_elapsed <= MAX_FEE_UPDATE_WINDOW:
                raise LBError("ExcessiveFeeUpdate", "fee updated too recently")
        self.parameters.update(parameter)
        self.last_updated_at = current_timestamp

    def seeds(self) -> list[bytes]:
        """Seeds that sign for the pair's address."""
        low, high = sorted((self.token_x_mint, self.token_y_mint))
        tail = [bytes(low), bytes(high), self.bin_step_seed, self.bump_seed]
        if self.is_permission_pair():
            return [bytes(self.base_key), *tail]
        return tail

    def swap_for_y(self, out_token_mint: Pubkey) -> bool:
        """Whether a swap paying out ``out_token_mint`` goes from X to Y."""
        return out_token_mint == self.token_y_mint

    def advance_active_bin(self, swap_for_y: bool) -> None:
        """Move the active bin one step in the swap direction."""
        next_id = self.active_id - 1 if swap_for_y else self.active_id + 1
        if not MIN_BIN_ID <= next_id <= MAX_BIN_ID:
            raise LBError("PairInsufficientLiquidity", "active bin would leave the price range")
        self.active_id = next_id

    def get_base_fee(self) -> int:
        """Base fee rate (1e-9 units): base factor times bin step."""
        return _u128(self.parameters.base_factor * self.bin_step * 10)

    def compute_variable_fee(self, volatility_accumulator: int) -> int:
        """Variable fee rate for an accumulator, rounded up to 1e-9 units."""
        control = self.parameters.variable_fee_control
        if control <= 0:
            return 0
        square = _u128(_u128(volatility_accumulator * self.bin_step) ** 2)
        v_fee = _u128(control * square)
        return _u128(v_fee + _VARIABLE_FEE_SCALE - 1) // _VARIABLE_FEE_SCALE

    def get_variable_fee(self) -> int:
        return self.compute_variable_fee(self.v_parameters.volatility_accumulator)

    def get_total_fee(self) -> int:
        """Base plus variable fee rate, capped at the maximum fee rate."""
        total = _u128(self.get_base_fee() + self.get_variable_fee())
        return min(total, MAX_FEE_RATE)

    def compute_composition_fee(self, swap_amount: int) -> int:
        """Fee charged for the implicit swap of an unbalanced deposit."""
        rate = self.get_total_fee()
        fee_amount = _u128(swap_amount * rate)
        composition_fee = _u128(fee_amount * (FEE_PRECISION + rate))
        return _cast_u64(composition_fee // FEE_PRECISION**2)

    def compute_fee_from_amount(self, amount_with_fees: int) -> int:
        """Fee contained in ``amount_with_fees``, rounded up."""
        rate = self.get_total_fee()
        fee_amount = _u128(_u128(amount_with_fees * rate) + FEE_PRECISION - 1)
        return _cast_u64(fee_amount // FEE_PRECISION)

    def compute_fee(self, amount: int) -> int:
        """Fee to add on top of ``amount`` so that it is the fee of the total, rounded up."""
        rate = self.get_total_fee()
        denominator = _u128(FEE_PRECISION - rate)
        fee = _u128(_u128(amount * rate) + denominator - 1)
        return _cast_u64(fee // denominator)

    def compute_protocol_fee(self, fee_amount: int) -> int:
        """Part of a fee kept by the protocol."""
        protocol_fee = _u128(fee_amount * self.parameters.protocol_share) // BASIS_POINT_MAX
        return _cast_u64(protocol_fee)

    def accumulate_protocol_fees(self, fee_amount_x: int, fee_amount_y: int) -> None:
        new_x = _u64(self.protocol_fee.amount_x + fee_amount_x)
        new_y = _u64(self.protocol_fee.amount_y + fee_amount_y)
        self.protocol_fee.amount_x, self.protocol_fee.amount_y = new_x, new_y

    def update_volatility_parameters(self, current_timestamp: int) -> None:
        self.v_parameters.update_volatility_parameter(
            self.active_id, current_timestamp, self.parameters
        )

    def update_references(self, current_timestamp: int) -> None:
        self.v_parameters.update_references(self.active_id, current_timestamp, self.parameters)

    def update_volatility_accumulator(self) -> None:
        self.v_parameters.update_volatility_accumulator(self.active_id, self.parameters)

    def withdraw_protocol_fee(self, amount_x: int, amount_y: int) -> None:
        new_x = _u64(self.protocol_fee.amount_x - amount_x)
        new_y = _u64(self.protocol_fee.amount_y - amount_y)
        self.protocol_fee.amount_x, self.protocol_fee.amount_y = new_x, new_y

    def oracle_initialized(self) -> bool:
        return self.oracle != Pubkey()

    def flip_bin_array_bit(
        self,
        bin_array_bitmap_extension: BinArrayBitmapExtension | None,
        bin_array_index: int,
    ) -> None:
        """Toggle a bin array's bit, in the extension when outside the built-in range."""
        if self.is_overflow_default_bin_array_bitmap(bin_array_index):
            if bin_array_bitmap_extension is None:
                raise LBError("BitmapExtensionAccountIsNotProvided")
            bin_array_bitmap_extension.flip_bin_array_bit(bin_array_index)
        else:
            offset = bin_array_index + BIN_ARRAY_BITMAP_SIZE
            self.bin_array_bitmap ^= (1 << offset) & _BITMAP_MASK

    def is_overflow_default_bin_array_bitmap(self, bin_array_index: int) -> bool:
        min_bitmap_id, max_bitmap_id = LbPair.bitmap_range()
        return bin_array_index > max_bitmap_id or bin_array_index < min_bitmap_id

    @staticmethod
    def bitmap_range() -> tuple[int, int]:
        """Lowest and highest bin array index of the built-in bitmap."""
        return -BIN_ARRAY_BITMAP_SIZE, BIN_ARRAY_BITMAP_SIZE - 1

    def next_bin_array_index_with_liquidity_internal(
        self, swap_for_y: bool, start_array_index: int
    ) -> tuple[int, bool]:
        """Next initialized bin array in the built-in bitmap and True, or the edge and False."""
        array_offset = start_array_index + BIN_ARRAY_BITMAP_SIZE
        min_bitmap_id, max_bitmap_id = LbPair.bitmap_range()
        if swap_for_y:
            span = max_bitmap_id - min_bitmap_id
            if not 0 <= array_offset <= span:
                raise LBError("MathOverflow", "start index outside the bitmap")
            shifted = (self.bin_array_bitmap << (span - array_offset)) & _BITMAP_MASK
            if shifted == 0:
                return min_bitmap_id - 1, False
            leading_zeros = BITMAP_BITS - shifted.bit_length()
            return start_array_index - leading_zeros, True

        shifted = self.bin_array_bitmap >> array_offset if array_offset >= 0 else 0
        if shifted == 0:
            return max_bitmap_id + 1, False
        trailing_zeros = (shifted & -shifted).bit_length() - 1
        return start_array_index + trailing_zeros, True

    def _shift_active_bin(self, swap_for_y: bool, bin_array_index: int) -> None:
        lower_bin_id, upper_bin_id = BinArray.get_bin_array_lower_upper_bin_id(bin_array_index)
        self.active_id = upper_bin_id if swap_for_y else lower_bin_id

    @staticmethod
    def _next_from_extension(
        swap_for_y: bool,
        bin_array_index: int,
        bin_array_bitmap_extension: BinArrayBitmapExtension | None,
    ) -> tuple[int, bool]:
        if bin_array_bitmap_extension is None:
            raise LBError("BitmapExtensionAccountIsNotProvided")
        return bin_array_bitmap_extension.next_bin_array_index_with_liquidity(
            swap_for_y, bin_array_index
        )

    def next_bin_array_index_from_internal_to_extension(
        self,
        swap_for_y: bool,
        current_array_index: int,
        start_array_index: int,
        bin_array_bitmap_extension: BinArrayBitmapExtension | None,
    ) -> None:
        """Search the built-in bitmap, then the extension, and move the active bin there."""
        bin_array_index, found = self.next_bin_array_index_with_liquidity_internal(
            swap_for_y, start_array_index
        )
        if not found:
            # The extension raises when it holds nothing in this direction either.
            bin_array_index, _ = LbPair._next_from_extension(
                swap_for_y, bin_array_index, bin_array_bitmap_extension
            )
        if current_array_index != bin_array_index:
            self._shift_active_bin(swap_for_y, bin_array_index)

    def next_bin_array_index_with_liquidity(
        self,
        swap_for_y: bool,
        bin_array_bitmap_extension: BinArrayBitmapExtension | None,
    ) -> None:
        """Move the active bin to the nearest bin array holding liquidity."""
        start_array_index = BinArray.bin_id_to_bin_array_index(self.active_id)
        if self.is_overflow_default_bin_array_bitmap(start_array_index):
            bin_array_index, found = LbPair._next_from_extension(
                swap_for_y, start_array_index, bin_array_bitmap_extension
            )
            if found:
                if start_array_index != bin_array_index:
                    self._shift_active_bin(swap_for_y, bin_array_index)
            else:
                self.next_bin_array_index_from_internal_to_extension(
                    swap_for_y, start_array_index, bin_array_index, bin_array_bitmap_extension
                )
        else:
            self.next_bin_array_index_from_internal_to_extension(
                swap_for_y, start_array_index, start_array_index, bin_array_bitmap_extension
            )