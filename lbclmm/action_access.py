"""Who may add liquidity, open bin arrays and positions, and swap on a pair."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from lbclmm.lb_pair import LbPair, PairStatus
from lbclmm.pubkey import Pubkey


class LbPairActionAccess(ABC):
    """Checks which actions a wallet may take on a pair."""

    @abstractmethod
    def validate_add_liquidity_access(self, wallet: Pubkey) -> bool: ...

    @abstractmethod
    def validate_initialize_bin_array_access(self, wallet: Pubkey) -> bool: ...

    @abstractmethod
    def validate_initialize_position_access(self, wallet: Pubkey) -> bool: ...

    @abstractmethod
    def validate_swap_access(self, sender: Pubkey) -> bool: ...


@dataclass(frozen=True)
class PermissionLbPairActionAccess(LbPairActionAccess):
    """Access rules of a permissioned pair, which opens at its activation slot."""

    is_enabled: bool
    activated: bool
    pre_swap_activated: bool
    whitelisted_wallet: Pubkey
    pre_activation_swap_address: Pubkey

    @classmethod
    def from_pair(
        cls, lb_pair: LbPair, current_slot: int, pre_activation_swap_start_slot: int
    ) -> PermissionLbPairActionAccess:
        return cls(
            is_enabled=lb_pair.status == PairStatus.ENABLED,
            activated=current_slot >= lb_pair.activation_slot,
            pre_swap_activated=current_slot >= pre_activation_swap_start_slot,
            whitelisted_wallet=lb_pair.whitelisted_wallet,
            pre_activation_swap_address=lb_pair.pre_activation_swap_address,
        )

    def validate_add_liquidity_access(self, wallet: Pubkey) -> bool:
        # A disabled pair is in emergency mode: nothing can be deposited.
        if not self.is_enabled:
            return False
        whitelisted = self.whitelisted_wallet != Pubkey() and self.whitelisted_wallet == wallet
        return self.activated or whitelisted

    def validate_initialize_bin_array_access(self, wallet: Pubkey) -> bool:
        return self.validate_add_liquidity_access(wallet)

    def validate_initialize_position_access(self, wallet: Pubkey) -> bool:
        return self.validate_add_liquidity_access(wallet)

    def validate_swap_access(self, sender: Pubkey) -> bool:
        if self.pre_activation_swap_address == sender:
            activated = self.pre_swap_activated
        else:
            activated = self.activated
        return self.is_enabled and activated


@dataclass(frozen=True)
class PermissionlessLbPairActionAccess(LbPairActionAccess):
    """Access rules of a permissionless pair: everything is allowed while enabled."""

    is_enabled: bool

    @classmethod
    def from_pair(cls, lb_pair: LbPair) -> PermissionlessLbPairActionAccess:
        return cls(is_enabled=lb_pair.status == PairStatus.ENABLED)

    def validate_add_liquidity_access(self, wallet: Pubkey) -> bool:
        return self.is_enabled

    def validate_initialize_bin_array_access(self, wallet: Pubkey) -> bool:
        return self.is_enabled

    def validate_initialize_position_access(self, wallet: Pubkey) -> bool:
        return self.is_enabled

    def validate_swap_access(self, sender: Pubkey) -> bool:
        return self.is_enabled


def get_lb_pair_type_access_validator(lb_pair: LbPair, current_slot: int) -> LbPairActionAccess:
    """The access rules that apply to ``lb_pair`` at ``current_slot``."""
    if lb_pair.is_permission_pair():
        return PermissionLbPairActionAccess.from_pair(
            lb_pair, current_slot, lb_pair.get_pre_activation_start_slot()
        )
    return PermissionlessLbPairActionAccess.from_pair(lb_pair)