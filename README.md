# lbclmm

A pure-Python model of the state of a liquidity-book concentrated liquidity
market maker: discrete price bins, bin arrays and their bitmaps, dynamic
fees, farming rewards, the price oracle, liquidity positions, and public keys
with program-derived addresses.

All arithmetic uses Python integers held to the ranges of the account fields:
Q64.64 fixed-point prices, an explicit rounding direction, and an `LBError`
raised wherever a computation would overflow or an input is out of range.
`LBError.kind` names the failure, for example `"MathOverflow"`,
`"InvalidBinId"`, `"ExcessiveFeeUpdate"` or
`"CannotFindNonZeroLiquidityBinArrayId"`.

## Install

```
pip install lbclmm
```

To run the tests:

```
pip install "lbclmm[test]"
pytest
```

## Modules

- `lbclmm.fixed_point` – `Rounding`, `LBError`, `mul_div`, `mul_shr`,
  `shl_div` and `get_price_from_id`, which gives the Q64.64 price
  `(1 + bin_step / 10000) ** bin_id`.
- `lbclmm.parameters` – `StaticParameters`, `VariableParameters` and
  `FeeParameter`; fee updates and volatility reference/accumulator updates.
- `lbclmm.preset_parameters` – `PresetParameter` with `update()`,
  `validate()` and `to_static_parameters()`.
- `lbclmm.bin` – `Bin` (deposit, withdraw, swap, fee per token),
  `BinArray`, `SwapResult`, `LayoutVersion`, `get_out_amount` and
  `get_liquidity_share`.
- `lbclmm.reward` – `RewardInfo`: reward rate after funding and reward
  accrual since the last update.
- `lbclmm.bitmap_extension` – `BinArrayBitmapExtension` for bin array
  indices beyond the pair's built-in bitmap of indices -512..511.
- `lbclmm.oracle` – `Observation`, `Oracle` and `DynamicOracle`, a ring of
  time-weighted samples of the active bin.
- `lbclmm.lb_pair` – `LbPair`, `PairType`, `PairStatus`, `ProtocolFee` and
  `LaunchPadParams`: base, variable, composition and protocol fees, active
  bin movement and the search for the next bin array holding liquidity.
- `lbclmm.action_access` – `get_lb_pair_type_access_validator`, returning a
  `PermissionLbPairActionAccess` or `PermissionlessLbPairActionAccess`.
- `lbclmm.position` – `PositionV2` (and the older `Position`, which
  `PositionV2.migrate_from_v1` converts), with fee and reward accounting.
- `lbclmm.pubkey` – `Pubkey` (base58 parsing and printing, curve check),
  `create_program_address` and `find_program_address`.

## Example

A swap through one bin:

```python
from lbclmm.bin import Bin
from lbclmm.fixed_point import get_price_from_id
from lbclmm.lb_pair import LbPair

pair = LbPair()
pair.bin_step = 10
price = get_price_from_id(0, pair.bin_step)

bin_ = Bin(amount_x=1_000_000, amount_y=1_000_000)
result = bin_.swap(10_000, price, True, pair, None)
print(result.amount_out, result.fee)
```

Deriving an address from seeds:

```python
from lbclmm.pubkey import Pubkey, find_program_address

program_id = Pubkey.from_base58("11111111111111111111111111111111")
lb_pair = Pubkey(bytes(range(32)))
address, bump = find_program_address([b"oracle", bytes(lb_pair)], program_id)
print(address, bump)
```

## What this package does not do

- It has no ready-made helpers for the addresses of particular accounts
  (pairs, positions, bin arrays, oracles and so on); build their seeds
  yourself and pass them to `find_program_address`.
- It keeps state in plain dataclasses and does not read or write the binary
  layout of accounts; it does not talk to a network or store anything.
- It provides no command-line program.