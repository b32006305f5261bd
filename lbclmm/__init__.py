"""State model, fixed-point math and address derivation of a liquidity-book concentrated liquidity market maker."""

__version__ = "0.6.1"