"""Mini README: Currency arithmetic for the bazaar.

This package holds the denomination table, the integer change-making
engine, transient wallets and display helpers. Nothing here touches
persistence or messaging, so it can be reused by any component that needs
exact coin arithmetic.
"""

from .change import (
    CoinBag,
    coin_breakdown,
    coin_count,
    is_canonical,
    make_change,
    minimal_change,
    normalize,
    value_of,
)
from .denominations import (
    DEFAULT_DENOMINATIONS,
    ROUND_DOWN,
    ROUND_NEAREST,
    ROUND_UP,
    CurrencySystem,
    Denomination,
    base_unit_multiplier,
    validate_denominations,
)
from .formatting import format_currency, parse_currency
from .wallet import Wallet, WalletPolicy

__all__ = [
    "CoinBag",
    "CurrencySystem",
    "DEFAULT_DENOMINATIONS",
    "Denomination",
    "ROUND_DOWN",
    "ROUND_NEAREST",
    "ROUND_UP",
    "Wallet",
    "WalletPolicy",
    "base_unit_multiplier",
    "coin_breakdown",
    "coin_count",
    "format_currency",
    "is_canonical",
    "make_change",
    "minimal_change",
    "normalize",
    "parse_currency",
    "validate_denominations",
    "value_of",
]
