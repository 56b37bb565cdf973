"""Mini README: Denomination table and base-unit scaling for the bazaar currency.

Structure:
    * Denomination - immutable coin description (name, value, weight).
    * DEFAULT_DENOMINATIONS - the shipped Gold/Silver/Copper/Dime table.
    * validate_denominations - coerce and check a configured table.
    * base_unit_multiplier - factor turning display amounts into integer units.
    * CurrencySystem - bundles the table with conversion helpers.

Every monetary computation in the bazaar runs on integers counted in *base
units*. One base unit is worth exactly the smallest configured denomination,
so display amounts are converted once on the way in (``to_base_units``) and
once on the way out (``from_base_units``). Values are parsed from their
decimal string representation into ``Fraction`` which keeps floats out of
the arithmetic entirely.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import Any, Dict, Iterable, List, Mapping, Union

from ..exceptions import InvalidDenominations
from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

Number = Union[int, float, str, Decimal, Fraction]

ROUND_UP = "up"
ROUND_DOWN = "down"
ROUND_NEAREST = "nearest"


def to_fraction(value: Number) -> Fraction:
    """Convert a configured or user supplied number to an exact fraction."""

    if isinstance(value, bool):
        raise ValueError(f"Boolean is not a valid amount: {value!r}")
    if isinstance(value, Fraction):
        return value
    if isinstance(value, int):
        return Fraction(value)
    try:
        decimal_value = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as error:
        raise ValueError(f"Not a number: {value!r}") from error
    if not decimal_value.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return Fraction(decimal_value)


def fraction_to_decimal(value: Fraction) -> Decimal:
    """Render a terminating fraction as a Decimal without float rounding."""

    return Decimal(value.numerator) / Decimal(value.denominator)


def _to_json_number(value: Fraction) -> Union[int, float]:
    if value.denominator == 1:
        return value.numerator
    return float(fraction_to_decimal(value))


@dataclass(frozen=True, slots=True)
class Denomination:
    """A named unit of currency.

    ``value`` is either a display-level rational (as configured by the
    authority) or an integer number of base units once scaled by
    ``CurrencySystem.scaled_denominations``.
    """

    name: str
    value: Fraction
    weight: Fraction = Fraction(0)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Denomination":
        """Build a denomination from a settings payload entry."""

        try:
            name = str(data["name"]).strip()
            value = to_fraction(data["value"])
            weight = to_fraction(data.get("weight", 0) or 0)
        except (KeyError, ValueError, TypeError) as error:
            raise InvalidDenominations(f"Malformed denomination entry: {data!r}") from error
        return cls(name=name, value=value, weight=weight)

    @property
    def int_value(self) -> int:
        """Integer value, only meaningful for scaled denominations."""

        if self.value.denominator != 1:
            raise InvalidDenominations(
                f"Denomination {self.name} is not expressed in whole base units: {self.value}"
            )
        return self.value.numerator

    def as_dict(self) -> Dict[str, Any]:
        """Export the denomination as a JSON-compatible mapping."""

        return {
            "name": self.name,
            "value": _to_json_number(self.value),
            "weight": _to_json_number(self.weight),
        }


DEFAULT_DENOMINATIONS: List[Denomination] = [
    Denomination("Gold Coin", Fraction(80), Fraction("0.004")),
    Denomination("Silver Coin", Fraction(4), Fraction("0.004")),
    Denomination("Copper Farthing", Fraction(1), Fraction("0.008")),
    Denomination("Dime", Fraction("0.1"), Fraction("0.008")),
]


def validate_denominations(
    entries: Iterable[Union[Denomination, Mapping[str, Any]]],
) -> List[Denomination]:
    """Return the table sorted by descending value after consistency checks."""

    denominations = [
        entry if isinstance(entry, Denomination) else Denomination.from_mapping(entry)
        for entry in entries
    ]
    if not denominations:
        raise InvalidDenominations("At least one denomination is required.")

    names = set()
    values = set()
    for denomination in denominations:
        if not denomination.name:
            raise InvalidDenominations("Denomination names must not be empty.")
        if denomination.value <= 0:
            raise InvalidDenominations(
                f"Denomination {denomination.name} must have a positive value."
            )
        if denomination.weight < 0:
            raise InvalidDenominations(
                f"Denomination {denomination.name} must not have a negative weight."
            )
        if denomination.name in names:
            raise InvalidDenominations(f"Duplicate denomination name: {denomination.name}")
        if denomination.value in values:
            raise InvalidDenominations(
                f"Duplicate denomination value: {_to_json_number(denomination.value)}"
            )
        names.add(denomination.name)
        values.add(denomination.value)

    return sorted(denominations, key=lambda denomination: denomination.value, reverse=True)


def base_unit_multiplier(denominations: Iterable[Denomination]) -> Fraction:
    """Return the factor that makes the smallest denomination worth one unit.

    Every other denomination has to be a whole multiple of the smallest one,
    otherwise some amounts could not be paid out in coins.
    """

    table = list(denominations)
    if not table:
        return Fraction(1)
    smallest = min(denomination.value for denomination in table)
    for denomination in table:
        if denomination.value % smallest != 0:
            raise InvalidDenominations(
                f"Denomination {denomination.name} ({_to_json_number(denomination.value)}) is not"
                f" a whole multiple of the smallest denomination ({_to_json_number(smallest)})."
            )
    return 1 / smallest


class CurrencySystem:
    """Validated denomination table with base-unit conversions."""

    def __init__(
        self, denominations: Iterable[Union[Denomination, Mapping[str, Any]]] = DEFAULT_DENOMINATIONS
    ) -> None:
        self.denominations = validate_denominations(denominations)
        self.multiplier = base_unit_multiplier(self.denominations)
        LOGGER.debug(
            "Currency system initialised with %s denominations (multiplier=%s)",
            len(self.denominations),
            self.multiplier,
        )

    def scaled_denominations(self) -> List[Denomination]:
        """Return the table with values expressed in integer base units."""

        return [
            Denomination(
                name=denomination.name,
                value=denomination.value * self.multiplier,
                weight=denomination.weight,
            )
            for denomination in self.denominations
        ]

    def to_base_units(self, amount: Number, rounding: str = ROUND_NEAREST) -> int:
        """Convert a display amount to base units using the requested rounding."""

        scaled = to_fraction(amount) * self.multiplier
        if rounding == ROUND_UP:
            return math.ceil(scaled)
        if rounding == ROUND_DOWN:
            return math.floor(scaled)
        if rounding == ROUND_NEAREST:
            return math.floor(scaled + Fraction(1, 2))
        raise ValueError(f"Unknown rounding mode: {rounding}")

    def from_base_units(self, units: int) -> Decimal:
        """Convert integer base units back to an exact display amount."""

        return fraction_to_decimal(Fraction(units) / self.multiplier)

    def smallest_unit(self) -> Decimal:
        """Display value of one base unit (the smallest coin)."""

        return self.from_base_units(1)

    def as_payload(self) -> List[Dict[str, Any]]:
        """Export the table in the settings store format."""

        return [denomination.as_dict() for denomination in self.denominations]
