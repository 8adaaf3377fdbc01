"""Online per-session rollup of QA record measurements.

Costs are accumulated as integer minor units (1e-8). Accuracies are summed
exactly as fractions and the mean is rounded once, when it is rendered.
Text is produced only when a rollup is written back to
``session_statistics``.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import Any, Protocol

COST_SCALE = 8
COST_MAX_DIGITS = 30
ACCURACY_MAX_INTEGER_DIGITS = 15
ACCURACY_MAX_PLACES = 12
ACCURACY_DISPLAY_PLACES = 2


class MeasuredRecord(Protocol):
    """Anything carrying the two measurements the rollup reads."""

    accuracy: str
    cost: Any


def _round_half_up(value: Fraction) -> int:
    units = math.floor(abs(value) + Fraction(1, 2))
    return -units if value < 0 else units


def _to_units(value: Decimal, scale: int) -> int:
    return _round_half_up(Fraction(value) * 10**scale)


def _format_units(units: int, scale: int, min_places: int = 0) -> str:
    """Render integer minor units as plain decimal text, trailing zeros trimmed."""
    whole, frac = divmod(abs(units), 10**scale)
    places = f"{frac:0{scale}d}".rstrip("0") if scale else ""
    places = places.ljust(min_places, "0")
    sign = "-" if units < 0 else ""
    return f"{sign}{whole}.{places}" if places else f"{sign}{whole}"


def parse_cost(value: Any) -> int:
    """Parse a cost (number or decimal text) into 1e-8 minor units."""
    if value is None or value == "":
        return 0
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"cost is not a decimal value: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"cost is not a finite value: {value!r}")
    if amount.adjusted() > COST_MAX_DIGITS:
        raise ValueError(f"cost is out of range: {value!r}")
    return _to_units(amount, COST_SCALE)


def format_cost(units: int) -> str:
    """Format cost minor units, e.g. 375000000 -> "3.75", 12 -> "0.00000012"."""
    return _format_units(units, COST_SCALE, min_places=2)


def _accuracy_number(value: str | None) -> Decimal | None:
    if value is None:
        return None
    text = value.strip()
    if text.endswith("%"):
        text = text[:-1].strip()
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def _accuracy_in_range(amount: Decimal) -> bool:
    if amount.is_zero():
        return True
    if not -ACCURACY_MAX_PLACES <= amount.adjusted() < ACCURACY_MAX_INTEGER_DIGITS:
        return False
    return (10**ACCURACY_MAX_PLACES) % Fraction(amount).denominator == 0


def parse_accuracy(value: str | None) -> Fraction | None:
    """Return the exact accuracy value, or None when the label is not a measurement.

    Accepts plain numbers and percentages ("85", "85.5%", " 0.9 "). Numbers
    with more than 15 integer digits or 12 decimal places are not averaged.
    """
    amount = _accuracy_number(value)
    if amount is None or not _accuracy_in_range(amount):
        return None
    return Fraction(amount)


def check_accuracy(value: str) -> str:
    """Reject numeric labels the rollup cannot average exactly."""
    amount = _accuracy_number(value)
    if amount is not None and not _accuracy_in_range(amount):
        raise ValueError(
            f"numeric accuracy must have at most {ACCURACY_MAX_INTEGER_DIGITS} "
            f"integer digits and {ACCURACY_MAX_PLACES} decimal places"
        )
    return value


def format_accuracy(mean: Fraction) -> str:
    """Round an exact mean accuracy half-up to two decimal places."""
    units = _round_half_up(mean * 10**ACCURACY_DISPLAY_PLACES)
    return _format_units(
        units, ACCURACY_DISPLAY_PLACES, min_places=ACCURACY_DISPLAY_PLACES
    )


@dataclass
class Rollup:
    """Incrementally maintained aggregate for one session."""

    total_questions: int = 0
    cost_units: int = 0
    accuracy_count: int = 0
    accuracy_total: Fraction = field(default_factory=Fraction)

    def apply(self, accuracy: str | None, cost: Any) -> None:
        """Fold one record into the rollup in O(1)."""
        self.total_questions += 1
        self.cost_units += parse_cost(cost)

        value = parse_accuracy(accuracy)
        if value is not None:
            self.accuracy_count += 1
            self.accuracy_total += value

    def apply_record(self, record: MeasuredRecord) -> None:
        self.apply(record.accuracy, record.cost)

    @property
    def total_cost(self) -> str:
        return format_cost(self.cost_units)

    @property
    def accuracy_mean(self) -> Fraction | None:
        if self.accuracy_count == 0:
            return None
        return self.accuracy_total / self.accuracy_count

    @property
    def avg_accuracy(self) -> str:
        mean = self.accuracy_mean
        return "" if mean is None else format_accuracy(mean)

    @property
    def accuracy_sum(self) -> str:
        # Averaged values have at most ACCURACY_MAX_PLACES decimals; so does the sum.
        units = self.accuracy_total * 10**ACCURACY_MAX_PLACES
        return _format_units(int(units), ACCURACY_MAX_PLACES)

    def as_row(self) -> dict[str, Any]:
        """Column values for the session_statistics row."""
        return {
            "total_questions": self.total_questions,
            "avg_accuracy": self.avg_accuracy,
            "total_cost": self.total_cost,
            "accuracy_count": self.accuracy_count,
            "accuracy_sum": self.accuracy_sum,
        }

    @classmethod
    def from_row(cls, row: Any) -> "Rollup":
        """Restore accumulator state from a stored session_statistics row."""
        count = int(row.accuracy_count or 0)
        total = Fraction(0)
        if count:
            total = Fraction(Decimal(row.accuracy_sum or "0"))
        return cls(
            total_questions=int(row.total_questions or 0),
            cost_units=parse_cost(row.total_cost or "0"),
            accuracy_count=count,
            accuracy_total=total,
        )

    @classmethod
    def replay(cls, records: Iterable[MeasuredRecord]) -> "Rollup":
        """Rebuild a rollup from scratch; this defines the correct value."""
        rollup = cls()
        for record in records:
            rollup.apply_record(record)
        return rollup
