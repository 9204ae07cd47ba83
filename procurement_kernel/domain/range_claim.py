"""
Range-disclosure claims.

A claim is a predicate over an aggregate spend figure.  Evaluation is pure;
the caller supplies the aggregate and receives only a boolean.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from procurement_kernel.domain.dtos import first_given, parse_decimal
from procurement_kernel.domain.lifecycle import ClosedEnum
from procurement_kernel.exceptions import ValidationError


class ProofPredicate(ClosedEnum):
    BETWEEN = "between"
    LESS_THAN = "less-than"
    GREATER_THAN = "greater-than"
    EQUALS = "equals"


@dataclass(frozen=True)
class RangeClaim:
    """
    predicate            satisfied when
    -------------------  --------------------
    between(min, max)    min <= actual <= max
    less-than(max)       actual < max
    greater-than(min)    actual > min
    equals(min)          actual == min
    """

    predicate: ProofPredicate
    range_min: Decimal | None = None
    range_max: Decimal | None = None

    def __post_init__(self) -> None:
        needs_min = self.predicate in (
            ProofPredicate.BETWEEN, ProofPredicate.GREATER_THAN, ProofPredicate.EQUALS,
        )
        needs_max = self.predicate in (ProofPredicate.BETWEEN, ProofPredicate.LESS_THAN)
        if needs_min and self.range_min is None:
            raise ValidationError(
                f"{self.predicate.value} claim requires range_min", field="range_min"
            )
        if needs_max and self.range_max is None:
            raise ValidationError(
                f"{self.predicate.value} claim requires range_max", field="range_max"
            )
        if (
            self.predicate is ProofPredicate.BETWEEN
            and self.range_min > self.range_max
        ):
            raise ValidationError("range_min exceeds range_max", field="range_min")

    def is_satisfied_by(self, actual: Decimal) -> bool:
        if self.predicate is ProofPredicate.BETWEEN:
            return self.range_min <= actual <= self.range_max
        if self.predicate is ProofPredicate.LESS_THAN:
            return actual < self.range_max
        if self.predicate is ProofPredicate.GREATER_THAN:
            return actual > self.range_min
        return actual == self.range_min

    def describe(self) -> dict[str, Any]:
        return {
            "proof_type": self.predicate.value,
            "range_min": self.range_min,
            "range_max": self.range_max,
        }

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> RangeClaim:
        """Parse ``{"type": ..., "min": ..., "max": ...}``."""
        raw_min = first_given(raw, "min", "range_min")
        raw_max = first_given(raw, "max", "range_max")
        return cls(
            predicate=ProofPredicate.parse(first_given(raw, "type", "proof_type"), "proof_type"),
            range_min=None if raw_min is None else parse_decimal(raw_min, "range_min"),
            range_max=None if raw_max is None else parse_decimal(raw_max, "range_max"),
        )
