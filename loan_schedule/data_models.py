"""Data models for the loan schedule engine.

This module defines dataclasses representing the entities used by the engine:
the loan itself, the per-period payment records that make up a schedule and
the adjustment requests (rate changes and early payments) that can be applied
to a generated schedule. Using dataclasses makes it easy to construct,
inspect and serialize these structures.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation, getcontext
from typing import Optional, Union

from .utils import round2, to_decimal

getcontext().prec = 28  # increase precision for financial calculations


@dataclass
class Loan:
    """An equal-principal installment loan.

    Attributes
    ----------
    principal: Decimal
        The amount owed at the start of the generated schedule.
    annual_rate: Decimal
        Nominal annual interest rate in percent (``Decimal("4.2")`` is 4.2 %).
        Updated by rate adjustments so later generations use the new rate.
    elapsed_periods: int
        Number of periods already paid before the schedule starts.
    total_periods: int
        Total contractual term in periods.
    start_date: date
        Calendar date of the first generated period.
    flat_installment: Decimal
        Principal portion paid every period under the active plan. Derived
        from the other fields on construction and recomputed whenever a
        "reduce installment" early payment is made.
    """

    principal: Decimal
    annual_rate: Decimal
    elapsed_periods: int
    total_periods: int
    start_date: date
    flat_installment: Decimal = field(init=False)

    def __post_init__(self) -> None:
        self.principal = to_decimal(self.principal)
        self.annual_rate = to_decimal(self.annual_rate)
        if self.principal <= 0:
            raise ValueError("Principal must be positive")
        if self.annual_rate < 0:
            raise ValueError("Annual rate cannot be negative")
        if self.elapsed_periods < 0:
            raise ValueError("Elapsed periods cannot be negative")
        if self.total_periods <= self.elapsed_periods:
            raise ValueError(
                f"Total periods ({self.total_periods}) must exceed elapsed periods "
                f"({self.elapsed_periods})"
            )
        try:
            round2(self.principal)
            self.flat_installment = round2(self.principal / Decimal(self.remaining_periods))
        except InvalidOperation as exc:
            raise ValueError(f"Principal is too large: {self.principal}") from exc

    @property
    def remaining_periods(self) -> int:
        """Number of periods covered by a freshly generated schedule."""
        return self.total_periods - self.elapsed_periods

    @property
    def monthly_rate(self) -> Decimal:
        return monthly_rate(self.annual_rate)

    def copy(self) -> "Loan":
        """Return an independent snapshot, keeping the current installment."""
        return copy.copy(self)


@dataclass
class PaymentRecord:
    """One period of the amortization schedule.

    ``remaining_principal`` is the balance at the start of the period, i.e.
    before ``principal_payment`` (and any ``early_payment``) is applied.
    """

    period: int
    interest: Decimal
    principal_payment: Decimal
    remaining_principal: Decimal
    total_payment: Decimal
    interest_rate: Decimal
    payment_date: date
    early_payment: Optional[Decimal] = None


@dataclass
class RateChange:
    """A new annual rate applied from the 1-based schedule position ``from_period``."""

    from_period: int
    rate: Decimal


@dataclass
class EarlyPayment:
    """An extra principal payment made at the absolute ``period``."""

    period: int
    amount: Decimal
    shorten_term: bool


@dataclass
class RecurringPayment:
    """An early payment repeated every ``every`` periods.

    Each time it is applied the amount is the largest multiple of the loan's
    current flat installment that fits into ``budget``.
    """

    budget: Decimal
    every: int
    first_period: int
    shorten_term: bool


Event = Union[RateChange, EarlyPayment, RecurringPayment]


def monthly_rate(annual_rate: Decimal) -> Decimal:
    """Convert an annual percentage rate into a flat monthly fraction."""
    return annual_rate / Decimal(12) / Decimal(100)
