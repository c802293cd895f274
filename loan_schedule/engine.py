"""Core calculation engine for the loan schedule.

This module implements the financial logic for equal-principal loans: it
builds the amortization schedule for a :class:`~loan_schedule.data_models.Loan`
and mutates an existing schedule in place when the interest rate changes or an
early principal payment is made. Every monetary figure is rounded to two
decimal places at the point it is computed, so later values inherit the
rounding rather than full precision.

Invalid mutation requests (an early payment outside the schedule or larger
than the outstanding balance, a rate change starting past the last period)
leave the schedule unchanged. The functions report this through their return
value instead of raising.
"""

from __future__ import annotations

import logging
from decimal import Decimal, getcontext
from typing import Dict, Iterable, List

from .data_models import (
    EarlyPayment,
    Event,
    Loan,
    PaymentRecord,
    RateChange,
    RecurringPayment,
    monthly_rate,
)
from .utils import add_months, installment_multiple, next_month, round2, to_decimal

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def generate_schedule(loan: Loan) -> List[PaymentRecord]:
    """Build the full schedule for ``loan``.

    The schedule has one record per remaining period, starting at
    ``loan.start_date`` and numbered from ``loan.elapsed_periods + 1``. Each
    period pays the loan's flat installment, capped at the outstanding
    balance. The last period pays whatever balance is left, so the schedule
    always ends at exactly zero even when the installment was rounded down.

    Raises
    ------
    ValueError
        If a payment date cannot be advanced without clamping the day of the
        month (e.g. a schedule starting on the 31st).
    """
    schedule: List[PaymentRecord] = []
    count = loan.remaining_periods
    remaining_principal = loan.principal
    rate_per_month = loan.monthly_rate
    current_date = loan.start_date

    for local_period in range(1, count + 1):
        interest = round2(remaining_principal * rate_per_month)
        if local_period == count:
            principal_payment = remaining_principal
        else:
            principal_payment = min(remaining_principal, loan.flat_installment)

        schedule.append(
            PaymentRecord(
                period=loan.elapsed_periods + local_period,
                interest=interest,
                principal_payment=principal_payment,
                remaining_principal=remaining_principal,
                total_payment=round2(principal_payment + interest),
                interest_rate=loan.annual_rate,
                payment_date=current_date,
                early_payment=None,
            )
        )
        remaining_principal -= principal_payment

        if local_period < count:
            current_date = next_month(current_date)

    logger.debug(
        "Generated %d periods for principal %s at %s%% (installment %s)",
        len(schedule),
        loan.principal,
        loan.annual_rate,
        loan.flat_installment,
    )
    return schedule


def adjust_rate(
    loan: Loan,
    new_rate: Decimal,
    from_period: int,
    schedule: List[PaymentRecord],
) -> int:
    """Reprice the schedule from the 1-based position ``from_period`` onwards.

    Interest and total payment are recomputed at ``new_rate`` for every
    record from ``from_period`` to the end; principal payments and balances
    keep the values of the previous plan. Records before ``from_period`` are
    left untouched. The loan's ``annual_rate`` is updated to ``new_rate``.

    Returns the number of records repriced, which is zero when
    ``from_period`` lies past the end of the schedule.
    """
    new_rate = to_decimal(new_rate)
    if new_rate < 0:
        raise ValueError("Annual rate cannot be negative")
    if from_period < 1:
        raise ValueError(f"Rate change period must be 1 or greater; got {from_period}")

    loan.annual_rate = new_rate
    rate_per_month = monthly_rate(new_rate)

    repriced = 0
    for record in schedule[from_period - 1:]:
        record.interest_rate = new_rate
        record.interest = round2(record.remaining_principal * rate_per_month)
        record.total_payment = round2(record.principal_payment + record.interest)
        repriced += 1

    if repriced:
        logger.info("Rate changed to %s%% for %d periods from position %d", new_rate, repriced, from_period)
    else:
        logger.warning(
            "Ignoring rate change to %s%%: position %d is past the end of a %d-period schedule",
            new_rate,
            from_period,
            len(schedule),
        )
    return repriced


def make_early_payment(
    loan: Loan,
    extra_payment: Decimal,
    period: int,
    shorten_term: bool,
    schedule: List[PaymentRecord],
) -> bool:
    """Apply an extra principal payment at the absolute ``period``.

    With ``shorten_term`` the flat installment is kept and the schedule is
    truncated as soon as the balance reaches zero. Otherwise the remaining
    balance is spread over the periods left until the contractual end and the
    loan's ``flat_installment`` is lowered accordingly.

    Returns ``True`` when the payment was applied. A period outside the
    schedule or a payment larger than the balance at that period leaves the
    schedule and the loan unchanged and returns ``False``.
    """
    extra_payment = to_decimal(extra_payment)
    if extra_payment <= 0:
        raise ValueError(f"Early payment must be positive; got {extra_payment}")

    idx = period - loan.elapsed_periods - 1
    if idx < 0 or idx >= len(schedule):
        logger.warning("Ignoring early payment of %s: period %d is outside the schedule", extra_payment, period)
        return False

    target = schedule[idx]
    remaining_principal = round2(target.remaining_principal - extra_payment)
    if remaining_principal < 0:
        logger.warning(
            "Ignoring early payment of %s at period %d: only %s is outstanding",
            extra_payment,
            period,
            target.remaining_principal,
        )
        return False

    if target.early_payment is None:
        target.early_payment = extra_payment
    else:
        target.early_payment += extra_payment

    if shorten_term:
        _shorten_term(schedule, idx, remaining_principal)
    else:
        _reduce_installment(loan, schedule, idx, remaining_principal)

    logger.info(
        "Early payment of %s at period %d (%s); %d periods left, installment %s",
        extra_payment,
        period,
        "shorten term" if shorten_term else "reduce installment",
        len(schedule),
        loan.flat_installment,
    )
    return True


def _reprice(record: PaymentRecord, balance: Decimal, principal_payment: Decimal) -> None:
    record.remaining_principal = balance
    record.principal_payment = principal_payment
    record.interest = round2(balance * monthly_rate(record.interest_rate))
    record.total_payment = round2(principal_payment + record.interest)


def _shorten_term(schedule: List[PaymentRecord], idx: int, balance: Decimal) -> None:
    last = len(schedule) - 1
    for position in range(idx, len(schedule)):
        record = schedule[position]
        if position == last:
            principal_payment = balance
        else:
            principal_payment = min(balance, record.principal_payment)
        _reprice(record, balance, principal_payment)
        balance -= principal_payment
        if balance == 0:
            del schedule[position + 1:]
            break


def _reduce_installment(loan: Loan, schedule: List[PaymentRecord], idx: int, balance: Decimal) -> None:
    remaining_period_count = loan.total_periods - schedule[idx].period + 1
    loan.flat_installment = round2(balance / Decimal(remaining_period_count))

    last = len(schedule) - 1
    for position in range(idx, len(schedule)):
        if position == last:
            principal_payment = balance
        else:
            principal_payment = min(balance, loan.flat_installment)
        _reprice(schedule[position], balance, principal_payment)
        balance -= principal_payment


def total_interest_paid(schedule: Iterable[PaymentRecord]) -> Decimal:
    """Return the sum of interest charged over the schedule."""
    return sum((record.interest for record in schedule), ZERO)


def apply_recurring_payment(
    loan: Loan,
    schedule: List[PaymentRecord],
    payment: RecurringPayment,
) -> int:
    """Make an early payment every ``payment.every`` periods.

    Starting at ``payment.first_period``, each application pays the largest
    multiple of the loan's current flat installment that fits into the
    budget. The loop stops once the period passes the last record of the
    (possibly truncated) schedule. Returns the number of payments applied.
    """
    if payment.every < 1:
        raise ValueError(f"Recurring payment interval must be at least 1; got {payment.every}")

    applied = 0
    period = payment.first_period
    while schedule and period <= schedule[-1].period:
        amount = installment_multiple(loan.flat_installment, to_decimal(payment.budget))
        if amount > 0 and make_early_payment(loan, amount, period, payment.shorten_term, schedule):
            applied += 1
        period += payment.every
    return applied


def apply_events(loan: Loan, schedule: List[PaymentRecord], events: Iterable[Event]) -> int:
    """Apply rate changes and early payments in the given order.

    Returns the number of events that changed the schedule.
    """
    changed = 0
    for event in events:
        if isinstance(event, RateChange):
            changed += bool(adjust_rate(loan, event.rate, event.from_period, schedule))
        elif isinstance(event, EarlyPayment):
            changed += make_early_payment(loan, event.amount, event.period, event.shorten_term, schedule)
        elif isinstance(event, RecurringPayment):
            changed += bool(apply_recurring_payment(loan, schedule, event))
        else:
            raise TypeError(f"Unsupported schedule event: {event!r}")
    return changed


def summarize_schedule(loan: Loan, schedule: List[PaymentRecord]) -> Dict[str, object]:
    """Compute aggregate metrics for a schedule.

    Returns
    -------
    summary: Dict[str, object]
        Total interest, principal and early payments, total cost, number of
        payments, the first and last periods, the original and actual end
        dates and the number of periods saved against the contractual term.
    """
    total_interest = total_interest_paid(schedule)
    total_principal = sum((record.principal_payment for record in schedule), ZERO)
    total_early_payment = sum((record.early_payment or ZERO for record in schedule), ZERO)
    original_end_date = add_months(loan.start_date, loan.remaining_periods - 1)
    last_period = schedule[-1].period if schedule else loan.elapsed_periods

    return {
        "principal": loan.principal,
        "annual_rate": loan.annual_rate,
        "flat_installment": loan.flat_installment,
        "total_interest": total_interest,
        "total_principal": total_principal,
        "total_early_payment": total_early_payment,
        "total_cost": total_principal + total_early_payment + total_interest,
        "payments_made": sum(1 for record in schedule if record.total_payment > 0),
        "first_period": schedule[0].period if schedule else None,
        "last_period": last_period,
        "original_end_date": original_end_date.isoformat(),
        "new_end_date": (schedule[-1].payment_date if schedule else original_end_date).isoformat(),
        "periods_saved": loan.total_periods - last_period,
    }
