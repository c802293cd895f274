"""Output helpers for the loan schedule engine.

This module provides simple functions to render schedules and summaries in a
tabular text format. They rely only on built-in printing and string
formatting.
"""

from __future__ import annotations

from typing import Dict, Iterable

from .data_models import PaymentRecord

NO_EARLY_PAYMENT = "None"


def print_summary(summary: Dict[str, object], title: str = "Summary") -> None:
    """Print a summary of loan metrics in a human-readable format."""
    print(title)
    print("-" * 72)
    print(f"Principal          : {summary['principal']:.2f}")
    print(f"Current rate       : {summary['annual_rate']}%")
    print(f"Flat installment   : {summary['flat_installment']:.2f}")
    print(f"Total interest     : {summary['total_interest']:.2f}")
    if summary.get("total_early_payment"):
        print(f"Early payments     : {summary['total_early_payment']:.2f}")
    print(f"Total cost         : {summary['total_cost']:.2f}")
    print(f"Original end date  : {summary['original_end_date']}")
    print(f"New end date       : {summary['new_end_date']}")
    print(f"Payments made      : {summary['payments_made']}")
    if summary.get("periods_saved"):
        print(f"Term reduction     : {summary['periods_saved']} months")
    print("-" * 72)


def format_record(record: PaymentRecord) -> str:
    """Render one schedule record as a tab separated row."""
    early = NO_EARLY_PAYMENT if record.early_payment is None else f"{record.early_payment:.2f}"
    return "\t".join(
        [
            str(record.period),
            f"{record.remaining_principal:<12.2f}",
            record.payment_date.isoformat(),
            str(record.interest_rate),
            f"{record.interest:<10.2f}",
            f"{record.principal_payment:<10.2f}",
            f"{record.total_payment:<10.2f}",
            early,
        ]
    )


def print_schedule(schedule: Iterable[PaymentRecord]) -> None:
    """Print the amortization schedule as a simple table."""
    headers = [
        "Period",
        "Balance     ",
        "Date      ",
        "Rate",
        "Interest  ",
        "Principal ",
        "Payment   ",
        "Early Payment",
    ]
    print("\t".join(headers))
    print("-" * 96)
    for record in schedule:
        print(format_record(record))


def print_comparison(s1: Dict[str, object], s2: Dict[str, object], labels=("Shorten term", "Reduce installment")) -> None:
    """Print a comparison of two loan summaries side by side.

    The difference column is ``scenario2 - scenario1``; a negative value means
    the second scenario is cheaper or shorter.
    """
    print("Comparison")
    print("=" * 72)
    keys = [
        "total_interest",
        "total_cost",
        "total_early_payment",
        "payments_made",
    ]
    print(f"{'Metric':20s} {labels[0]:>15s} {labels[1]:>18s} {'Difference':>15s}")
    for key in keys:
        v1 = s1.get(key)
        v2 = s2.get(key)
        diff = v2 - v1
        print(f"{key:20s} {v1:15.2f} {v2:18.2f} {diff:15.2f}")
    print(f"{'new_end_date':20s} {s1['new_end_date']:>15s} {s2['new_end_date']:>18s}")
    print("=" * 72)
