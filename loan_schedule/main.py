"""Command-line interface for the loan schedule engine.

This module uses the ``click`` library to implement a multi-command
interface. Users can generate an equal-principal schedule, apply rate changes
and early payments to it, view a summary or compare the "shorten term" and
"reduce installment" strategies for the same set of early payments. Results
can be printed to the terminal or exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import click

from .data_models import EarlyPayment, Event, Loan, PaymentRecord, RateChange, RecurringPayment
from .engine import apply_events, generate_schedule, summarize_schedule
from .formatter import print_comparison, print_schedule, print_summary
from .utils import decimal_from_str, parse_date

logger = logging.getLogger(__name__)

STRATEGIES = {"term": True, "installment": False}


def parse_amount(value: str) -> Decimal:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("500000", "536,714.20") and shorthand with
    ``k``/``m`` suffixes (e.g., "500k" meaning 500 000). Returns a Decimal.
    """
    value = value.strip().lower()
    value = value.replace(",", "")
    factor = Decimal(1)
    if value.endswith("k"):
        factor = Decimal(1_000)
        value = value[:-1]
    elif value.endswith("m"):
        factor = Decimal(1_000_000)
        value = value[:-1]
    try:
        return decimal_from_str(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def parse_strategy(value: str) -> bool:
    """Return ``True`` for "term" (shorten term) and ``False`` for "installment"."""
    typ = value.strip().lower()
    if typ not in STRATEGIES:
        raise click.BadParameter(f"Early payment type must be 'term' or 'installment'; got {typ}")
    return STRATEGIES[typ]


def parse_period(value: str, what: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise click.BadParameter(f"Invalid {what}: {value}")


def parse_rate_change_strings(values: Tuple[str, ...]) -> List[RateChange]:
    changes: List[RateChange] = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 2:
            raise click.BadParameter(f"Rate change must be in FROM_PERIOD:RATE format; got {item}")
        period_str, rate_str = parts
        try:
            rate = decimal_from_str(rate_str.rstrip("%"))
        except ValueError as exc:
            raise click.BadParameter(str(exc))
        changes.append(RateChange(from_period=parse_period(period_str, "rate change period"), rate=rate))
    return changes


def parse_early_payment_strings(values: Tuple[str, ...]) -> List[EarlyPayment]:
    payments: List[EarlyPayment] = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 3:
            raise click.BadParameter(f"Early payment must be in PERIOD:AMOUNT:TYPE format; got {item}")
        period_str, amt_str, typ = parts
        payments.append(
            EarlyPayment(
                period=parse_period(period_str, "early payment period"),
                amount=parse_amount(amt_str),
                shorten_term=parse_strategy(typ),
            )
        )
    return payments


def parse_recurring_payment_string(value: str) -> RecurringPayment:
    parts = value.split(":")
    if len(parts) != 4:
        raise click.BadParameter(
            f"Recurring payment must be in BUDGET:EVERY:FIRST_PERIOD:TYPE format; got {value}"
        )
    budget_str, every_str, first_str, typ = parts
    every = parse_period(every_str, "recurring payment interval")
    if every < 1:
        raise click.BadParameter("Recurring payment interval must be at least 1")
    return RecurringPayment(
        budget=parse_amount(budget_str),
        every=every,
        first_period=parse_period(first_str, "recurring payment period"),
        shorten_term=parse_strategy(typ),
    )


def build_loan_from_options(principal: str, rate: str, elapsed: int, term: int, start_date: str) -> Loan:
    try:
        start_dt = parse_date(start_date)
        rate_value = decimal_from_str(rate.rstrip("%"))
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    try:
        return Loan(
            principal=parse_amount(principal),
            annual_rate=rate_value,
            elapsed_periods=elapsed,
            total_periods=term,
            start_date=start_dt,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def build_events(
    rate_change: Tuple[str, ...],
    early_payment: Tuple[str, ...],
    recurring_payment: Optional[str],
    shorten_term: Optional[bool] = None,
) -> List[Event]:
    """Collect the requested adjustments in the order they are applied.

    Rate changes come first, then one-off early payments, then the recurring
    payment. When ``shorten_term`` is given it overrides the strategy of every
    early payment, which is how ``compare`` runs both strategies.
    """
    events: List[Event] = list(parse_rate_change_strings(rate_change))
    payments: List[Any] = parse_early_payment_strings(early_payment)
    if recurring_payment:
        payments.append(parse_recurring_payment_string(recurring_payment))
    if shorten_term is not None:
        for payment in payments:
            payment.shorten_term = shorten_term
    events.extend(payments)
    return events


def run_scenario(loan: Loan, events: List[Event]) -> Tuple[List[PaymentRecord], Dict[str, Any]]:
    try:
        schedule = generate_schedule(loan)
        applied = apply_events(loan, schedule, events)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    logger.debug("Applied %d of %d adjustments", applied, len(events))
    return schedule, summarize_schedule(loan, schedule)


def serialize_record(record: PaymentRecord) -> Dict[str, Any]:
    """Convert a record to a JSON-friendly dict; amounts are kept as strings."""
    return {
        "period": record.period,
        "date": record.payment_date.isoformat(),
        "remaining_principal": str(record.remaining_principal),
        "interest_rate": str(record.interest_rate),
        "interest": str(record.interest),
        "principal_payment": str(record.principal_payment),
        "total_payment": str(record.total_payment),
        "early_payment": None if record.early_payment is None else str(record.early_payment),
    }


def serialize_summary(summary: Dict[str, Any]) -> Dict[str, Any]:
    return {key: str(value) if isinstance(value, Decimal) else value for key, value in summary.items()}


def export_to_json(path: Path, schedule: List[PaymentRecord], summary: Dict[str, Any]) -> None:
    """Export schedule and summary to a JSON file."""
    data = {
        "summary": serialize_summary(summary),
        "schedule": [serialize_record(record) for record in schedule],
    }
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, schedule: List[PaymentRecord]) -> None:
    """Export schedule to a CSV file."""
    header = [
        "Period",
        "Date",
        "Remaining_Principal",
        "Interest_Rate",
        "Interest",
        "Principal",
        "Payment",
        "Early_Payment",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for record in schedule:
            writer.writerow(
                [
                    record.period,
                    record.payment_date.isoformat(),
                    record.remaining_principal,
                    record.interest_rate,
                    record.interest,
                    record.principal_payment,
                    record.total_payment,
                    "" if record.early_payment is None else record.early_payment,
                ]
            )


def loan_options(func: Callable) -> Callable:
    """Attach the loan and adjustment options shared by every command."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Outstanding principal at the start date"),
        click.option("--rate", "-r", "rate", required=True, help="Annual interest rate (percent)"),
        click.option("--elapsed", "-e", "elapsed", type=int, default=0, show_default=True, help="Periods already paid"),
        click.option("--term", "-t", "term", required=True, type=int, help="Total loan term in months"),
        click.option("--start-date", "-s", "start_date", required=True, help="First payment date (YYYY-MM-DD)"),
        click.option("--rate-change", "rate_change", multiple=True, help="Rate change in FROM_PERIOD:RATE format"),
        click.option(
            "--early-payment",
            "early_payment",
            multiple=True,
            help="Early payment in PERIOD:AMOUNT:TYPE format, TYPE being 'term' or 'installment'",
        ),
        click.option(
            "--recurring-payment",
            "recurring_payment",
            help="Repeated early payment in BUDGET:EVERY:FIRST_PERIOD:TYPE format. "
            "Each payment is the largest multiple of the installment that fits the budget.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option(
    "--log-level",
    "log_level",
    envvar="LOAN_SCHEDULE_LOG_LEVEL",
    default="WARNING",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity",
)
def cli(log_level: str) -> None:
    """Equal-principal loan schedules with rate changes and early payments."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


@cli.command()
@loan_options
@click.option("--max-rows", "max_rows", type=int, default=120, show_default=True, help="Rows to print (0 prints all)")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def schedule(
    principal: str,
    rate: str,
    elapsed: int,
    term: int,
    start_date: str,
    rate_change: Tuple[str, ...],
    early_payment: Tuple[str, ...],
    recurring_payment: Optional[str],
    max_rows: int,
    output: Optional[str],
) -> None:
    """Compute and print the full amortization schedule."""
    loan = build_loan_from_options(principal, rate, elapsed, term, start_date)
    events = build_events(rate_change, early_payment, recurring_payment)
    records, summary_data = run_scenario(loan, events)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, records, summary_data)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, records)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
        return

    print_summary(summary_data)
    if max_rows and len(records) > max_rows:
        click.echo(f"Schedule has {len(records)} rows; showing first {max_rows} rows.")
        print_schedule(records[:max_rows])
    else:
        print_schedule(records)


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(
    principal: str,
    rate: str,
    elapsed: int,
    term: int,
    start_date: str,
    rate_change: Tuple[str, ...],
    early_payment: Tuple[str, ...],
    recurring_payment: Optional[str],
    output: Optional[str],
) -> None:
    """Compute and print only the summary metrics for a loan."""
    loan = build_loan_from_options(principal, rate, elapsed, term, start_date)
    events = build_events(rate_change, early_payment, recurring_payment)
    _, summary_data = run_scenario(loan, events)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        with path.open("w", encoding="utf-8") as f:
            json.dump({"summary": serialize_summary(summary_data)}, f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(summary_data)


@cli.command()
@loan_options
def compare(
    principal: str,
    rate: str,
    elapsed: int,
    term: int,
    start_date: str,
    rate_change: Tuple[str, ...],
    early_payment: Tuple[str, ...],
    recurring_payment: Optional[str],
) -> None:
    """Compare the two early payment strategies.

    The same loan and adjustments are run twice: once with every early payment
    shortening the term and once with every early payment reducing the
    installment, for example:

        loan-schedule compare -p 536714.20 -r 4.2 -e 57 -t 288 -s 2024-10-19 \\
            --rate-change 2:3.9 --recurring-payment 10000:3:60:term
    """
    loan = build_loan_from_options(principal, rate, elapsed, term, start_date)
    results = []
    for shorten_term in (True, False):
        events = build_events(rate_change, early_payment, recurring_payment, shorten_term=shorten_term)
        _, summary_data = run_scenario(loan.copy(), events)
        results.append(summary_data)
    print_comparison(results[0], results[1])


if __name__ == "__main__":
    cli()
