from datetime import date
from decimal import Decimal

import pytest

from loan_schedule.data_models import Loan
from loan_schedule.engine import generate_schedule


def _make_loan(**overrides) -> Loan:
    params = dict(
        principal=Decimal("536714.20"),
        annual_rate=Decimal("4.2"),
        elapsed_periods=57,
        total_periods=288,
        start_date=date(2024, 10, 19),
    )
    params.update(overrides)
    return Loan(**params)


@pytest.fixture
def make_loan():
    """Factory for the reference mortgage, with any field overridden."""
    return _make_loan


@pytest.fixture
def loan() -> Loan:
    return _make_loan()


@pytest.fixture
def schedule(loan):
    return generate_schedule(loan)


@pytest.fixture
def small_loan() -> Loan:
    """1200.00 over 12 months at 12 %: 100.00 principal and 1 % interest a month."""
    return Loan(
        principal=Decimal("1200.00"),
        annual_rate=Decimal("12"),
        elapsed_periods=0,
        total_periods=12,
        start_date=date(2024, 1, 15),
    )
