import csv
import json
from decimal import Decimal

import click
import pytest
from click.testing import CliRunner

from loan_schedule.data_models import EarlyPayment, RateChange, RecurringPayment
from loan_schedule.main import build_events, cli, parse_amount, parse_early_payment_strings

LOAN_ARGS = ["-p", "536714.20", "-r", "4.2", "-e", "57", "-t", "288", "-s", "2024-10-19"]


@pytest.fixture
def runner():
    return CliRunner()


class TestParsing:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("536714.20", Decimal("536714.20")),
            ("536,714.20", Decimal("536714.20")),
            ("500k", Decimal("500000")),
            ("1.5M", Decimal("1500000")),
        ],
    )
    def test_parse_amount(self, value, expected):
        assert parse_amount(value) == expected

    def test_parse_amount_rejects_garbage(self):
        with pytest.raises(click.BadParameter):
            parse_amount("lots")

    def test_parse_early_payment(self):
        assert parse_early_payment_strings(("60:10k:installment",)) == [
            EarlyPayment(period=60, amount=Decimal("10000"), shorten_term=False)
        ]

    @pytest.mark.parametrize("value", ["60:1000", "60:1000:faster", "x:1000:term"])
    def test_parse_early_payment_rejects_bad_format(self, value):
        with pytest.raises(click.BadParameter):
            parse_early_payment_strings((value,))

    def test_build_events_order_and_strategy_override(self):
        events = build_events(("2:3.9",), ("58:1000:term",), "10000:3:60:term", shorten_term=False)
        assert events == [
            RateChange(from_period=2, rate=Decimal("3.9")),
            EarlyPayment(period=58, amount=Decimal("1000"), shorten_term=False),
            RecurringPayment(budget=Decimal("10000"), every=3, first_period=60, shorten_term=False),
        ]


class TestScheduleCommand:
    def test_prints_summary_and_table(self, runner):
        result = runner.invoke(cli, ["schedule", *LOAN_ARGS])
        assert result.exit_code == 0, result.output
        assert "Flat installment   : 2323.44" in result.output
        assert "Schedule has 231 rows; showing first 120 rows." in result.output
        assert "58\t536714.20" in result.output
        assert "\tNone" in result.output

    def test_json_export(self, runner, tmp_path):
        path = tmp_path / "schedule.json"
        result = runner.invoke(
            cli,
            [
                "schedule",
                *LOAN_ARGS,
                "--rate-change",
                "2:3.9",
                "--rate-change",
                "3:3.55",
                "--early-payment",
                "60:532067.32:term",
                "--output",
                str(path),
            ],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(path.read_text(encoding="utf-8"))
        rows = data["schedule"]
        assert [row["period"] for row in rows] == [58, 59, 60]
        assert [row["interest_rate"] for row in rows] == ["4.2", "3.9", "3.55"]
        assert rows[0]["remaining_principal"] == "536714.20"
        assert rows[2]["early_payment"] == "532067.32"
        assert data["summary"]["periods_saved"] == 228

    def test_csv_export(self, runner, tmp_path):
        path = tmp_path / "schedule.csv"
        result = runner.invoke(cli, ["schedule", *LOAN_ARGS, "--output", str(path)])
        assert result.exit_code == 0, result.output
        with path.open(newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0][0] == "Period"
        assert len(rows) == 232
        assert rows[1][:3] == ["58", "2024-10-19", "536714.20"]
        assert rows[1][-1] == ""

    def test_unsupported_output(self, runner, tmp_path):
        result = runner.invoke(cli, ["schedule", *LOAN_ARGS, "--output", str(tmp_path / "out.txt")])
        assert result.exit_code == 2

    def test_bad_early_payment(self, runner):
        result = runner.invoke(cli, ["schedule", *LOAN_ARGS, "--early-payment", "58:1000"])
        assert result.exit_code == 2
        assert "PERIOD:AMOUNT:TYPE" in result.output

    @pytest.mark.parametrize(
        "extra_args,message",
        [
            (["--early-payment", "60:0:term"], "Early payment must be positive"),
            (["--rate-change", "0:3.9"], "Rate change period must be 1 or greater"),
            (["-s", "2024-01-31"], "Cannot advance payment date"),
        ],
    )
    def test_engine_errors_are_usage_errors(self, runner, extra_args, message):
        result = runner.invoke(cli, ["schedule", *LOAN_ARGS, *extra_args])
        assert result.exit_code == 2
        assert message in result.output

    def test_zero_length_term(self, runner):
        result = runner.invoke(cli, ["schedule", "-p", "1000", "-r", "4", "-e", "12", "-t", "12", "-s", "2024-01-01"])
        assert result.exit_code == 2
        assert "must exceed elapsed" in result.output


class TestSummaryCommand:
    def test_summary(self, runner):
        result = runner.invoke(cli, ["summary", *LOAN_ARGS, "--early-payment", "58:100000:term"])
        assert result.exit_code == 0, result.output
        assert "Early payments     : 100000.00" in result.output
        assert "Term reduction     : 43 months" in result.output

    def test_summary_json(self, runner, tmp_path):
        path = tmp_path / "summary.json"
        result = runner.invoke(cli, ["summary", *LOAN_ARGS, "--output", str(path)])
        assert result.exit_code == 0, result.output
        summary = json.loads(path.read_text(encoding="utf-8"))["summary"]
        assert summary["flat_installment"] == "2323.44"
        assert summary["payments_made"] == 231


class TestCompareCommand:
    def test_compare_strategies(self, runner):
        result = runner.invoke(
            cli,
            ["compare", *LOAN_ARGS, "--rate-change", "2:3.9", "--recurring-payment", "10000:3:60:term"],
        )
        assert result.exit_code == 0, result.output
        assert "Comparison" in result.output
        assert "Shorten term" in result.output
        assert "Reduce installment" in result.output

    def test_compare_rejects_bad_rate_change(self, runner):
        result = runner.invoke(cli, ["compare", *LOAN_ARGS, "--rate-change", "0:3.9"])
        assert result.exit_code == 2
        assert "Rate change period must be 1 or greater" in result.output
