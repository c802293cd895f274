import logging
import os

from flask import Flask, jsonify, request

from loan_schedule.data_models import EarlyPayment, Loan, RateChange, RecurringPayment
from loan_schedule.engine import apply_events, generate_schedule, summarize_schedule
from loan_schedule.main import serialize_record, serialize_summary
from loan_schedule.utils import parse_date, to_decimal

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["MAX_ROWS"] = int(os.environ.get("LOAN_SCHEDULE_MAX_ROWS", "1000"))
app.config["LOG_LEVEL"] = os.environ.get("LOAN_SCHEDULE_LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=app.config["LOG_LEVEL"])


def _required(payload: dict, name: str):
    value = payload.get(name)
    if value is None or value == "":
        raise ValueError(f"Missing required field: {name}")
    return value


def _strategy(value) -> bool:
    if isinstance(value, bool):
        return value
    typ = str(value).lower()
    if typ not in ("term", "installment"):
        raise ValueError(f"Early payment type must be 'term' or 'installment'; got {value}")
    return typ == "term"


def _payload_to_loan(payload: dict) -> Loan:
    return Loan(
        principal=to_decimal(_required(payload, "principal")),
        annual_rate=to_decimal(_required(payload, "rate")),
        elapsed_periods=int(payload.get("elapsed", 0)),
        total_periods=int(_required(payload, "term")),
        start_date=parse_date(str(_required(payload, "start_date"))),
    )


def _payload_to_events(payload: dict) -> list:
    """Build rate changes, then early payments, then the recurring payment."""
    events = [
        RateChange(from_period=int(item["from_period"]), rate=to_decimal(item["rate"]))
        for item in payload.get("rate_changes", [])
    ]
    events.extend(
        EarlyPayment(
            period=int(item["period"]),
            amount=to_decimal(item["amount"]),
            shorten_term=_strategy(item.get("type", "term")),
        )
        for item in payload.get("early_payments", [])
    )
    recurring = payload.get("recurring_payment")
    if recurring:
        events.append(
            RecurringPayment(
                budget=to_decimal(recurring["budget"]),
                every=int(recurring["every"]),
                first_period=int(recurring["first_period"]),
                shorten_term=_strategy(recurring.get("type", "term")),
            )
        )
    return events


@app.get("/api/health")
def health():
    return jsonify({"status": "ok"})


@app.post("/api/schedule")
def schedule():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    try:
        loan = _payload_to_loan(payload)
        events = _payload_to_events(payload)
        records = generate_schedule(loan)
        apply_events(loan, records, events)
    except (KeyError, TypeError, ValueError) as exc:
        logger.info("Rejected schedule request: %s", exc)
        return jsonify({"error": str(exc)}), 400

    summary = serialize_summary(summarize_schedule(loan, records))
    max_rows = app.config["MAX_ROWS"]
    rows = records[:max_rows] if max_rows else records
    if len(rows) < len(records):
        summary["truncated"] = len(records) - len(rows)
    return jsonify({"summary": summary, "schedule": [serialize_record(record) for record in rows]})


if __name__ == "__main__":
    print("Starting loan schedule API...")
    app.run()
