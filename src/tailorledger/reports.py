from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta
from decimal import Decimal

from .domain import PAYMENT_MODES, ZERO


def _day(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def invoice_display_status(invoice: dict, order: dict | None, today: date) -> str:
    """paid | overdue | pending. Overdue is a display state only, never stored."""
    if invoice["status"] == "paid":
        return "paid"
    if order is not None and _day(order["delivery_date"]) < today:
        return "overdue"
    return "pending"


def dashboard_summary(customers: list[dict], orders: list[dict], today: date, upcoming_days: int = 7) -> dict:
    this_month = [
        o for o in orders
        if _day(o["created_at"]).year == today.year and _day(o["created_at"]).month == today.month
    ]
    horizon = today + timedelta(days=upcoming_days)
    upcoming = sorted(
        (
            o for o in orders
            if o["status"] != "delivered" and today <= _day(o["delivery_date"]) <= horizon
        ),
        key=lambda o: _day(o["delivery_date"]),
    )
    return {
        "customers": len(customers),
        "orders_this_month": len(this_month),
        "due_today": sum(1 for o in orders if _day(o["delivery_date"]) == today and o["status"] != "delivered"),
        "pending_payments": sum((Decimal(o["pending_amount"]) for o in orders), ZERO),
        "income_this_month": sum((Decimal(o["advance_paid"]) for o in this_month), ZERO),
        "upcoming_deliveries": upcoming,
    }


def revenue_report(orders: list[dict], payments: list[dict], date_from: datetime, date_to: datetime) -> dict:
    # Collected money comes from payment rows so it matches customer.total_paid.
    in_range = [o for o in orders if date_from <= o["created_at"] < date_to]
    paid_in_range = [p for p in payments if date_from <= p["paid_at"] < date_to]

    by_mode = {mode: ZERO for mode in PAYMENT_MODES}
    for p in paid_in_range:
        by_mode[p["payment_mode"]] = by_mode.get(p["payment_mode"], ZERO) + Decimal(p["amount"])

    garments: Counter[str] = Counter()
    for o in in_range:
        for g in o["garments"]:
            garments[g["garment_type"]] += int(g.get("quantity", 1))

    return {
        "orders_count": len(in_range),
        "orders_value": sum((Decimal(o["total_amount"]) for o in in_range), ZERO),
        "collected": sum((Decimal(p["amount"]) for p in paid_in_range), ZERO),
        "pending": sum((Decimal(o["pending_amount"]) for o in in_range), ZERO),
        "by_payment_mode": by_mode,
        "garments": dict(garments.most_common()),
    }
