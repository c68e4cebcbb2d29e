from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Literal, Mapping

from .errors import ValidationError

PaymentStatus = Literal["unpaid", "partial", "paid"]
FulfillmentStatus = Literal["pending", "in_progress", "completed", "delivered"]
PaymentMode = Literal["cash", "upi", "card", "other"]
Priority = Literal["low", "medium", "high"]
InvoiceStatus = Literal["pending", "paid"]
WorkerRole = Literal["tailor", "worker"]
WageType = Literal["per_garment", "per_order", "monthly"]

PAYMENT_MODES: tuple[str, ...] = ("cash", "upi", "card", "other")
PRIORITIES: tuple[str, ...] = ("low", "medium", "high")
FULFILLMENT_FLOW: tuple[str, ...] = ("pending", "in_progress", "completed", "delivered")
WORKER_ROLES: tuple[str, ...] = ("tailor", "worker")
WAGE_TYPES: tuple[str, ...] = ("per_garment", "per_order", "monthly")

ZERO = Decimal("0.00")
_CENT = Decimal("0.01")


def to_money(value: object, field_name: str = "amount") -> Decimal:
    """Coerce user input (str, int, float, Decimal) into a 2-place Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be a number.")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field_name} must be a number.") from e
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a finite number.")
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def pending_amount(total: Decimal, advance: Decimal) -> Decimal:
    return max(ZERO, total - advance).quantize(_CENT)


def derive_status(total: Decimal, advance: Decimal) -> PaymentStatus:
    """Payment status of an order. The one formula every caller uses."""
    if advance <= 0:
        return "unpaid"
    if advance >= total:
        return "paid"
    return "partial"


def clamp_advance(total: Decimal, advance: Decimal) -> Decimal:
    return min(max(advance, ZERO), total)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def check_choice(value: str, allowed: tuple[str, ...], field_name: str) -> str:
    v = value.strip().lower() if isinstance(value, str) else ""
    if v not in allowed:
        raise ValidationError(f"{field_name} must be one of: {', '.join(allowed)}.")
    return v


def optional_text(value: object, field_name: str) -> str | None:
    """Stripped text or None for blank input; anything but a string is rejected."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be text.")
    return value.strip() or None


@dataclass
class GarmentInput:
    garment_type: str
    quantity: int = 1
    subtypes: dict[str, str] = field(default_factory=dict)
    notes: str | None = None

    def to_record(self) -> dict:
        if not isinstance(self.garment_type, str) or not self.garment_type.strip():
            raise ValidationError("Garment type cannot be empty.")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValidationError("Garment quantity must be a whole number >= 1.")
        if not isinstance(self.subtypes, Mapping):
            raise ValidationError("Garment subtypes must be a mapping of option -> choice.")
        subtypes = {}
        for k, v in self.subtypes.items():
            if not isinstance(k, str) or not k.strip() or not isinstance(v, str):
                raise ValidationError(f"Invalid garment subtype entry: {k!r}={v!r}")
            subtypes[k.strip()] = v.strip()
        return {
            "garment_type": self.garment_type.strip(),
            "subtypes": subtypes,
            "quantity": self.quantity,
            "notes": optional_text(self.notes, "Garment notes"),
        }


def normalize_measurements(measurements: Mapping[str, object] | None) -> dict[str, float]:
    if measurements is None:
        return {}
    if not isinstance(measurements, Mapping):
        raise ValidationError("Measurements must be a mapping of field -> value.")
    out: dict[str, float] = {}
    for name, raw in measurements.items():
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Measurement names must be non-empty strings.")
        if isinstance(raw, bool):
            raise ValidationError(f"Measurement {name!r} must be numeric.")
        try:
            value = float(raw)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Measurement {name!r} must be numeric.") from e
        if value < 0 or not math.isfinite(value):
            raise ValidationError(f"Measurement {name!r} must be a non-negative number.")
        out[name.strip()] = value
    return out
