"""Order ledger: order creation, payment collection and invoice/customer sync.

Every method expects to run inside ``Db.transaction()``; the rows it touches
are locked with ``SELECT ... FOR UPDATE`` and the order row is updated with a
compare-and-swap on its ``version`` column, so concurrent writers against the
same order or customer are serialized.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Mapping

from psycopg import Connection

from ..domain import (
    PAYMENT_MODES,
    PRIORITIES,
    ZERO,
    GarmentInput,
    check_choice,
    clamp_advance,
    derive_status,
    new_id,
    normalize_measurements,
    optional_text,
    pending_amount,
    to_money,
)
from ..errors import ConflictError, NotFoundError, ValidationError
from ..repositories.customer_repo import CustomerRepository
from ..repositories.invoice_repo import InvoiceRepository
from ..repositories.order_repo import OrderRepository
from ..repositories.payment_repo import PaymentRepository
from ..repositories.worker_repo import WorkerRepository
from .worker_service import resolve_tailor

logger = logging.getLogger(__name__)

ADVANCE_NOTE = "advance at order creation"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CreatedOrder:
    order: dict
    invoice: dict
    warnings: list[str] = field(default_factory=list)
    replayed: bool = False


@dataclass
class LedgerSnapshot:
    order: dict
    invoice: dict | None
    customer: dict
    payment: dict | None = None
    replayed: bool = False


@dataclass
class Reconciliation:
    customer_id: str
    stored: dict
    computed: dict
    repaired: bool = False

    @property
    def consistent(self) -> bool:
        return self.stored == self.computed


def parse_delivery_date(value: date | str | None) -> date:
    if value is None or value == "":
        raise ValidationError("Delivery date is required.")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise ValidationError(f"Delivery date must be YYYY-MM-DD, got {value!r}.") from e


class LedgerService:
    def __init__(
        self,
        *,
        customer_repo: CustomerRepository,
        order_repo: OrderRepository,
        payment_repo: PaymentRepository,
        invoice_repo: InvoiceRepository,
        worker_repo: WorkerRepository,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.customer_repo = customer_repo
        self.order_repo = order_repo
        self.payment_repo = payment_repo
        self.invoice_repo = invoice_repo
        self.worker_repo = worker_repo
        self.clock = clock

    def create_order(
        self,
        conn: Connection,
        *,
        customer_id: str,
        garments: list[GarmentInput],
        measurements: Mapping[str, object] | None,
        total_amount: object,
        advance_paid: object = 0,
        delivery_date: date | str | None,
        tailor_id: str | None = None,
        priority: str = "medium",
        payment_mode: str = "cash",
        notes: str | None = None,
        order_id: str | None = None,
    ) -> CreatedOrder:
        if not garments:
            raise ValidationError("At least one garment is required.")
        garment_records = [g.to_record() for g in garments]
        measurement_map = normalize_measurements(measurements)
        total = to_money(total_amount, "total_amount")
        if total <= 0:
            raise ValidationError("Total amount must be greater than 0.")
        advance = clamp_advance(total, to_money(advance_paid or 0, "advance_paid"))
        due = parse_delivery_date(delivery_date)
        priority = check_choice(priority, PRIORITIES, "priority")
        payment_mode = check_choice(payment_mode, PAYMENT_MODES, "payment_mode")
        notes = optional_text(notes, "notes")

        customer = self.customer_repo.get(conn, customer_id, for_update=True)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found.")

        if order_id:
            existing = self.order_repo.get(conn, order_id)
            if existing is not None:
                if existing["customer_id"] != customer_id:
                    raise ConflictError(f"Order id {order_id} is already used by another customer.")
                logger.info("Order %s already exists; returning stored order", order_id)
                return CreatedOrder(
                    order=existing,
                    invoice=self.invoice_repo.get_for_order(conn, order_id),
                    replayed=True,
                )

        tailor = resolve_tailor(conn, self.worker_repo, tailor_id) if tailor_id else None

        now = self.clock()
        warnings: list[str] = []
        if due < now.date():
            warnings.append(f"Delivery date {due.isoformat()} is in the past.")
            logger.warning("Order for customer %s has past delivery date %s", customer_id, due)

        pending = pending_amount(total, advance)
        order = self.order_repo.create(
            conn,
            id=order_id or new_id("ORD"),
            customer_id=customer_id,
            customer_name=customer["name"],
            garments=garment_records,
            measurements=measurement_map,
            total_amount=total,
            advance_paid=advance,
            pending_amount=pending,
            payment_mode=payment_mode,
            payment_status=derive_status(total, advance),
            tailor_id=tailor["id"] if tailor else None,
            tailor_name=tailor["name"] if tailor else None,
            delivery_date=due,
            priority=priority,
            notes=notes,
        )

        if advance > 0:
            self.payment_repo.create(
                conn,
                id=new_id("PAY"),
                order_id=order["id"],
                customer_id=customer_id,
                amount=advance,
                payment_mode=payment_mode,
                paid_at=now,
                notes=ADVANCE_NOTE,
            )

        invoice = self.invoice_repo.create(
            conn,
            id=new_id("INV"),
            invoice_number=self.invoice_repo.next_number(conn, now),
            order_id=order["id"],
            customer_id=customer_id,
            amount=total,
            status="paid" if pending == 0 else "pending",
            generated_at=now,
            paid_at=now if pending == 0 else None,
        )

        self.customer_repo.add_order(conn, customer_id=customer_id, pending=pending, paid=advance)

        logger.info(
            "Created order %s for customer %s: total=%s advance=%s pending=%s invoice=%s",
            order["id"], customer_id, total, advance, pending, invoice["invoice_number"],
        )
        return CreatedOrder(order=order, invoice=invoice, warnings=warnings)

    def collect_payment(
        self,
        conn: Connection,
        *,
        order_id: str,
        amount: object,
        payment_mode: str = "cash",
        notes: str | None = None,
        payment_id: str | None = None,
        expected_version: int | None = None,
    ) -> LedgerSnapshot:
        value = to_money(amount, "amount")
        if value <= 0:
            raise ValidationError("Payment amount must be greater than 0.")
        payment_mode = check_choice(payment_mode, PAYMENT_MODES, "payment_mode")
        notes = optional_text(notes, "notes")

        order = self.order_repo.get(conn, order_id, for_update=True)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found.")

        # Checked under the order lock so a concurrent retry sees the first attempt.
        if payment_id:
            replay = self._replay_payment(conn, order_id, payment_id)
            if replay is not None:
                return replay

        if expected_version is not None and order["version"] != expected_version:
            raise ConflictError(
                f"Order {order_id} changed (version {order['version']}, expected {expected_version}); reload and retry."
            )

        total = Decimal(order["total_amount"])
        current_pending = pending_amount(total, Decimal(order["advance_paid"]))
        if value > current_pending:
            raise ValidationError(f"Amount {value} exceeds pending balance {current_pending}.")

        customer = self.customer_repo.get(conn, order["customer_id"], for_update=True)
        if customer is None:
            raise NotFoundError(f"Customer {order['customer_id']} not found.")

        now = self.clock()
        payment = self.payment_repo.create(
            conn,
            id=payment_id or new_id("PAY"),
            order_id=order_id,
            customer_id=customer["id"],
            amount=value,
            payment_mode=payment_mode,
            paid_at=now,
            notes=notes,
        )

        advance = Decimal(order["advance_paid"]) + value
        pending = pending_amount(total, advance)
        self.order_repo.apply_payment(
            conn,
            order_id=order_id,
            version=order["version"],
            advance_paid=advance,
            pending_amount=pending,
            payment_status=derive_status(total, advance),
            payment_mode=payment_mode,
        )
        if pending == 0:
            self.invoice_repo.mark_paid(conn, order_id=order_id, paid_at=now)

        self.customer_repo.apply_payment(conn, customer_id=customer["id"], amount=value)

        logger.info("Collected %s (%s) on order %s; pending now %s", value, payment_mode, order_id, pending)
        snapshot = self._snapshot(conn, order_id)
        snapshot.payment = payment
        return snapshot

    def settle_order(
        self,
        conn: Connection,
        *,
        order_id: str,
        payment_mode: str = "cash",
        notes: str | None = None,
        payment_id: str | None = None,
    ) -> LedgerSnapshot:
        """Collect whatever is still pending on an order (the "mark invoice paid" action)."""
        order = self.order_repo.get(conn, order_id, for_update=True)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found.")
        if payment_id:
            replay = self._replay_payment(conn, order_id, payment_id)
            if replay is not None:
                return replay

        pending = pending_amount(Decimal(order["total_amount"]), Decimal(order["advance_paid"]))
        if pending == 0:
            raise ValidationError(f"Order {order_id} is already fully paid.")
        return self.collect_payment(
            conn,
            order_id=order_id,
            amount=pending,
            payment_mode=payment_mode,
            notes=notes,
            payment_id=payment_id,
            expected_version=order["version"],
        )

    def reconcile_customer(self, conn: Connection, customer_id: str, *, repair: bool = False) -> Reconciliation:
        customer = self.customer_repo.get(conn, customer_id, for_update=repair)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found.")

        orders = self.order_repo.list(conn, customer_id=customer_id, limit=None)
        payments = self.payment_repo.list(conn, customer_id=customer_id, limit=None)
        computed = {
            "total_orders": len(orders),
            "total_paid": sum((Decimal(p["amount"]) for p in payments), ZERO),
            "total_pending": sum(
                (pending_amount(Decimal(o["total_amount"]), Decimal(o["advance_paid"])) for o in orders),
                ZERO,
            ),
        }
        stored = {
            "total_orders": int(customer["total_orders"]),
            "total_paid": Decimal(customer["total_paid"]),
            "total_pending": Decimal(customer["total_pending"]),
        }
        result = Reconciliation(customer_id=customer_id, stored=stored, computed=computed)
        if not result.consistent:
            logger.warning("Customer %s aggregates drifted: stored=%s computed=%s", customer_id, stored, computed)
            if repair:
                self.customer_repo.set_totals(conn, customer_id=customer_id, **computed)
                result.repaired = True
        return result

    def _replay_payment(self, conn: Connection, order_id: str, payment_id: str) -> LedgerSnapshot | None:
        previous = self.payment_repo.get(conn, payment_id)
        if previous is None:
            return None
        if previous["order_id"] != order_id:
            raise ConflictError(f"Payment id {payment_id} is already used by another order.")
        logger.info("Payment %s already recorded; returning current state", payment_id)
        snapshot = self._snapshot(conn, order_id)
        snapshot.payment = previous
        snapshot.replayed = True
        return snapshot

    def _snapshot(self, conn: Connection, order_id: str) -> LedgerSnapshot:
        order = self.order_repo.get(conn, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found.")
        customer = self.customer_repo.get(conn, order["customer_id"])
        if customer is None:
            raise NotFoundError(f"Customer {order['customer_id']} not found.")
        return LedgerSnapshot(
            order=order,
            invoice=self.invoice_repo.get_for_order(conn, order_id),
            customer=customer,
        )
