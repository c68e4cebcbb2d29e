from __future__ import annotations

import copy
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tailorledger.domain import ZERO
from tailorledger.errors import ConflictError, NotFoundError, StorageError
from tailorledger.services.customer_service import CustomerService
from tailorledger.services.ledger_service import LedgerService
from tailorledger.services.order_service import OrderService
from tailorledger.services.worker_service import WorkerService
from tailorledger.wiring import Services

TODAY = date(2026, 3, 10)


class Clock:
    """Deterministic clock: every call moves one second forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class FakeStore:
    """In-memory stand-in for the database, usable as both Db and conn."""

    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self.tables: dict[str, dict[str, dict]] = {
            "customer": {}, "tailor_order": {}, "payment": {}, "invoice": {}, "worker": {},
        }
        self.invoice_seq = 0
        self.fail_on: str | None = None

    def check(self, op: str) -> None:
        if self.fail_on == op:
            raise StorageError(f"simulated failure in {op}")

    @contextmanager
    def session(self):
        yield self

    @contextmanager
    def transaction(self):
        saved = copy.deepcopy((self.tables, self.invoice_seq))
        try:
            yield self
        except Exception:
            self.tables, self.invoice_seq = saved
            raise

    def count(self, table: str) -> int:
        return len(self.tables[table])


def _newest_first(rows, key, limit):
    rows = sorted(rows, key=lambda r: r[key], reverse=True)
    return rows if limit is None else rows[:limit]


class FakeCustomerRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    @property
    def rows(self):
        return self.store.tables["customer"]

    def create(self, conn, *, id, name, mobile, address, email):
        if any(r["mobile"] == mobile for r in self.rows.values()):
            return None
        now = self.store.clock()
        row = dict(
            id=id, name=name, mobile=mobile, address=address, email=email,
            total_orders=0, total_paid=ZERO, total_pending=ZERO, created_at=now, updated_at=now,
        )
        self.rows[id] = row
        return dict(row)

    def get(self, conn, customer_id, *, for_update=False):
        row = self.rows.get(customer_id)
        return dict(row) if row else None

    def get_by_mobile(self, conn, mobile):
        for row in self.rows.values():
            if row["mobile"] == mobile:
                return dict(row)
        return None

    def list(self, conn, limit=50):
        return [dict(r) for r in _newest_first(self.rows.values(), "created_at", limit)]

    def search(self, conn, term, limit=50):
        t = term.lower()
        rows = [r for r in self.rows.values() if t in r["name"].lower() or t in r["mobile"].lower()]
        return [dict(r) for r in _newest_first(rows, "created_at", limit)]

    def add_order(self, conn, *, customer_id, pending, paid):
        self.store.check("customer.add_order")
        row = self.rows[customer_id]
        row["total_orders"] += 1
        row["total_pending"] += pending
        row["total_paid"] += paid

    def apply_payment(self, conn, *, customer_id, amount):
        self.store.check("customer.apply_payment")
        row = self.rows[customer_id]
        row["total_paid"] += amount
        row["total_pending"] = max(ZERO, row["total_pending"] - amount)

    def set_totals(self, conn, *, customer_id, total_orders, total_paid, total_pending):
        row = self.rows[customer_id]
        row.update(total_orders=total_orders, total_paid=total_paid, total_pending=total_pending)


class FakeOrderRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    @property
    def rows(self):
        return self.store.tables["tailor_order"]

    def create(self, conn, *, id, **fields):
        self.store.check("order.create")
        now = self.store.clock()
        row = dict(id=id, status="pending", version=1, created_at=now, updated_at=now, **fields)
        row["garments"] = copy.deepcopy(row["garments"])
        self.rows[id] = row
        return copy.deepcopy(row)

    def get(self, conn, order_id, *, for_update=False):
        row = self.rows.get(order_id)
        return copy.deepcopy(row) if row else None

    def list(self, conn, *, customer_id=None, tailor_id=None, status=None, limit=50):
        rows = [
            r for r in self.rows.values()
            if (customer_id is None or r["customer_id"] == customer_id)
            and (tailor_id is None or r["tailor_id"] == tailor_id)
            and (status is None or r["status"] == status)
        ]
        return [copy.deepcopy(r) for r in _newest_first(rows, "created_at", limit)]

    def _cas(self, order_id, version, **changes):
        row = self.rows.get(order_id)
        if row is None or row["version"] != version:
            raise ConflictError(f"Order {order_id} was modified concurrently; reload and retry.")
        row.update(changes)
        row["version"] += 1
        return copy.deepcopy(row)

    def apply_payment(self, conn, *, order_id, version, advance_paid, pending_amount, payment_status, payment_mode):
        self.store.check("order.apply_payment")
        return self._cas(
            order_id, version,
            advance_paid=advance_paid, pending_amount=pending_amount,
            payment_status=payment_status, payment_mode=payment_mode,
        )

    def set_status(self, conn, *, order_id, version, status):
        return self._cas(order_id, version, status=status)

    def assign_tailor(self, conn, *, order_id, version, tailor_id, tailor_name):
        return self._cas(order_id, version, tailor_id=tailor_id, tailor_name=tailor_name)


class FakePaymentRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    @property
    def rows(self):
        return self.store.tables["payment"]

    def create(self, conn, *, id, order_id, customer_id, amount, payment_mode, paid_at, notes=None):
        self.store.check("payment.create")
        row = dict(
            id=id, order_id=order_id, customer_id=customer_id, amount=amount,
            payment_mode=payment_mode, paid_at=paid_at, notes=notes,
        )
        self.rows[id] = row
        return dict(row)

    def get(self, conn, payment_id):
        row = self.rows.get(payment_id)
        return dict(row) if row else None

    def list(self, conn, *, order_id=None, customer_id=None, limit=50):
        rows = [
            r for r in self.rows.values()
            if (order_id is None or r["order_id"] == order_id)
            and (customer_id is None or r["customer_id"] == customer_id)
        ]
        return [dict(r) for r in _newest_first(rows, "paid_at", limit)]


class FakeInvoiceRepository:
    def __init__(self, store: FakeStore, prefix: str = "INV") -> None:
        self.store = store
        self.prefix = prefix

    @property
    def rows(self):
        return self.store.tables["invoice"]

    def next_number(self, conn, generated_at):
        self.store.invoice_seq += 1
        return f"{self.prefix}-{generated_at:%Y%m}-{self.store.invoice_seq:06d}"

    def create(self, conn, *, id, invoice_number, order_id, customer_id, amount, status, generated_at, paid_at):
        self.store.check("invoice.create")
        row = dict(
            id=id, invoice_number=invoice_number, order_id=order_id, customer_id=customer_id,
            amount=amount, status=status, generated_at=generated_at, paid_at=paid_at,
        )
        self.rows[id] = row
        return dict(row)

    def get_for_order(self, conn, order_id):
        for row in self.rows.values():
            if row["order_id"] == order_id:
                return dict(row)
        return None

    def mark_paid(self, conn, *, order_id, paid_at):
        self.store.check("invoice.mark_paid")
        for row in self.rows.values():
            if row["order_id"] == order_id:
                row["status"] = "paid"
                row["paid_at"] = row["paid_at"] or paid_at
                return
        raise NotFoundError(f"Invoice for order {order_id} not found.")

    def list(self, conn, *, status=None, limit=50):
        rows = [r for r in self.rows.values() if status is None or r["status"] == status]
        return [dict(r) for r in _newest_first(rows, "generated_at", limit)]


class FakeWorkerRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    @property
    def rows(self):
        return self.store.tables["worker"]

    def create(self, conn, *, id, name, mobile, role, skills, wage_type, wage_amount):
        row = dict(
            id=id, name=name, mobile=mobile, role=role, skills=list(skills), wage_type=wage_type,
            wage_amount=wage_amount, is_active=True, created_at=self.store.clock(),
        )
        self.rows[id] = row
        return dict(row)

    def get(self, conn, worker_id):
        row = self.rows.get(worker_id)
        return dict(row) if row else None

    def list(self, conn, *, active_only=True, role=None):
        rows = [
            r for r in self.rows.values()
            if (not active_only or r["is_active"]) and (role is None or r["role"] == role)
        ]
        return [dict(r) for r in _newest_first(rows, "created_at", None)]

    def set_active(self, conn, *, worker_id, is_active):
        row = self.rows.get(worker_id)
        if row is None:
            return None
        row["is_active"] = is_active
        return dict(row)


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(clock) -> FakeStore:
    return FakeStore(clock)


@pytest.fixture
def services(store, clock) -> Services:
    customer_repo = FakeCustomerRepository(store)
    order_repo = FakeOrderRepository(store)
    payment_repo = FakePaymentRepository(store)
    invoice_repo = FakeInvoiceRepository(store)
    worker_repo = FakeWorkerRepository(store)
    return Services(
        customer_repo=customer_repo,
        order_repo=order_repo,
        payment_repo=payment_repo,
        invoice_repo=invoice_repo,
        worker_repo=worker_repo,
        ledger=LedgerService(
            customer_repo=customer_repo,
            order_repo=order_repo,
            payment_repo=payment_repo,
            invoice_repo=invoice_repo,
            worker_repo=worker_repo,
            clock=clock,
        ),
        customers=CustomerService(customer_repo=customer_repo),
        orders=OrderService(order_repo=order_repo, worker_repo=worker_repo, customer_repo=customer_repo),
        workers=WorkerService(worker_repo=worker_repo, order_repo=order_repo),
    )


@pytest.fixture
def customer(store, services) -> dict:
    with store.transaction() as conn:
        return services.customers.register(
            conn, name="Asha Rao", mobile="9876543210", address="12 MG Road", customer_id="CUS_asha"
        )


@pytest.fixture
def tailor(store, services) -> dict:
    with store.transaction() as conn:
        return services.workers.register(
            conn,
            name="Ravi",
            mobile="9000000001",
            skills=["shirt", "kurta"],
            wage_type="per_garment",
            wage_amount="150",
            worker_id="WRK_ravi",
        )


def money(value: str) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"))
