from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from psycopg import Connection

from ..domain import WAGE_TYPES, WORKER_ROLES, check_choice, new_id, optional_text, to_money
from ..errors import NotFoundError, ValidationError
from ..repositories.order_repo import OrderRepository
from ..repositories.worker_repo import WorkerRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkerStats:
    worker: dict
    assigned_orders: int
    completed_orders: int
    pending_orders: int
    earnings: Decimal


def resolve_tailor(conn: Connection, worker_repo: WorkerRepository, tailor_id: str) -> dict:
    worker = worker_repo.get(conn, tailor_id)
    if worker is None:
        raise NotFoundError(f"Worker {tailor_id} not found.")
    if not worker["is_active"]:
        raise ValidationError(f"Worker {worker['name']} is not active.")
    if worker["role"] != "tailor":
        raise ValidationError(f"Worker {worker['name']} is not a tailor.")
    return worker


def worker_stats(worker: dict, orders: list[dict]) -> WorkerStats:
    """Counters and earnings for one worker, derived from the orders naming them as tailor."""
    mine = [o for o in orders if o.get("tailor_id") == worker["id"]]
    done = [o for o in mine if o["status"] == "delivered"]
    wage = Decimal(worker["wage_amount"])

    if worker["wage_type"] == "per_order":
        earnings = wage * len(done)
    elif worker["wage_type"] == "per_garment":
        pieces = sum(int(g.get("quantity", 1)) for o in done for g in o["garments"])
        earnings = wage * pieces
    else:
        earnings = wage

    return WorkerStats(
        worker=worker,
        assigned_orders=len(mine),
        completed_orders=len(done),
        pending_orders=len(mine) - len(done),
        earnings=earnings.quantize(Decimal("0.01")),
    )


class WorkerService:
    def __init__(self, *, worker_repo: WorkerRepository, order_repo: OrderRepository) -> None:
        self.worker_repo = worker_repo
        self.order_repo = order_repo

    def register(
        self,
        conn: Connection,
        *,
        name: str,
        mobile: str,
        role: str = "tailor",
        skills: list[str] | None = None,
        wage_type: str = "per_garment",
        wage_amount: object = 0,
        worker_id: str | None = None,
    ) -> dict:
        name = optional_text(name, "name")
        mobile = optional_text(mobile, "mobile")
        if not name:
            raise ValidationError("Worker name cannot be empty.")
        if not mobile:
            raise ValidationError("Worker mobile cannot be empty.")
        if not isinstance(skills or [], list):
            raise ValidationError("skills must be a list.")
        skills = [optional_text(s, "skill") for s in skills or []]
        amount = to_money(wage_amount, "wage_amount")
        if amount < 0:
            raise ValidationError("Wage amount cannot be negative.")

        return self.worker_repo.create(
            conn,
            id=worker_id or new_id("WRK"),
            name=name,
            mobile=mobile,
            role=check_choice(role, WORKER_ROLES, "role"),
            skills=[s for s in skills if s],
            wage_type=check_choice(wage_type, WAGE_TYPES, "wage_type"),
            wage_amount=amount,
        )

    def set_active(self, conn: Connection, *, worker_id: str, is_active: bool) -> dict:
        if not isinstance(is_active, bool):
            raise ValidationError("is_active must be true or false.")
        worker = self.worker_repo.set_active(conn, worker_id=worker_id, is_active=is_active)
        if worker is None:
            raise NotFoundError(f"Worker {worker_id} not found.")
        logger.info("Worker %s is now %s", worker_id, "active" if is_active else "inactive")
        return worker

    def stats(
        self, conn: Connection, *, active_only: bool = True, role: str | None = None
    ) -> list[WorkerStats]:
        if role is not None:
            role = check_choice(role, WORKER_ROLES, "role")
        workers = self.worker_repo.list(conn, active_only=active_only, role=role)
        orders = self.order_repo.list(conn, limit=None)
        return [worker_stats(w, orders) for w in workers]
