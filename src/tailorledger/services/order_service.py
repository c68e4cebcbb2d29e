from __future__ import annotations

import logging

from psycopg import Connection

from ..domain import FULFILLMENT_FLOW, check_choice
from ..errors import NotFoundError, ValidationError
from ..repositories.customer_repo import CustomerRepository
from ..repositories.order_repo import OrderRepository
from ..repositories.worker_repo import WorkerRepository
from .worker_service import resolve_tailor

logger = logging.getLogger(__name__)


class OrderService:
    """Fulfillment side of an order. Never touches the monetary fields."""

    def __init__(
        self,
        *,
        order_repo: OrderRepository,
        worker_repo: WorkerRepository,
        customer_repo: CustomerRepository,
    ) -> None:
        self.order_repo = order_repo
        self.worker_repo = worker_repo
        self.customer_repo = customer_repo

    def get(self, conn: Connection, order_id: str) -> dict:
        order = self.order_repo.get(conn, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found.")
        return order

    def list_orders(
        self,
        conn: Connection,
        *,
        customer_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
    ) -> list[dict]:
        if status is not None:
            status = check_choice(status, FULFILLMENT_FLOW, "status")
        return self.order_repo.list(conn, customer_id=customer_id, status=status, limit=limit)

    def previous_measurements(self, conn: Connection, customer_id: str, limit: int = 10) -> list[dict]:
        """Measurements taken on the customer's earlier orders, newest first.

        Orders recorded without measurements are skipped, so fewer than
        ``limit`` entries may come back.
        """
        if self.customer_repo.get(conn, customer_id) is None:
            raise NotFoundError(f"Customer {customer_id} not found.")
        return [
            {
                "order_id": o["id"],
                "taken_at": o["created_at"],
                "garments": [g["garment_type"] for g in o["garments"]],
                "measurements": o["measurements"],
            }
            for o in self.order_repo.list(conn, customer_id=customer_id, limit=limit)
            if o["measurements"]
        ]

    def advance_status(self, conn: Connection, *, order_id: str, status: str) -> dict:
        target = check_choice(status, FULFILLMENT_FLOW, "status")
        order = self.order_repo.get(conn, order_id, for_update=True)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found.")

        current = order["status"]
        if FULFILLMENT_FLOW.index(target) <= FULFILLMENT_FLOW.index(current):
            raise ValidationError(f"Order {order_id} cannot move from {current} to {target}.")

        updated = self.order_repo.set_status(conn, order_id=order_id, version=order["version"], status=target)
        logger.info("Order %s status %s -> %s", order_id, current, target)
        return updated

    def assign_tailor(self, conn: Connection, *, order_id: str, tailor_id: str) -> dict:
        order = self.order_repo.get(conn, order_id, for_update=True)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found.")
        if order["status"] == "delivered":
            raise ValidationError(f"Order {order_id} is already delivered.")

        tailor = resolve_tailor(conn, self.worker_repo, tailor_id)
        updated = self.order_repo.assign_tailor(
            conn,
            order_id=order_id,
            version=order["version"],
            tailor_id=tailor["id"],
            tailor_name=tailor["name"],
        )
        logger.info("Order %s assigned to %s", order_id, tailor["name"])
        return updated
