from __future__ import annotations

from datetime import date
from decimal import Decimal

from psycopg import Connection
from psycopg.types.json import Jsonb

from ..errors import ConflictError

_COLUMNS = (
    "id, customer_id, customer_name, garments, measurements, total_amount, advance_paid, "
    "pending_amount, payment_mode, payment_status, tailor_id, tailor_name, delivery_date, "
    "priority, status, notes, version, created_at, updated_at"
)


class OrderRepository:
    def create(
        self,
        conn: Connection,
        *,
        id: str,
        customer_id: str,
        customer_name: str,
        garments: list[dict],
        measurements: dict[str, float],
        total_amount: Decimal,
        advance_paid: Decimal,
        pending_amount: Decimal,
        payment_mode: str,
        payment_status: str,
        tailor_id: str | None,
        tailor_name: str | None,
        delivery_date: date,
        priority: str,
        notes: str | None,
    ) -> dict:
        cur = conn.execute(
            f"""
            INSERT INTO tailor_order(
              id, customer_id, customer_name, garments, measurements,
              total_amount, advance_paid, pending_amount, payment_mode, payment_status,
              tailor_id, tailor_name, delivery_date, priority, status, notes
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, 'pending', %s)
            RETURNING {_COLUMNS};
            """,
            (
                id, customer_id, customer_name, Jsonb(garments), Jsonb(measurements),
                total_amount, advance_paid, pending_amount, payment_mode, payment_status,
                tailor_id, tailor_name, delivery_date, priority, notes,
            ),
        )
        cols = [d.name for d in cur.description]
        return dict(zip(cols, cur.fetchone()))

    def get(self, conn: Connection, order_id: str, *, for_update: bool = False) -> dict | None:
        lock = " FOR UPDATE" if for_update else ""
        cur = conn.execute(
            f"SELECT {_COLUMNS} FROM tailor_order WHERE id = %s{lock};",
            (order_id,),
        )
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return dict(zip(cols, row))

    def list(
        self,
        conn: Connection,
        *,
        customer_id: str | None = None,
        tailor_id: str | None = None,
        status: str | None = None,
        limit: int | None = 50,
    ) -> list[dict]:
        where, params = [], []
        if customer_id is not None:
            where.append("customer_id = %s")
            params.append(customer_id)
        if tailor_id is not None:
            where.append("tailor_id = %s")
            params.append(tailor_id)
        if status is not None:
            where.append("status = %s")
            params.append(status)
        sql = f"SELECT {_COLUMNS} FROM tailor_order"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY created_at DESC"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        cur = conn.execute(sql + ";", params)
        cols = [d.name for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]

    def apply_payment(
        self,
        conn: Connection,
        *,
        order_id: str,
        version: int,
        advance_paid: Decimal,
        pending_amount: Decimal,
        payment_status: str,
        payment_mode: str,
    ) -> dict:
        cur = conn.execute(
            f"""
            UPDATE tailor_order
            SET advance_paid = %s, pending_amount = %s, payment_status = %s,
                payment_mode = %s, version = version + 1, updated_at = now()
            WHERE id = %s AND version = %s
            RETURNING {_COLUMNS};
            """,
            (advance_paid, pending_amount, payment_status, payment_mode, order_id, version),
        )
        return _one_or_conflict(cur, order_id)

    def set_status(self, conn: Connection, *, order_id: str, version: int, status: str) -> dict:
        cur = conn.execute(
            f"""
            UPDATE tailor_order
            SET status = %s, version = version + 1, updated_at = now()
            WHERE id = %s AND version = %s
            RETURNING {_COLUMNS};
            """,
            (status, order_id, version),
        )
        return _one_or_conflict(cur, order_id)

    def assign_tailor(
        self,
        conn: Connection,
        *,
        order_id: str,
        version: int,
        tailor_id: str,
        tailor_name: str,
    ) -> dict:
        cur = conn.execute(
            f"""
            UPDATE tailor_order
            SET tailor_id = %s, tailor_name = %s, version = version + 1, updated_at = now()
            WHERE id = %s AND version = %s
            RETURNING {_COLUMNS};
            """,
            (tailor_id, tailor_name, order_id, version),
        )
        return _one_or_conflict(cur, order_id)


def _one_or_conflict(cur, order_id: str) -> dict:
    row = cur.fetchone()
    if row is None:
        raise ConflictError(f"Order {order_id} was modified concurrently; reload and retry.")
    cols = [d.name for d in cur.description]
    return dict(zip(cols, row))
