from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from psycopg import Connection

_COLUMNS = "id, order_id, customer_id, amount, payment_mode, paid_at, notes"


class PaymentRepository:
    def create(
        self,
        conn: Connection,
        *,
        id: str,
        order_id: str,
        customer_id: str,
        amount: Decimal,
        payment_mode: str,
        paid_at: datetime,
        notes: str | None = None,
    ) -> dict:
        cur = conn.execute(
            f"""
            INSERT INTO payment(id, order_id, customer_id, amount, payment_mode, paid_at, notes)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING {_COLUMNS};
            """,
            (id, order_id, customer_id, amount, payment_mode, paid_at, notes),
        )
        cols = [d.name for d in cur.description]
        return dict(zip(cols, cur.fetchone()))

    def get(self, conn: Connection, payment_id: str) -> dict | None:
        cur = conn.execute(f"SELECT {_COLUMNS} FROM payment WHERE id = %s;", (payment_id,))
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return dict(zip(cols, row))

    def list(
        self,
        conn: Connection,
        *,
        order_id: str | None = None,
        customer_id: str | None = None,
        limit: int | None = 50,
    ) -> list[dict]:
        where, params = [], []
        if order_id is not None:
            where.append("order_id = %s")
            params.append(order_id)
        if customer_id is not None:
            where.append("customer_id = %s")
            params.append(customer_id)
        sql = f"SELECT {_COLUMNS} FROM payment"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY paid_at DESC"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        cur = conn.execute(sql + ";", params)
        cols = [d.name for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]
