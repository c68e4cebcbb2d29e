from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from psycopg import Connection

from ..errors import NotFoundError

_COLUMNS = "id, invoice_number, order_id, customer_id, amount, status, generated_at, paid_at"


class InvoiceRepository:
    def __init__(self, prefix: str = "INV") -> None:
        self.prefix = prefix

    def next_number(self, conn: Connection, generated_at: datetime) -> str:
        cur = conn.execute("SELECT nextval('invoice_number_seq');")
        seq = int(cur.fetchone()[0])
        return f"{self.prefix}-{generated_at:%Y%m}-{seq:06d}"

    def create(
        self,
        conn: Connection,
        *,
        id: str,
        invoice_number: str,
        order_id: str,
        customer_id: str,
        amount: Decimal,
        status: str,
        generated_at: datetime,
        paid_at: datetime | None,
    ) -> dict:
        cur = conn.execute(
            f"""
            INSERT INTO invoice(id, invoice_number, order_id, customer_id, amount, status, generated_at, paid_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {_COLUMNS};
            """,
            (id, invoice_number, order_id, customer_id, amount, status, generated_at, paid_at),
        )
        cols = [d.name for d in cur.description]
        return dict(zip(cols, cur.fetchone()))

    def get_for_order(self, conn: Connection, order_id: str) -> dict | None:
        cur = conn.execute(f"SELECT {_COLUMNS} FROM invoice WHERE order_id = %s;", (order_id,))
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return dict(zip(cols, row))

    def mark_paid(self, conn: Connection, *, order_id: str, paid_at: datetime) -> None:
        cur = conn.execute(
            """
            UPDATE invoice
            SET status = 'paid', paid_at = COALESCE(paid_at, %s)
            WHERE order_id = %s;
            """,
            (paid_at, order_id),
        )
        if cur.rowcount != 1:
            raise NotFoundError(f"Invoice for order {order_id} not found.")

    def list(self, conn: Connection, *, status: str | None = None, limit: int | None = 50) -> list[dict]:
        params: list = []
        sql = f"SELECT {_COLUMNS} FROM invoice"
        if status is not None:
            sql += " WHERE status = %s"
            params.append(status)
        sql += " ORDER BY generated_at DESC"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        cur = conn.execute(sql + ";", params)
        cols = [d.name for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]
