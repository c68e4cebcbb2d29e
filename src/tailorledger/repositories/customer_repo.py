from __future__ import annotations

from decimal import Decimal

from psycopg import Connection

_COLUMNS = "id, name, mobile, address, email, total_orders, total_paid, total_pending, created_at, updated_at"


class CustomerRepository:
    def create(
        self,
        conn: Connection,
        *,
        id: str,
        name: str,
        mobile: str,
        address: str,
        email: str | None,
    ) -> dict | None:
        cur = conn.execute(
            f"""
            INSERT INTO customer(id, name, mobile, address, email)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (mobile) DO NOTHING
            RETURNING {_COLUMNS};
            """,
            (id, name, mobile, address, email),
        )
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return dict(zip(cols, row))

    def get(self, conn: Connection, customer_id: str, *, for_update: bool = False) -> dict | None:
        lock = " FOR UPDATE" if for_update else ""
        cur = conn.execute(
            f"SELECT {_COLUMNS} FROM customer WHERE id = %s{lock};",
            (customer_id,),
        )
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return dict(zip(cols, row))

    def get_by_mobile(self, conn: Connection, mobile: str) -> dict | None:
        cur = conn.execute(
            f"SELECT {_COLUMNS} FROM customer WHERE mobile = %s;",
            (mobile,),
        )
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return dict(zip(cols, row))

    def list(self, conn: Connection, limit: int = 50) -> list[dict]:
        cur = conn.execute(
            f"""
            SELECT {_COLUMNS}
            FROM customer
            ORDER BY created_at DESC
            LIMIT %s;
            """,
            (limit,),
        )
        cols = [d.name for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]

    def search(self, conn: Connection, term: str, limit: int | None = 50) -> list[dict]:
        pattern = "%" + term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        cur = conn.execute(
            f"""
            SELECT {_COLUMNS}
            FROM customer
            WHERE name ILIKE %s OR mobile ILIKE %s
            ORDER BY created_at DESC
            LIMIT %s;
            """,
            (pattern, pattern, limit),
        )
        cols = [d.name for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]

    def add_order(self, conn: Connection, *, customer_id: str, pending: Decimal, paid: Decimal) -> None:
        conn.execute(
            """
            UPDATE customer
            SET total_orders = total_orders + 1,
                total_pending = total_pending + %s,
                total_paid = total_paid + %s,
                updated_at = now()
            WHERE id = %s;
            """,
            (pending, paid, customer_id),
        )

    def apply_payment(self, conn: Connection, *, customer_id: str, amount: Decimal) -> None:
        conn.execute(
            """
            UPDATE customer
            SET total_paid = total_paid + %s,
                total_pending = GREATEST(0, total_pending - %s),
                updated_at = now()
            WHERE id = %s;
            """,
            (amount, amount, customer_id),
        )

    def set_totals(
        self,
        conn: Connection,
        *,
        customer_id: str,
        total_orders: int,
        total_paid: Decimal,
        total_pending: Decimal,
    ) -> None:
        conn.execute(
            """
            UPDATE customer
            SET total_orders = %s, total_paid = %s, total_pending = %s, updated_at = now()
            WHERE id = %s;
            """,
            (total_orders, total_paid, total_pending, customer_id),
        )
