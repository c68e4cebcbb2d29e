from __future__ import annotations

from decimal import Decimal

from psycopg import Connection

_COLUMNS = "id, name, mobile, role, skills, wage_type, wage_amount, is_active, created_at"


class WorkerRepository:
    def create(
        self,
        conn: Connection,
        *,
        id: str,
        name: str,
        mobile: str,
        role: str,
        skills: list[str],
        wage_type: str,
        wage_amount: Decimal,
    ) -> dict:
        cur = conn.execute(
            f"""
            INSERT INTO worker(id, name, mobile, role, skills, wage_type, wage_amount)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING {_COLUMNS};
            """,
            (id, name, mobile, role, skills, wage_type, wage_amount),
        )
        cols = [d.name for d in cur.description]
        return dict(zip(cols, cur.fetchone()))

    def get(self, conn: Connection, worker_id: str) -> dict | None:
        cur = conn.execute(f"SELECT {_COLUMNS} FROM worker WHERE id = %s;", (worker_id,))
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return dict(zip(cols, row))

    def list(self, conn: Connection, *, active_only: bool = True, role: str | None = None) -> list[dict]:
        where, params = [], []
        if active_only:
            where.append("is_active")
        if role is not None:
            where.append("role = %s")
            params.append(role)
        sql = f"SELECT {_COLUMNS} FROM worker"
        if where:
            sql += " WHERE " + " AND ".join(where)
        cur = conn.execute(sql + " ORDER BY created_at DESC;", params)
        cols = [d.name for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]

    def set_active(self, conn: Connection, *, worker_id: str, is_active: bool) -> dict | None:
        cur = conn.execute(
            f"UPDATE worker SET is_active = %s WHERE id = %s RETURNING {_COLUMNS};",
            (is_active, worker_id),
        )
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return dict(zip(cols, row))
