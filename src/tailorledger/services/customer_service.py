from __future__ import annotations

import logging

from psycopg import Connection

from ..domain import new_id, optional_text
from ..errors import ValidationError
from ..repositories.customer_repo import CustomerRepository

logger = logging.getLogger(__name__)


class CustomerService:
    def __init__(self, *, customer_repo: CustomerRepository) -> None:
        self.customer_repo = customer_repo

    def register(
        self,
        conn: Connection,
        *,
        name: str,
        mobile: str,
        address: str,
        email: str | None = None,
        customer_id: str | None = None,
    ) -> dict:
        name = optional_text(name, "name")
        mobile = optional_text(mobile, "mobile")
        address = optional_text(address, "address")
        if not (name and mobile and address):
            raise ValidationError("Name, mobile and address are required.")

        existing = self.customer_repo.get_by_mobile(conn, mobile)
        if existing is not None:
            raise ValidationError(f"Customer with mobile {mobile} already exists: {existing['name']}")

        # A concurrent registration can still win the unique index; create() reports it as None.
        customer = self.customer_repo.create(
            conn,
            id=customer_id or new_id("CUS"),
            name=name,
            mobile=mobile,
            address=address,
            email=optional_text(email, "email"),
        )
        if customer is None:
            raise ValidationError(f"Customer with mobile {mobile} already exists.")
        logger.info("Registered customer %s (%s)", customer["id"], customer["name"])
        return customer

    def search(self, conn: Connection, term: str | None, limit: int = 50) -> list[dict]:
        t = optional_text(term, "search term")
        if t is None:
            return self.customer_repo.list(conn, limit=limit)
        return self.customer_repo.search(conn, t, limit=limit)
