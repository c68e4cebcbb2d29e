from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from importlib import resources

import psycopg
from psycopg import Connection

from .config import DbConfig
from .errors import StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Db:
    cfg: DbConfig

    def connect(self) -> Connection:
        try:
            return psycopg.connect(
                host=self.cfg.host,
                port=self.cfg.port,
                dbname=self.cfg.name,
                user=self.cfg.user,
                password=self.cfg.password,
                sslmode=self.cfg.sslmode,
                autocommit=True,
            )
        except psycopg.Error as e:
            raise StorageError(
                "Cannot connect to database. Check config.toml [db] and that PostgreSQL is running."
            ) from e

    @contextmanager
    def session(self) -> Connection:
        conn = self.connect()
        try:
            yield conn
        except psycopg.Error as e:
            raise StorageError(f"Database error: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Connection:
        # Every ledger operation runs inside one of these: all of its writes
        # become visible together or none do.
        conn = self.connect()
        try:
            conn.execute("BEGIN;")
            yield conn
            conn.execute("COMMIT;")
        except psycopg.Error as e:
            _rollback(conn)
            raise StorageError(f"Database error: {e}") from e
        except Exception:
            _rollback(conn)
            raise
        finally:
            conn.close()

    def init_schema(self) -> None:
        sql = resources.files("tailorledger").joinpath("schema.sql").read_text(encoding="utf-8")
        with self.transaction() as conn:
            conn.execute(sql)
        logger.info("Schema applied to database %s", self.cfg.name)


def _rollback(conn: Connection) -> None:
    try:
        conn.execute("ROLLBACK;")
    except psycopg.Error:
        logger.exception("Rollback failed; connection will be discarded")
