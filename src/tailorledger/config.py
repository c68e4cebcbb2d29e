from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DbConfig:
    host: str
    port: int
    name: str
    user: str
    password: str
    sslmode: str = "disable"


@dataclass(frozen=True)
class BusinessConfig:
    currency: str = "INR"
    invoice_prefix: str = "INV"
    upcoming_days: int = 7


@dataclass(frozen=True)
class AppConfig:
    name: str
    log_level: str
    db: DbConfig
    business: BusinessConfig = field(default_factory=BusinessConfig)


def load_config(path: str | Path) -> AppConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p.resolve()}")

    try:
        data = tomllib.loads(p.read_text(encoding="utf-8"))
    except Exception as e:
        raise ConfigError(f"Failed to read config TOML: {e}") from e

    return parse_config(data)


def parse_config(data: dict) -> AppConfig:
    try:
        app = data.get("app", {})
        db = data["db"]
        business = data.get("business", {})
        return AppConfig(
            name=str(app.get("name", "Tailor Ledger")),
            log_level=str(app.get("log_level", "INFO")).upper(),
            db=DbConfig(
                host=str(db["host"]),
                port=int(db.get("port", 5432)),
                name=str(db["name"]),
                user=str(db["user"]),
                password=str(db["password"]),
                sslmode=str(db.get("sslmode", "disable")),
            ),
            business=BusinessConfig(
                currency=str(business.get("currency", "INR")),
                invoice_prefix=str(business.get("invoice_prefix", "INV")),
                upcoming_days=int(business.get("upcoming_days", 7)),
            ),
        )
    except KeyError as e:
        raise ConfigError(f"Missing config key: {e}") from e
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid config values: {e}") from e
