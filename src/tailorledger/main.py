from __future__ import annotations

import logging
import sys

from .cli import run_cli
from .config import ConfigError, load_config
from .db import Db
from .errors import StorageError


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    paths = [a for a in args if not a.startswith("--")]
    path = paths[0] if paths else "config.toml"
    try:
        cfg = load_config(path)
        logging.basicConfig(
            level=cfg.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        db = Db(cfg.db)
        if "--init-db" in args:
            db.init_schema()
        run_cli(db, cfg.business)
        return 0
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        return 2
    except StorageError as e:
        print(f"[DB ERROR] {e}")
        return 3
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
