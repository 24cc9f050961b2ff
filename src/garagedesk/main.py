from __future__ import annotations

import argparse
import logging
import sys

from .config import ConfigError, load_config
from .db import Db, DbError
from .web_app import create_app

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"

logger = logging.getLogger("garagedesk")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="garagedesk", description="Garage work-order billing backend")
    parser.add_argument("--config", help="Path to config.toml (default: $GARAGEDESK_CONFIG or ./config.toml)")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Override [http].host")
    serve.add_argument("--port", type=int, help="Override [http].port")
    serve.add_argument("--debug", action="store_true", help="Enable the Flask debugger")

    sub.add_parser("init-db", help="Create tables and indexes (safe to re-run)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    command = args.command or "serve"

    try:
        cfg = load_config(args.config)
        logging.basicConfig(level=cfg.log_level, format=LOG_FORMAT)
        db = Db(cfg.db)

        if command == "init-db":
            db.apply_schema()
            print("Schema applied.")
            return 0

        app = create_app(cfg, db)
        host = getattr(args, "host", None) or cfg.http.host
        port = getattr(args, "port", None) or cfg.http.port
        logger.info("starting %s on %s:%s", cfg.name, host, port)
        app.run(debug=getattr(args, "debug", False), host=host, port=port)
        return 0
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}", file=sys.stderr)
        return 2
    except DbError as e:
        print(f"[DB ERROR] {e}", file=sys.stderr)
        return 3
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
