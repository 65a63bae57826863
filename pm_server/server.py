from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from . import db
from ._server.http_server import Handler, PMHTTPServer
from ._server.timer_cleanup import cleanup_expired_timers
from .config import load_settings
from .logging_setup import setup_logging


logger = logging.getLogger(__name__)

__all__ = ["Handler", "PMHTTPServer", "main"]


def main(argv: list[str] | None = None) -> None:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Project management server (stdlib + sqlite)")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--db", default=str(settings.db_path))
    parser.add_argument("--log-level", default=settings.log_level)
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="run the HTTP API (default)")
    sub.add_parser("cleanup-timers", help="auto-stop timers past their session limit and exit")
    args = parser.parse_args(argv)

    setup_logging(args.log_level, settings.log_dir)
    db_path = Path(args.db)
    db.init_db(db_path)

    if args.command == "cleanup-timers":
        print(json.dumps(cleanup_expired_timers(db_path), indent=2))
        return

    httpd = PMHTTPServer(
        (args.host, args.port),
        Handler,
        db_path=db_path,
        cookie_secure=settings.cookie_secure,
        cron_secret=settings.cron_secret,
    )
    logger.info("PM server running on http://%s:%s/ (db: %s)", args.host, args.port, db_path)
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        httpd.server_close()


if __name__ == "__main__":
    main()
