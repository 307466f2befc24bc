"""`python -m plumbing_pos`: create/upgrade the local database and report its state."""
import argparse
import sys

from . import config
from .constants import APP_NAME
from .database import DatabaseContext
from .errors import StorageError
from .utils.helpers import fmt_money
from .utils.loggers import get_logger


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="plumbing_pos", description=f"{APP_NAME} database bootstrap")
    parser.add_argument("--db", default=str(config.DB_PATH), help="database file (default: %(default)s)")
    args = parser.parse_args(argv)

    log = get_logger("plumbing_pos", log_file=config.LOG_DIR / "plumbing_pos.log")
    try:
        with DatabaseContext(args.db) as db:
            n = db.fetch_one("SELECT COUNT(*) AS n FROM accounts")["n"]
            sales = db.fetch_one("SELECT COUNT(*) AS n, COALESCE(SUM(total_price), 0) AS t FROM sales")
            log.info(
                "DB OK: %s (%s account(s), %s sale(s), revenue %s)",
                args.db, n, sales["n"], fmt_money(sales["t"]),
            )
    except StorageError as e:
        log.error("Database unavailable: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
