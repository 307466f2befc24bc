# plumbing_pos/utils/helpers.py
from datetime import datetime, timedelta, timezone
import logging
from typing import Optional, Union

from ..constants import DB_TIMESTAMP_FORMAT

NumberLike = Union[float, int, str]

_log = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Timezone-aware current time in UTC (the clock SQLite's CURRENT_TIMESTAMP uses)."""
    return datetime.now(timezone.utc)


def to_db_timestamp(moment: datetime) -> str:
    """Render `moment` as 'YYYY-MM-DD HH:MM:SS' in UTC, comparable with CURRENT_TIMESTAMP text."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(DB_TIMESTAMP_FORMAT)


def cutoff_timestamp(now: datetime, days: int) -> str:
    """DB timestamp text for `now - days`."""
    return to_db_timestamp(now - timedelta(days=days))


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and a fixed number of decimals.

    On parse failure returns str(v), or `sentinel` when given; raises ValueError
    when `strict=True`.
    """
    try:
        x = float(v)
    except (TypeError, ValueError) as e:
        _log.debug("fmt_money: failed to parse %r as float: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    return f"{x:,.{places}f}"
