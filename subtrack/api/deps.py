"""
FastAPI dependencies (DB session, "today")
"""
from fastapi import Query
from sqlalchemy.orm import Session

from subtrack.application.subscriptions import load_subscription_snapshot
from subtrack.domain.date_index import parse_iso_date, today
from subtrack.domain.subscription import Subscription
from subtrack.infrastructure.db.session import get_db as _get_db


# Re-export get_db для удобства
get_db = _get_db


def get_today(today_param: str | None = Query(None, alias="today")) -> int:
    """
    Day number of "today"

    An explicit ?today=YYYY-MM-DD wins (reproducible views); otherwise the
    local calendar date. Tests override this dependency.
    """
    if today_param:
        day = parse_iso_date(today_param)
        if day is not None:
            return day
    return today()


def get_snapshot(db: Session) -> list[Subscription]:
    """Immutable snapshot of the stored subscriptions"""
    return load_subscription_snapshot(db)
