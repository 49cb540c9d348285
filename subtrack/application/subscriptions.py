"""
Subscription use cases: validation of form input, JSON import/export and the
SQL store that hands immutable snapshots to the timeline engine.

Invalid input is rejected here (SubscriptionValidationError); the engine only
ever sees records that passed ingestion.
"""
import logging
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from subtrack.config import get_settings
from subtrack.domain.date_index import (
    DayRange, date_to_day_number, day_number_to_date, day_number_to_iso,
    parse_iso_date, supported_range,
)
from subtrack.domain.subscription import CYCLE_MONTHLY, VALID_CYCLES, Subscription, normalize_cycle
from subtrack.infrastructure.db.models import SubscriptionModel
from subtrack.utils.validation import is_iso4217_like, normalize_currency_code, parse_price

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#b3e2cd"
EXPORT_VERSION = 1


class SubscriptionValidationError(ValueError):
    pass


def generate_id() -> str:
    return str(uuid.uuid4())


def _to_day(value) -> int | None:
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return date_to_day_number(value)
    return parse_iso_date(str(value or "").strip())


def _parse_datetime(value) -> datetime | None:
    if isinstance(value, datetime):
        return value
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


# ============================================================================
# Form input
# ============================================================================


def normalize_subscription_input(
    name,
    price,
    currency,
    cycle,
    start_date,
    end_date=None,
    id: str | None = None,
    color: str | None = None,
    link: str | None = None,
    existing: Subscription | None = None,
    now: datetime | None = None,
    bounds: DayRange | None = None,
) -> Subscription:
    """
    Validate and normalize one subscription from form input

    Args:
        name, price, currency, cycle: required fields
        start_date, end_date: ISO YYYY-MM-DD (or date); end_date optional
        id: keeps identity on edit; generated when missing
        existing: previous version (keeps id, color and created_at)
        now: creation timestamp for new records

    Returns:
        Subscription ready for the store and the engine

    Raises:
        SubscriptionValidationError: on any invalid field
    """
    bounds = bounds or supported_range()
    settings = get_settings()

    clean_name = str(name or "").strip()
    if not clean_name:
        raise SubscriptionValidationError("Name is required")

    try:
        clean_price = parse_price(price)
    except ValueError as e:
        raise SubscriptionValidationError(str(e)) from e

    clean_currency = normalize_currency_code(currency)
    if not clean_currency:
        raise SubscriptionValidationError("Currency is required")
    if not is_iso4217_like(clean_currency):
        raise SubscriptionValidationError(f"Currency must be a 3-letter code, got: {currency}")

    clean_cycle = str(cycle or "").strip().lower()
    if not clean_cycle:
        raise SubscriptionValidationError("Cycle is required")
    if clean_cycle not in VALID_CYCLES:
        raise SubscriptionValidationError(f"Unknown cycle: {cycle}")

    range_text = f"{settings.MIN_SUPPORTED_YEAR}..{settings.MAX_SUPPORTED_YEAR}"
    start_day = _to_day(start_date)
    if start_day is None:
        raise SubscriptionValidationError("Start date must be a valid YYYY-MM-DD date")
    if not bounds.contains(start_day):
        raise SubscriptionValidationError(f"Start date must be within {range_text}")

    end_day = None
    if end_date is not None and str(end_date).strip():
        end_day = _to_day(end_date)
        if end_day is None:
            raise SubscriptionValidationError("End date must be a valid YYYY-MM-DD date")
        if not bounds.contains(end_day):
            raise SubscriptionValidationError(f"End date must be within {range_text}")
        if end_day < start_day:
            raise SubscriptionValidationError("End date cannot be before start date")

    if existing is not None:
        created_at = existing.created_at
    else:
        created_at = now or datetime.now(timezone.utc)

    return Subscription(
        id=str(id or (existing.id if existing else "") or generate_id()).strip(),
        name=clean_name,
        price=clean_price,
        currency=clean_currency,
        cycle=clean_cycle,
        start_day=start_day,
        end_day=end_day,
        color=str(color or (existing.color if existing else "") or DEFAULT_COLOR).strip(),
        link=str(link or "").strip(),
        created_at=created_at,
    )


# ============================================================================
# JSON import / export
# ============================================================================


def _field(raw: dict, *names):
    for name in names:
        if name in raw and raw[name] is not None:
            return raw[name]
    return None


def normalize_imported_subscription(raw, now: datetime | None = None) -> Subscription | None:
    """
    Lenient import of one stored record (camelCase or snake_case keys)

    Returns None for records without a name or a valid start date, or with an
    end date before the start date. Missing id/price/currency/cycle get
    defaults instead of failing.
    """
    if not isinstance(raw, dict):
        return None
    name = str(_field(raw, "name") or "").strip()
    start_day = _to_day(_field(raw, "startDate", "start_date"))
    if not name or start_day is None:
        return None

    end_raw = _field(raw, "endDate", "end_date")
    end_day = _to_day(end_raw) if end_raw not in (None, "") else None
    if end_day is not None and end_day < start_day:
        return None

    try:
        price = parse_price(_field(raw, "price"))
    except ValueError:
        price = 0.0

    currency = normalize_currency_code(_field(raw, "currency") or "USD")
    if not is_iso4217_like(currency):
        currency = "USD"

    raw_id = _field(raw, "id")
    sub_id = raw_id.strip() if isinstance(raw_id, str) and raw_id.strip() else generate_id()

    created_at = _parse_datetime(_field(raw, "createdAt", "created_at"))
    return Subscription(
        id=sub_id,
        name=name,
        price=price,
        currency=currency,
        cycle=normalize_cycle(_field(raw, "cycle") or CYCLE_MONTHLY),
        start_day=start_day,
        end_day=end_day,
        color=str(_field(raw, "color") or "").strip(),
        link=str(_field(raw, "link") or "").strip(),
        created_at=created_at or now or datetime.now(timezone.utc),
    )


def parse_import_payload(payload, now: datetime | None = None) -> list[Subscription]:
    """
    Accepts a list, {"subscriptions": [...]} or {"data": {"subscriptions": [...]}}

    Invalid records are dropped; duplicate ids keep the first record.

    Raises:
        SubscriptionValidationError: unknown payload shape or nothing importable
    """
    items = None
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        if isinstance(payload.get("subscriptions"), list):
            items = payload["subscriptions"]
        elif isinstance(payload.get("data"), dict) and isinstance(payload["data"].get("subscriptions"), list):
            items = payload["data"]["subscriptions"]
    if items is None:
        raise SubscriptionValidationError("Import payload has no subscriptions list")

    out: list[Subscription] = []
    seen: set[str] = set()
    for raw in items:
        sub = normalize_imported_subscription(raw, now=now)
        if sub is None:
            continue
        if sub.id in seen:
            logger.warning("Import: duplicate subscription id=%s dropped", sub.id)
            continue
        seen.add(sub.id)
        out.append(sub)

    if not out:
        raise SubscriptionValidationError("Import payload contains no valid subscriptions")
    if len(out) < len(items):
        logger.info("Import: %d of %d record(s) accepted", len(out), len(items))
    return out


def subscription_to_record(sub: Subscription) -> dict:
    """Stored JSON shape of one subscription"""
    return {
        "id": sub.id,
        "name": sub.name,
        "price": sub.price,
        "currency": sub.currency,
        "cycle": sub.cycle,
        "startDate": day_number_to_iso(sub.start_day),
        "endDate": day_number_to_iso(sub.end_day) if sub.end_day is not None else "",
        "color": sub.color,
        "link": sub.link,
        "createdAt": sub.created_at.isoformat() if sub.created_at else "",
    }


def build_export_payload(subscriptions, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    return {
        "version": EXPORT_VERSION,
        "exported_at": now.isoformat(),
        "subscriptions": [subscription_to_record(s) for s in subscriptions],
    }


# ============================================================================
# Store (snapshot provider)
# ============================================================================


def subscription_from_model(row: SubscriptionModel) -> Subscription:
    return Subscription(
        id=row.id,
        name=row.name,
        price=float(row.price),
        currency=row.currency,
        cycle=row.cycle,
        start_day=date_to_day_number(row.start_date),
        end_day=date_to_day_number(row.end_date) if row.end_date is not None else None,
        color=row.color or "",
        link=row.link or "",
        created_at=row.created_at,
    )


def _apply_to_model(row: SubscriptionModel, sub: Subscription) -> None:
    row.name = sub.name
    row.price = sub.price
    row.currency = sub.currency
    row.cycle = sub.cycle
    row.start_date = day_number_to_date(sub.start_day)
    row.end_date = day_number_to_date(sub.end_day) if sub.end_day is not None else None
    row.color = sub.color
    row.link = sub.link
    if sub.created_at is not None:
        row.created_at = sub.created_at


def load_subscription_snapshot(db: Session) -> list[Subscription]:
    """All stored subscriptions in the user's order"""
    rows = db.query(SubscriptionModel).order_by(SubscriptionModel.position, SubscriptionModel.id).all()
    return [subscription_from_model(row) for row in rows]


def get_subscription(db: Session, sub_id: str) -> Subscription | None:
    row = db.query(SubscriptionModel).filter(SubscriptionModel.id == sub_id).first()
    return subscription_from_model(row) if row else None


class UpsertSubscriptionUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, sub: Subscription) -> str:
        row = self.db.query(SubscriptionModel).filter(SubscriptionModel.id == sub.id).first()
        if row is None:
            last = self.db.query(func.max(SubscriptionModel.position)).scalar()
            row = SubscriptionModel(id=sub.id, position=(last if last is not None else -1) + 1)
            self.db.add(row)
        _apply_to_model(row, sub)
        self.db.commit()
        return sub.id


class DeleteSubscriptionUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, sub_id: str) -> None:
        row = self.db.query(SubscriptionModel).filter(SubscriptionModel.id == sub_id).first()
        if not row:
            raise SubscriptionValidationError("Subscription not found")
        self.db.delete(row)
        self.db.commit()


class ReplaceSubscriptionsUseCase:
    """Import: the stored list becomes exactly the given snapshot"""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, subscriptions: list[Subscription]) -> int:
        self.db.query(SubscriptionModel).delete()
        for position, sub in enumerate(subscriptions):
            row = SubscriptionModel(id=sub.id, position=position)
            _apply_to_model(row, sub)
            self.db.add(row)
        self.db.commit()
        return len(subscriptions)
