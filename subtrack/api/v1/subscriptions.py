"""
Subscription API endpoints
"""
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from subtrack.api.deps import get_db, get_snapshot, get_today
from subtrack.application.charge_schedule import build_sort_rows, normalize_sort_mode, sort_rows
from subtrack.application.subscriptions import (
    DeleteSubscriptionUseCase, ReplaceSubscriptionsUseCase, SubscriptionValidationError,
    UpsertSubscriptionUseCase, build_export_payload, get_subscription,
    normalize_subscription_input, parse_import_payload,
)
from subtrack.domain.date_index import day_number_to_iso
from subtrack.utils.validation import normalize_decimal_input


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])


# === Request/Response models ===

class SubscriptionRequest(BaseModel):
    name: str
    price: str  # "9.99" / "9,99"
    currency: str  # USD, EUR, CNY
    cycle: str  # weekly, monthly, yearly
    start_date: str  # YYYY-MM-DD
    end_date: str | None = None
    color: str | None = None
    link: str | None = None

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, v) -> str:
        """Число или строка; запятая как десятичный разделитель допускается"""
        if isinstance(v, bool):
            raise ValueError("Price must be a number")
        return normalize_decimal_input(str(v).strip())


class SubscriptionResponse(BaseModel):
    id: str
    name: str
    price: float
    currency: str
    cycle: str
    start_date: str
    end_date: str | None
    color: str
    link: str
    prev_charge_date: str | None = None
    next_charge_date: str | None = None


def _iso_or_none(day: int | None) -> str | None:
    return day_number_to_iso(day) if day is not None else None


def _to_response(sub, schedule=None) -> SubscriptionResponse:
    return SubscriptionResponse(
        id=sub.id,
        name=sub.name,
        price=sub.price,
        currency=sub.currency,
        cycle=sub.cycle,
        start_date=day_number_to_iso(sub.start_day),
        end_date=_iso_or_none(sub.end_day),
        color=sub.color,
        link=sub.link,
        prev_charge_date=_iso_or_none(schedule.prev_charge_day) if schedule else None,
        next_charge_date=_iso_or_none(schedule.next_charge_day) if schedule else None,
    )


def _save(db: Session, req: SubscriptionRequest, sub_id: str | None = None, existing=None):
    try:
        sub = normalize_subscription_input(
            name=req.name,
            price=req.price,
            currency=req.currency,
            cycle=req.cycle,
            start_date=req.start_date,
            end_date=req.end_date,
            id=sub_id,
            color=req.color,
            link=req.link,
            existing=existing,
        )
    except SubscriptionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    UpsertSubscriptionUseCase(db).execute(sub)
    return sub


# === Endpoints ===

@router.get("/", response_model=list[SubscriptionResponse])
def list_subscriptions(
    sort: str | None = None,
    db: Session = Depends(get_db),
    today: int = Depends(get_today),
):
    """Список подписок; с ?sort=... в порядке выбранной сортировки"""
    rows = build_sort_rows(get_snapshot(db), today)
    if sort is not None:
        rows = sort_rows(rows, normalize_sort_mode(sort))
    return [_to_response(row.sub, row.schedule) for row in rows]


@router.post("/", response_model=SubscriptionResponse)
def create_subscription(req: SubscriptionRequest, db: Session = Depends(get_db)):
    """Создать подписку"""
    sub = _save(db, req)
    logger.info("Subscription created id=%s", sub.id)
    return _to_response(sub)


@router.put("/{sub_id}", response_model=SubscriptionResponse)
def update_subscription(sub_id: str, req: SubscriptionRequest, db: Session = Depends(get_db)):
    """Изменить подписку (id и created_at сохраняются)"""
    existing = get_subscription(db, sub_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return _to_response(_save(db, req, sub_id=sub_id, existing=existing))


@router.delete("/{sub_id}")
def delete_subscription(sub_id: str, db: Session = Depends(get_db)):
    """Удалить подписку"""
    try:
        DeleteSubscriptionUseCase(db).execute(sub_id)
    except SubscriptionValidationError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"ok": True}


@router.post("/import")
def import_subscriptions(payload: Any = Body(...), db: Session = Depends(get_db)):
    """
    Заменить все подписки содержимым экспортированного JSON

    Принимает список, {"subscriptions": [...]} или {"data": {"subscriptions": [...]}}
    """
    try:
        subs = parse_import_payload(payload)
    except SubscriptionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    count = ReplaceSubscriptionsUseCase(db).execute(subs)
    logger.info("Imported %d subscription(s)", count)
    return {"imported": count}


@router.get("/export")
def export_subscriptions(db: Session = Depends(get_db)):
    """Экспорт всех подписок в JSON"""
    return build_export_payload(get_snapshot(db))
