"""
Timeline API endpoints

Stateless: the client sends its viewport / selection state with every call
and gets the new state back. Totals are computed from the stored snapshot
(or an inline one for /totals) on each request.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from subtrack.api.deps import get_db, get_snapshot, get_today
from subtrack.application.charge_schedule import build_sort_rows, normalize_sort_mode, sort_rows
from subtrack.application.charge_totals import ChargeTotals, compute_charge_totals
from subtrack.application.selection import SelectionEntry, SelectionSet
from subtrack.application.stats import build_summary
from subtrack.application.subscriptions import normalize_imported_subscription
from subtrack.application.viewport import ViewportMapper
from subtrack.domain.date_index import (
    day_number_to_iso, day_number_to_parts, parse_iso_date, supported_range, year_bounds,
)
from subtrack.utils.money import format_totals_inline, format_totals_title


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/timeline", tags=["timeline"])


# === Request/Response models ===

class ViewportModel(BaseModel):
    day_width_px: float | None = None
    range_start: str | None = None  # YYYY-MM-DD
    range_end: str | None = None
    scroll_left_px: float = 0.0
    viewport_width_px: float = 0.0


class SelectionEntryModel(BaseModel):
    kind: str  # day, month, year
    anchor_date: str  # YYYY-MM-DD


class TotalsRequest(BaseModel):
    start_date: str
    end_date: str
    subscriptions: list[dict[str, Any]] | None = None  # inline snapshot instead of the store


class ZoomRequest(BaseModel):
    viewport: ViewportModel = ViewportModel()
    day_width_px: float | None = None  # absolute target width
    direction: str | None = None  # "in" / "out" (button zoom)
    anchor_x: float | None = None  # viewport pixel kept in place


class ToggleRequest(BaseModel):
    viewport: ViewportModel = ViewportModel()
    entries: list[SelectionEntryModel] = []
    kind: str
    anchor_date: str


# === Helpers ===

def _parse_day(value: str | None, field: str) -> int | None:
    if value is None or not str(value).strip():
        return None
    day = parse_iso_date(value)
    if day is None:
        raise HTTPException(status_code=400, detail=f"{field} must be a valid YYYY-MM-DD date")
    return day


def _build_viewport(model: ViewportModel, subscriptions, today: int) -> ViewportMapper:
    start = _parse_day(model.range_start, "range_start")
    end = _parse_day(model.range_end, "range_end")
    has_range = start is not None and end is not None
    viewport = ViewportMapper(
        day_width_px=model.day_width_px,
        range_start_day=start if has_range else today,
        range_end_day=end if has_range else today,
        scroll_left_px=model.scroll_left_px,
        viewport_width_px=model.viewport_width_px,
    )
    if not has_range:
        viewport.ensure_range_for_subscriptions(subscriptions, today)
    return viewport


def _viewport_response(viewport: ViewportMapper) -> dict:
    lod = viewport.level_of_detail()
    visible = viewport.visible_day_range()
    return {
        "day_width_px": viewport.day_width_px,
        "range_start": day_number_to_iso(viewport.range_start_day),
        "range_end": day_number_to_iso(viewport.range_end_day),
        "scroll_left_px": viewport.scroll_left_px,
        "viewport_width_px": viewport.viewport_width_px,
        "timeline_width_px": viewport.timeline_width_px,
        "visible_start": day_number_to_iso(visible.start),
        "visible_end": day_number_to_iso(visible.end),
        "level_of_detail": {"day": lod.show_day, "month": lod.show_month, "year": lod.show_year},
    }


def _bucket_response(bucket: dict) -> dict:
    return {
        "totals": bucket,
        "text": format_totals_inline(bucket),
        "title": format_totals_title(bucket),
    }


def _totals_response(totals: ChargeTotals) -> dict:
    months = {}
    for key, bucket in totals.month_totals.items():
        year, month_index = divmod(key, 12)
        months[f"{year}-{month_index + 1:02d}"] = bucket
    return {
        "range_start": day_number_to_iso(totals.range_start),
        "range_end": day_number_to_iso(totals.range_end),
        "day_totals": {day_number_to_iso(day): bucket for day, bucket in sorted(totals.day_totals.items())},
        "month_totals": dict(sorted(months.items())),
        "year_totals": {str(year): bucket for year, bucket in sorted(totals.year_totals.items())},
    }


# === Endpoints ===

@router.post("/totals")
def range_totals(req: TotalsRequest, db: Session = Depends(get_db)):
    """Суммы списаний по дням / месяцам / годам за диапазон"""
    bounds = supported_range()
    start = _parse_day(req.start_date, "start_date")
    end = _parse_day(req.end_date, "end_date")
    if start is None or end is None:
        raise HTTPException(status_code=400, detail="start_date and end_date are required")
    start, end = bounds.clamp(start), bounds.clamp(end)
    if end < start:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")

    if req.subscriptions is not None:
        subscriptions = [
            sub for sub in (normalize_imported_subscription(raw) for raw in req.subscriptions)
            if sub is not None
        ]
    else:
        subscriptions = get_snapshot(db)
    return _totals_response(compute_charge_totals(subscriptions, start, end))


@router.get("/schedule")
def charge_schedule(
    sort: str | None = None,
    db: Session = Depends(get_db),
    today: int = Depends(get_today),
):
    """Строки подписок с прошлым / следующим списанием в порядке сортировки"""
    mode = normalize_sort_mode(sort)
    rows = sort_rows(build_sort_rows(get_snapshot(db), today), mode)
    return {
        "today": day_number_to_iso(today),
        "sort": mode,
        "rows": [
            {
                "id": row.sub.id,
                "name": row.sub.name,
                "price": row.sub.price,
                "currency": row.sub.currency,
                "cycle": row.sub.cycle,
                "prev_charge_date": day_number_to_iso(row.schedule.prev_charge_day)
                if row.schedule.prev_charge_day is not None else None,
                "next_charge_date": day_number_to_iso(row.schedule.next_charge_day)
                if row.schedule.next_charge_day is not None else None,
            }
            for row in rows
        ],
    }


@router.post("/zoom")
def zoom(req: ZoomRequest, db: Session = Depends(get_db), today: int = Depends(get_today)):
    """Зум с сохранением дня под якорем (по умолчанию центр вьюпорта)"""
    viewport = _build_viewport(req.viewport, get_snapshot(db), today)
    if req.direction is not None:
        if req.direction not in ("in", "out"):
            raise HTTPException(status_code=400, detail=f"Unknown zoom direction: {req.direction}")
        anchor = viewport.viewport_x_to_day_float(req.anchor_x) if req.anchor_x is not None else None
        changed = viewport.zoom_in(anchor) if req.direction == "in" else viewport.zoom_out(anchor)
    elif req.day_width_px is not None:
        if req.anchor_x is not None:
            changed = viewport.zoom_at(req.day_width_px, req.anchor_x)
        else:
            changed = viewport.set_zoom(req.day_width_px)
    else:
        raise HTTPException(status_code=400, detail="Either day_width_px or direction is required")

    extended = viewport.maybe_extend_on_scroll()
    return {"changed": changed or extended, "viewport": _viewport_response(viewport)}


@router.post("/selection/toggle")
def toggle_selection(req: ToggleRequest, db: Session = Depends(get_db), today: int = Depends(get_today)):
    """Выделить / снять выделение дня, месяца или года; суммы по выделению"""
    anchor = _parse_day(req.anchor_date, "anchor_date")
    if anchor is None:
        raise HTTPException(status_code=400, detail="anchor_date is required")

    subscriptions = get_snapshot(db)
    viewport = _build_viewport(req.viewport, subscriptions, today)
    entries = []
    for entry in req.entries:
        day = _parse_day(entry.anchor_date, "anchor_date")
        if day is not None:
            entries.append(SelectionEntry(kind=entry.kind, anchor_day=day))
    selection = SelectionSet(viewport, entries)
    result = selection.toggle(req.kind, anchor)

    totals = compute_charge_totals(subscriptions, viewport.range_start_day, viewport.range_end_day)
    info = selection.totals_info(totals)
    return {
        "selected": result.selected,
        "range_changed": result.range_changed,
        "viewport": _viewport_response(viewport),
        "entries": [
            {"kind": entry.kind, "anchor_date": day_number_to_iso(entry.anchor_day)}
            for entry in selection.entries
        ],
        "spans": [
            {
                "kind": span.kind,
                "start_date": day_number_to_iso(span.start_day),
                "end_date": day_number_to_iso(span.end_day),
                "label": span.label,
            }
            for span in selection.effective_spans()
        ],
        "selection_totals": None if info is None else {
            "kind": info.kind,
            "label": info.label,
            "start_date": day_number_to_iso(info.start_day),
            **_bucket_response(info.totals),
        },
    }


@router.get("/summary")
def summary(db: Session = Depends(get_db), today: int = Depends(get_today)):
    """Статистика: активные подписки, суммы за сегодня / месяц / год"""
    subscriptions = get_snapshot(db)
    bounds = supported_range()
    year = year_bounds(day_number_to_parts(today).year)
    totals = compute_charge_totals(subscriptions, bounds.clamp(year.start), bounds.clamp(year.end))
    result = build_summary(subscriptions, totals, today)
    return {
        "today": day_number_to_iso(today),
        "active_count": result.active_count,
        "today_totals": _bucket_response(result.today_totals),
        "month_totals": _bucket_response(result.month_totals),
        "year_totals": _bucket_response(result.year_totals),
        "monthly_estimate": _bucket_response(result.monthly_estimate),
        "yearly_estimate": _bucket_response(result.yearly_estimate),
    }
