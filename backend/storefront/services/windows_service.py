# Overview: Service-layer operations for delivery windows; weekly templates, window generation, and availability.

"""
Delivery Windows

WHY: Customers book a dated, capacity-bounded slot. Staff maintain a weekly
pattern (templates); concrete windows are generated from it a few days ahead.

RULES:
- Generation is idempotent: an existing (date, start, end) window is skipped
- day_of_week uses 0 = Sunday
- A window closes WINDOW_CUTOFF_MINUTES (default 60) before it starts; closed
  state is computed on every read, in store-local time
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import DeliveryWindow, WeeklyDeliveryTemplate
from ..time_utils import (
    combine_local,
    date_range,
    day_of_week_sunday_first,
    parse_clock_time,
    parse_date,
    store_now,
)
from ..validation import ValidationError, coerce_bool, coerce_int


logger = logging.getLogger(__name__)


WINDOW_CLOSED_REASON = "This delivery window has closed (1 hour before start time)"
AVAILABLE_DAYS = 5  # today + 4


class WindowError(Exception):
    """Raised for delivery window errors."""

    status_code = 400


class WindowNotFoundError(WindowError):
    status_code = 404


@dataclass(frozen=True)
class GenerationResult:
    created: int
    skipped: int

    def to_dict(self) -> dict:
        return {"created": self.created, "skipped": self.skipped}


# =============================================================================
# CLOSED STATE
# =============================================================================

def _cutoff() -> timedelta:
    return timedelta(minutes=int(current_app.config.get("WINDOW_CUTOFF_MINUTES", 60)))


def window_start(window: DeliveryWindow) -> datetime:
    return combine_local(parse_date(window.date), window.start_time)


def is_window_closed(window: DeliveryWindow, now: datetime | None = None) -> bool:
    """True once now + cutoff reaches the window start (store-local clock)."""
    now = now or store_now()
    return now + _cutoff() >= window_start(window)


def window_to_dict(window: DeliveryWindow, now: datetime | None = None) -> dict:
    closed = is_window_closed(window, now)
    data = window.to_dict()
    data["is_closed"] = closed
    data["closed_reason"] = WINDOW_CLOSED_REASON if closed else None
    data["is_full"] = window.is_full
    return data


def list_available_windows(on_date: date | None = None, now: datetime | None = None) -> list[dict]:
    """Enabled windows from today through today + 4 (or a single date), with closed state."""
    now = now or store_now()
    q = db.session.query(DeliveryWindow).filter(DeliveryWindow.enabled.is_(True))
    if on_date is not None:
        q = q.filter(DeliveryWindow.date == on_date.isoformat())
    else:
        days = [d.isoformat() for d in date_range(now.date(), AVAILABLE_DAYS)]
        q = q.filter(DeliveryWindow.date.in_(days))
    windows = q.order_by(DeliveryWindow.date, DeliveryWindow.id).all()
    windows.sort(key=lambda w: (w.date, parse_clock_time(w.start_time)))
    return [window_to_dict(w, now) for w in windows]


def list_all_windows() -> list[dict]:
    windows = db.session.query(DeliveryWindow).order_by(DeliveryWindow.date.desc(), DeliveryWindow.id).all()
    now = store_now()
    return [window_to_dict(w, now) for w in windows]


# =============================================================================
# GENERATION
# =============================================================================

def generate_windows_from_templates(days_ahead: int = 4, today: date | None = None) -> GenerationResult:
    """Create windows for today .. today + days_ahead from enabled templates."""
    if days_ahead < 0:
        raise ValidationError("days_ahead must be >= 0")
    today = today or store_now().date()

    templates = db.session.query(WeeklyDeliveryTemplate).filter(WeeklyDeliveryTemplate.enabled.is_(True)).all()
    by_day: dict[int, list[WeeklyDeliveryTemplate]] = {}
    for template in templates:
        by_day.setdefault(template.day_of_week, []).append(template)

    created = skipped = 0
    for day in date_range(today, days_ahead + 1):
        day_str = day.isoformat()
        for template in by_day.get(day_of_week_sunday_first(day), []):
            exists = db.session.query(DeliveryWindow.id).filter_by(
                date=day_str, start_time=template.start_time, end_time=template.end_time
            ).first()
            if exists:
                skipped += 1
                continue
            db.session.add(DeliveryWindow(
                date=day_str,
                start_time=template.start_time,
                end_time=template.end_time,
                capacity=template.capacity,
                current_bookings=0,
                enabled=True,
            ))
            db.session.flush()
            created += 1

    db.session.commit()
    logger.info("[Delivery Windows] Generated %d windows, skipped %d existing", created, skipped)
    return GenerationResult(created=created, skipped=skipped)


# =============================================================================
# TEMPLATE / WINDOW CRUD
# =============================================================================

def _clean_time(data: dict, field: str) -> str:
    value = (data.get(field) or "").strip()
    try:
        parse_clock_time(value)
    except ValueError:
        raise ValidationError(f"{field} must be a time like '5:00 PM' or '17:00'")
    return value


def _check_range(start: str, end: str) -> None:
    if parse_clock_time(end) <= parse_clock_time(start):
        raise ValidationError("end_time must be after start_time")


def list_templates() -> list[dict]:
    rows = db.session.query(WeeklyDeliveryTemplate).order_by(
        WeeklyDeliveryTemplate.day_of_week, WeeklyDeliveryTemplate.id
    ).all()
    return [t.to_dict() for t in rows]


def create_template(data: dict) -> dict:
    day = coerce_int(data.get("day_of_week"), "day_of_week", minimum=0)
    if day > 6:
        raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    start = _clean_time(data, "start_time")
    end = _clean_time(data, "end_time")
    _check_range(start, end)
    template = WeeklyDeliveryTemplate(
        day_of_week=day,
        start_time=start,
        end_time=end,
        capacity=coerce_int(data.get("capacity", 10), "capacity", minimum=1),
        enabled=coerce_bool(data.get("enabled", True)),
    )
    db.session.add(template)
    db.session.commit()
    return template.to_dict()


def update_template(template_id: int, data: dict) -> dict:
    template = db.session.get(WeeklyDeliveryTemplate, template_id)
    if template is None:
        raise WindowNotFoundError("Template not found")
    if "day_of_week" in data:
        day = coerce_int(data["day_of_week"], "day_of_week", minimum=0)
        if day > 6:
            raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
        template.day_of_week = day
    if "start_time" in data:
        template.start_time = _clean_time(data, "start_time")
    if "end_time" in data:
        template.end_time = _clean_time(data, "end_time")
    _check_range(template.start_time, template.end_time)
    if "capacity" in data:
        template.capacity = coerce_int(data["capacity"], "capacity", minimum=1)
    if "enabled" in data:
        template.enabled = coerce_bool(data["enabled"])
    db.session.commit()
    return template.to_dict()


def delete_template(template_id: int) -> None:
    template = db.session.get(WeeklyDeliveryTemplate, template_id)
    if template is None:
        raise WindowNotFoundError("Template not found")
    db.session.delete(template)
    db.session.commit()


def get_window(window_id: int) -> DeliveryWindow:
    window = db.session.get(DeliveryWindow, window_id)
    if window is None:
        raise WindowNotFoundError("Delivery window not found")
    return window


def create_window(data: dict) -> dict:
    try:
        day = parse_date(data.get("date") or "")
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD")
    start = _clean_time(data, "start_time")
    end = _clean_time(data, "end_time")
    _check_range(start, end)
    window = DeliveryWindow(
        date=day.isoformat(),
        start_time=start,
        end_time=end,
        capacity=coerce_int(data.get("capacity", 10), "capacity", minimum=1),
        enabled=coerce_bool(data.get("enabled", True)),
    )
    db.session.add(window)
    db.session.commit()
    return window_to_dict(window)


def update_window(window_id: int, data: dict) -> dict:
    window = get_window(window_id)
    if "capacity" in data:
        capacity = coerce_int(data["capacity"], "capacity", minimum=1)
        if capacity < window.current_bookings:
            raise WindowError("Capacity cannot be lower than current bookings")
        window.capacity = capacity
    if "enabled" in data:
        window.enabled = coerce_bool(data["enabled"])
    if "start_time" in data:
        window.start_time = _clean_time(data, "start_time")
    if "end_time" in data:
        window.end_time = _clean_time(data, "end_time")
    _check_range(window.start_time, window.end_time)
    db.session.commit()
    return window_to_dict(window)


def delete_window(window_id: int) -> None:
    window = get_window(window_id)
    if window.current_bookings > 0:
        raise WindowError("Cannot delete a delivery window that has bookings")
    db.session.delete(window)
    db.session.commit()
