# Overview: Service-layer operations for runtime settings; encapsulates business logic and database work.

"""
Runtime settings.

WHY: Delivery radius, fee schedule and the driver notification address
are tuned by store staff without a redeploy. Values live in the
`settings` table as text; when a key has never been written the
application config value is used.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Setting
from ..money import to_money
from ..validation import ValidationError, coerce_money
from .pricing_service import FeeSchedule, FeeType


KEY_DELIVERY_RADIUS = "delivery_radius_miles"
KEY_FEE_TYPE = "delivery_fee_type"
KEY_FLAT_FEE = "delivery_flat_fee"
KEY_PER_MILE_FEE = "delivery_per_mile_fee"
KEY_PER_ITEM_FEE = "delivery_per_item_fee"
KEY_DRIVER_EMAIL = "driver_notification_email"

# setting key -> config key used as fallback
CONFIG_FALLBACKS = {
    KEY_DELIVERY_RADIUS: "DELIVERY_RADIUS_MILES",
    KEY_FEE_TYPE: "DELIVERY_FEE_TYPE",
    KEY_FLAT_FEE: "DELIVERY_FLAT_FEE",
    KEY_PER_MILE_FEE: "DELIVERY_PER_MILE_FEE",
    KEY_PER_ITEM_FEE: "DELIVERY_PER_ITEM_FEE",
    KEY_DRIVER_EMAIL: "DRIVER_NOTIFICATION_EMAIL",
}


def get_setting(key: str) -> str | None:
    row = db.session.query(Setting).filter_by(key=key).first()
    if row is not None and row.value is not None:
        return row.value
    config_key = CONFIG_FALLBACKS.get(key)
    if config_key is None:
        return None
    value = current_app.config.get(config_key)
    return None if value is None else str(value)


def upsert_setting(key: str, value: str | None, description: str | None = None, commit: bool = True) -> Setting:
    row = db.session.query(Setting).filter_by(key=key).first()
    if row is None:
        row = Setting(key=key, value=value, description=description)
        db.session.add(row)
    else:
        row.value = value
        if description is not None:
            row.description = description
    if commit:
        db.session.commit()
    return row


def get_delivery_radius() -> float:
    raw = get_setting(KEY_DELIVERY_RADIUS)
    try:
        radius = float(raw)
    except (TypeError, ValueError):
        current_app.logger.warning("Invalid delivery radius setting %r; using config default", raw)
        radius = float(current_app.config["DELIVERY_RADIUS_MILES"])
    return radius


def get_tax_rate() -> Decimal:
    return Decimal(str(current_app.config["TAX_RATE"]))


def get_fee_schedule() -> FeeSchedule:
    raw_type = get_setting(KEY_FEE_TYPE) or FeeType.FLAT.value
    try:
        fee_type = FeeType(raw_type)
    except ValueError:
        current_app.logger.warning("Unknown delivery fee type %r; falling back to flat", raw_type)
        fee_type = FeeType.FLAT

    return FeeSchedule(
        fee_type=fee_type,
        flat_fee=to_money(get_setting(KEY_FLAT_FEE) or "0"),
        per_mile_fee=to_money(get_setting(KEY_PER_MILE_FEE) or "0"),
        per_item_fee=to_money(get_setting(KEY_PER_ITEM_FEE) or "0"),
    )


def update_fee_schedule(data: dict) -> dict:
    """Partial update of the fee settings; returns the resulting schedule."""
    if "fee_type" in data:
        try:
            FeeType(data["fee_type"])
        except ValueError:
            valid = ", ".join(t.value for t in FeeType)
            raise ValidationError(f"fee_type must be one of: {valid}")
        upsert_setting(KEY_FEE_TYPE, data["fee_type"], "Delivery fee type", commit=False)

    for field, key in (
        ("flat_fee", KEY_FLAT_FEE),
        ("per_mile_fee", KEY_PER_MILE_FEE),
        ("per_item_fee", KEY_PER_ITEM_FEE),
    ):
        if field in data:
            amount = coerce_money(data[field], field)
            upsert_setting(key, f"{amount:.2f}", commit=False)

    if "delivery_radius_miles" in data:
        try:
            radius = float(data["delivery_radius_miles"])
        except (TypeError, ValueError):
            raise ValidationError("delivery_radius_miles must be a number")
        if radius <= 0:
            raise ValidationError("delivery_radius_miles must be > 0")
        upsert_setting(KEY_DELIVERY_RADIUS, str(radius), "Delivery zone radius in miles", commit=False)

    db.session.commit()
    return fee_settings_dict()


def fee_settings_dict() -> dict:
    return {**get_fee_schedule().to_dict(), "delivery_radius_miles": get_delivery_radius()}


def get_driver_notification_email() -> str | None:
    return get_setting(KEY_DRIVER_EMAIL) or None


def update_driver_notification_email(email: str | None) -> str | None:
    email = (email or "").strip() or None
    if email is not None and "@" not in email:
        raise ValidationError("driver_notification_email must be an email address")
    upsert_setting(KEY_DRIVER_EMAIL, email, "Address notified of new delivery orders")
    return email
