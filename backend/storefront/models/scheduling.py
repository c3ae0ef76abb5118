from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


class DeliveryWindow(db.Model):
    """
    A bookable delivery slot on a store-local calendar date.

    start_time/end_time are stored as entered ("5:00 PM" or "17:00").
    Whether a window is closed is derived at read time, never stored.
    """
    __tablename__ = "delivery_windows"
    __table_args__ = (
        db.Index("ix_delivery_windows_slot", "date", "start_time", "end_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.String(10), nullable=False, index=True)  # YYYY-MM-DD
    start_time = db.Column(db.String(16), nullable=False)
    end_time = db.Column(db.String(16), nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=10)
    current_bookings = db.Column(db.Integer, nullable=False, default=0)
    enabled = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def is_full(self) -> bool:
        return self.current_bookings >= self.capacity

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "capacity": self.capacity,
            "current_bookings": self.current_bookings,
            "enabled": self.enabled,
            "created_at": to_utc_z(self.created_at),
        }


class WeeklyDeliveryTemplate(db.Model):
    """Recurring slot pattern. day_of_week: 0 = Sunday ... 6 = Saturday."""
    __tablename__ = "weekly_delivery_templates"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    day_of_week = db.Column(db.Integer, nullable=False, index=True)
    start_time = db.Column(db.String(16), nullable=False)
    end_time = db.Column(db.String(16), nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=10)
    enabled = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "day_of_week": self.day_of_week,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "capacity": self.capacity,
            "enabled": self.enabled,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
