from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


class Setting(db.Model):
    """
    Admin-tunable runtime settings (key/value).

    Values are stored as text; settings_service owns parsing and the
    fallback to application config when a key is absent.
    """
    __tablename__ = "settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False, unique=True)
    value = db.Column(db.Text, nullable=True)
    description = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "key": self.key,
            "value": self.value,
            "description": self.description,
            "updated_at": to_utc_z(self.updated_at),
        }
