from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


APPROVAL_PENDING = "pending"
APPROVAL_APPROVED = "approved"
APPROVAL_REJECTED = "rejected"
VALID_APPROVAL_STATUSES = (APPROVAL_PENDING, APPROVAL_APPROVED, APPROVAL_REJECTED)


class DeliveryCustomer(db.Model):
    """
    A delivery customer account.

    Accounts start pending and must be approved (photo ID check) before
    the customer can set a password, shop, or receive cart reminders.
    lat/lng come from geocoding; when either is missing the address is
    treated as unverified and checkout fails closed.
    """
    __tablename__ = "delivery_customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)

    address = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(128), nullable=True)
    state = db.Column(db.String(64), nullable=True)
    zip_code = db.Column(db.String(16), nullable=True)
    lat = db.Column(db.Float, nullable=True)
    lng = db.Column(db.Float, nullable=True)

    photo_id_url = db.Column(db.String(512), nullable=True)

    approval_status = db.Column(db.String(16), nullable=False, default=APPROVAL_PENDING, index=True)
    approved_by = db.Column(db.String(128), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    password_hash = db.Column(db.String(255), nullable=True)
    must_change_password = db.Column(db.Boolean, nullable=False, default=False)
    password_setup_token = db.Column(db.String(128), nullable=True, unique=True)
    password_setup_token_expiry = db.Column(db.DateTime, nullable=True)
    password_reset_token = db.Column(db.String(128), nullable=True, unique=True)
    password_reset_token_expiry = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_approved(self) -> bool:
        return self.approval_status == APPROVAL_APPROVED

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "lat": self.lat,
            "lng": self.lng,
            "photo_id_url": self.photo_id_url,
            "approval_status": self.approval_status,
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
            "rejection_reason": self.rejection_reason,
            "has_password": self.password_hash is not None,
            "must_change_password": self.must_change_password,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
