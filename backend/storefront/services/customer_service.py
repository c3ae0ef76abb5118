# Overview: Service-layer operations for delivery customers; signup, approval, passwords, and profile.

"""
Delivery Customers

LIFECYCLE:
    pending --approve--> approved (password setup token emailed, valid 48h)
    pending --reject---> rejected (reason stored and emailed)

A forgotten password is replaced through a one-hour reset link; the
old password keeps working until the link is used.

An address is geocoded on signup and whenever it changes. If geocoding
fails the coordinates stay empty and checkout will refuse the order until
the address is fixed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import CartItem, CartReminder, DeliveryCustomer, DeliveryOrder, PromotionUsage
from ..models.customers import APPROVAL_APPROVED, APPROVAL_PENDING, APPROVAL_REJECTED
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, require_fields
from . import email_service, settings_service
from .auth_service import PasswordValidationError, hash_password, validate_password_strength, verify_password
from .geocoding_service import GeocodingClient
from .pricing_service import ADDRESS_NEEDS_VERIFICATION, check_delivery_zone


logger = logging.getLogger(__name__)

PASSWORD_SETUP_TTL = timedelta(hours=48)
PASSWORD_RESET_TTL = timedelta(hours=1)

ADDRESS_FIELDS = ("address", "city", "state", "zip_code")


class CustomerError(Exception):
    """Raised for customer account errors."""

    status_code = 400


class CustomerNotFoundError(CustomerError):
    status_code = 404


class AccountNotApprovedError(CustomerError):
    status_code = 403


class CustomerInUseError(CustomerError):
    status_code = 409


class AuthenticationError(CustomerError):
    status_code = 401


def _full_address(customer: DeliveryCustomer) -> str:
    parts = [customer.address, customer.city, customer.state, customer.zip_code]
    return ", ".join(p for p in parts if p)


def _apply_geocode(customer: DeliveryCustomer, geocoder: GeocodingClient | None) -> None:
    geocoder = geocoder or GeocodingClient.from_config()
    result = geocoder.geocode(_full_address(customer))
    if result is None:
        logger.warning("Could not geocode address for customer %s", customer.email)
        customer.lat = None
        customer.lng = None
        return
    customer.lat = result.lat
    customer.lng = result.lng
    customer.city = customer.city or result.city
    customer.state = customer.state or result.state
    customer.zip_code = customer.zip_code or result.zip_code


def get_customer(customer_id: int) -> DeliveryCustomer:
    customer = db.session.get(DeliveryCustomer, customer_id)
    if customer is None:
        raise CustomerNotFoundError("Customer not found")
    return customer


def get_customer_by_email(email: str) -> DeliveryCustomer | None:
    return db.session.query(DeliveryCustomer).filter_by(email=(email or "").strip().lower()).first()


def register_customer(data: dict, geocoder: GeocodingClient | None = None) -> DeliveryCustomer:
    require_fields(data, "email", "full_name", "phone", "address")
    email = data["email"].strip().lower()
    if "@" not in email:
        raise ValidationError("email must be a valid email address")
    if get_customer_by_email(email) is not None:
        raise ConflictError("An account with this email already exists")

    customer = DeliveryCustomer(
        email=email,
        full_name=data["full_name"].strip(),
        phone=data["phone"].strip(),
        address=data["address"].strip(),
        city=(data.get("city") or "").strip() or None,
        state=(data.get("state") or "").strip() or None,
        zip_code=(data.get("zip_code") or "").strip() or None,
        photo_id_url=data.get("photo_id_url"),
        approval_status=APPROVAL_PENDING,
    )

    lat, lng = data.get("lat"), data.get("lng")
    if lat is not None and lng is not None:
        try:
            customer.lat, customer.lng = float(lat), float(lng)
        except (TypeError, ValueError):
            raise ValidationError("lat and lng must be numbers")
    else:
        _apply_geocode(customer, geocoder)

    db.session.add(customer)
    db.session.commit()
    logger.info("Registered delivery customer %s (pending approval)", customer.email)
    return customer


def list_customers(status: str | None = None) -> list[dict]:
    q = db.session.query(DeliveryCustomer)
    if status:
        q = q.filter_by(approval_status=status)
    return [c.to_dict() for c in q.order_by(DeliveryCustomer.created_at.desc()).all()]


def set_approval(customer_id: int, status: str, admin_id: str, reason: str | None = None) -> DeliveryCustomer:
    customer = get_customer(customer_id)
    if status not in (APPROVAL_APPROVED, APPROVAL_REJECTED):
        raise ValidationError("status must be 'approved' or 'rejected'")

    customer.approval_status = status
    customer.approved_by = admin_id
    customer.approved_at = utcnow()
    setup_token = None
    if status == APPROVAL_APPROVED:
        customer.rejection_reason = None
        if customer.password_hash is None:
            setup_token = secrets.token_urlsafe(32)
            customer.password_setup_token = setup_token
            customer.password_setup_token_expiry = utcnow() + PASSWORD_SETUP_TTL
    else:
        customer.rejection_reason = (reason or "").strip() or None
    db.session.commit()

    if status == APPROVAL_APPROVED and setup_token:
        email_service.send_approval_email(customer, setup_token)
    elif status == APPROVAL_REJECTED:
        email_service.send_rejection_email(customer)
    logger.info("Customer %s %s by %s", customer.id, status, admin_id)
    return customer


def set_password_with_token(token: str, password: str) -> DeliveryCustomer:
    if not token:
        raise ValidationError("token is required")
    customer = db.session.query(DeliveryCustomer).filter_by(password_setup_token=token).first()
    if customer is None:
        raise CustomerError("Invalid or expired password setup link")
    if customer.password_setup_token_expiry is None or customer.password_setup_token_expiry < utcnow():
        raise CustomerError("Invalid or expired password setup link")
    try:
        validate_password_strength(password)
    except PasswordValidationError as exc:
        raise ValidationError(str(exc))

    customer.password_hash = hash_password(password)
    customer.password_setup_token = None
    customer.password_setup_token_expiry = None
    customer.must_change_password = False
    db.session.commit()
    return customer


def request_password_reset(email: str) -> None:
    """
    Email a one-hour reset link.

    Unknown addresses are a silent no-op.
    """
    customer = get_customer_by_email(email)
    if customer is None:
        logger.info("Password reset requested for unknown email")
        return
    if not customer.is_approved:
        raise AccountNotApprovedError("Account is not approved yet")

    token = secrets.token_urlsafe(32)
    customer.password_reset_token = token
    customer.password_reset_token_expiry = utcnow() + PASSWORD_RESET_TTL
    db.session.commit()
    email_service.send_password_reset(customer, token)


def reset_password(token: str, password: str) -> DeliveryCustomer:
    if not token:
        raise ValidationError("token is required")
    customer = db.session.query(DeliveryCustomer).filter_by(password_reset_token=token).first()
    if customer is None or customer.password_reset_token_expiry is None \
            or customer.password_reset_token_expiry < utcnow():
        raise CustomerError("Invalid or expired password reset link")
    try:
        validate_password_strength(password)
    except PasswordValidationError as exc:
        raise ValidationError(str(exc))

    customer.password_hash = hash_password(password)
    customer.password_reset_token = None
    customer.password_reset_token_expiry = None
    customer.must_change_password = False
    db.session.commit()
    logger.info("Password reset for customer %s", customer.id)
    return customer


def change_password(customer_id: int, current_password: str, new_password: str) -> None:
    customer = get_customer(customer_id)
    if not verify_password(current_password, customer.password_hash):
        raise AuthenticationError("Current password is incorrect")
    try:
        validate_password_strength(new_password)
    except PasswordValidationError as exc:
        raise ValidationError(str(exc))
    customer.password_hash = hash_password(new_password)
    customer.must_change_password = False
    db.session.commit()


def authenticate(email: str, password: str) -> DeliveryCustomer:
    customer = get_customer_by_email(email)
    if customer is None or not verify_password(password, customer.password_hash):
        raise AuthenticationError("Invalid email or password")
    if not customer.is_approved:
        raise AuthenticationError("Your account is not approved yet")
    return customer


def update_profile(customer_id: int, data: dict, geocoder: GeocodingClient | None = None) -> DeliveryCustomer:
    customer = get_customer(customer_id)
    for key in ("full_name", "phone"):
        if key in data:
            value = (data[key] or "").strip()
            if not value:
                raise ValidationError(f"{key} cannot be blank")
            setattr(customer, key, value)

    address_changed = False
    for key in ADDRESS_FIELDS:
        if key in data:
            value = (data[key] or "").strip() or None
            if key == "address" and not value:
                raise ValidationError("address cannot be blank")
            if value != getattr(customer, key):
                setattr(customer, key, value)
                address_changed = True

    if address_changed:
        _apply_geocode(customer, geocoder)
    db.session.commit()
    return customer


def delete_customer(customer_id: int) -> None:
    customer = get_customer(customer_id)
    if db.session.query(PromotionUsage.id).filter_by(customer_id=customer.id).first() is not None:
        raise CustomerInUseError("This customer has promotion redemptions on record and cannot be deleted")
    db.session.query(CartItem).filter_by(customer_id=customer.id).delete()
    db.session.query(CartReminder).filter_by(customer_id=customer.id).delete()
    for order in db.session.query(DeliveryOrder).filter_by(customer_id=customer.id).all():
        db.session.delete(order)
    db.session.delete(customer)
    db.session.commit()
    logger.info("Deleted delivery customer %s", customer_id)


def validate_address(data: dict, geocoder: GeocodingClient | None = None) -> dict:
    """Geocode a prospective address and report whether it is inside the delivery zone."""
    require_fields(data, "address")
    parts = [data.get(k) for k in ADDRESS_FIELDS]
    address = ", ".join(p.strip() for p in parts if p and p.strip())

    geocoder = geocoder or GeocodingClient.from_config()
    result = geocoder.geocode(address)
    radius = settings_service.get_delivery_radius()
    if result is None:
        return {"valid": False, "within_zone": False, "error": ADDRESS_NEEDS_VERIFICATION}

    origin = (current_app.config["STORE_LAT"], current_app.config["STORE_LNG"])
    zone = check_delivery_zone(result.lat, result.lng, radius, origin)
    return {
        "valid": True,
        "within_zone": zone.within_zone,
        "distance_miles": round(zone.distance, 2) if zone.distance is not None else None,
        "radius_miles": radius,
        "lat": result.lat,
        "lng": result.lng,
        "formatted_address": result.formatted_address,
        "error": zone.error_message(radius),
    }
