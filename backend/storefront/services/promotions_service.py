# Overview: Service-layer operations for promotions; promo code validation, redemption ledger, and admin CRUD.

"""
Promotions

WHY: Promo codes are entered by customers at checkout. Validation is a
read-only rule evaluation so it can be called freely (cart preview,
checkout re-check); redemption is recorded only after the order exists.

RULE ORDER (first failure wins):
1. code exists (case-insensitive)
2. enabled
3. started (valid_from)
4. not expired (valid_until)
5. global usage cap
6. per-customer usage cap (counted from the usage ledger)
7. minimum order amount
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Promotion, PromotionUsage
from ..models.promotions import DISCOUNT_FIXED, DISCOUNT_PERCENTAGE, VALID_DISCOUNT_TYPES
from ..money import ZERO, format_money, to_money
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, coerce_bool, coerce_datetime, coerce_int, coerce_money


logger = logging.getLogger(__name__)


class PromotionError(Exception):
    """Raised for promotion admin operation errors."""

    status_code = 400


class PromotionNotFoundError(PromotionError):
    status_code = 404


class PromotionLimitError(PromotionError):
    """A usage cap was reached between validation and redemption."""

    status_code = 409


class PromotionInUseError(PromotionError):
    status_code = 409


# =============================================================================
# VALIDATION
# =============================================================================

@dataclass
class PromoValidation:
    valid: bool
    promotion: Promotion | None = None
    discount_amount: Decimal = ZERO
    error_message: str | None = None

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "promotion": self.promotion.to_dict() if self.promotion is not None else None,
            "discount_amount": format_money(self.discount_amount),
            "error_message": self.error_message,
        }


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def get_promotion_by_code(code: str) -> Promotion | None:
    normalized = normalize_code(code)
    if not normalized:
        return None
    return db.session.query(Promotion).filter(func.upper(Promotion.code) == normalized).first()


def count_customer_usage(promotion_id: int, customer_id: int) -> int:
    return (
        db.session.query(func.count(PromotionUsage.id))
        .filter_by(promotion_id=promotion_id, customer_id=customer_id)
        .scalar()
        or 0
    )


def calculate_discount(promotion: Promotion, subtotal) -> Decimal:
    """Discount for a subtotal; never negative and never more than the subtotal."""
    subtotal = to_money(subtotal)
    value = to_money(promotion.discount_value)
    if promotion.discount_type == DISCOUNT_PERCENTAGE:
        discount = to_money(subtotal * value / Decimal(100))
    elif promotion.discount_type == DISCOUNT_FIXED:
        discount = value
    else:
        raise ValueError(f"Unknown discount type: {promotion.discount_type}")
    return max(min(discount, subtotal), ZERO)


def validate_promo_code(code: str, customer_id: int, order_subtotal, now=None) -> PromoValidation:
    """Evaluate a promo code for a customer and subtotal. Does not write."""
    now = now or utcnow()
    subtotal = to_money(order_subtotal)

    promotion = get_promotion_by_code(code)
    if promotion is None:
        return PromoValidation(valid=False, error_message="Invalid promo code")

    if not promotion.enabled:
        return PromoValidation(valid=False, error_message="This promo code is no longer active")

    if promotion.valid_from is not None and now < promotion.valid_from:
        return PromoValidation(valid=False, error_message="This promo code is not yet active")

    if promotion.valid_until is not None and now > promotion.valid_until:
        return PromoValidation(valid=False, error_message="This promo code has expired")

    if promotion.max_usage_count is not None and promotion.current_usage_count >= promotion.max_usage_count:
        return PromoValidation(valid=False, error_message="This promo code has reached its usage limit")

    if promotion.max_usage_per_customer is not None:
        used = count_customer_usage(promotion.id, customer_id)
        if used >= promotion.max_usage_per_customer:
            return PromoValidation(valid=False, error_message="You have already used this promo code")

    minimum = to_money(promotion.minimum_order_amount)
    if subtotal < minimum:
        return PromoValidation(valid=False, error_message=f"Minimum order amount is ${minimum:.2f}")

    return PromoValidation(
        valid=True,
        promotion=promotion,
        discount_amount=calculate_discount(promotion, subtotal),
    )


def claim_promotion(promotion_id: int, customer_id: int) -> None:
    """
    Take one redemption inside the caller's transaction.

    The per-customer cap is re-counted from the ledger and the global
    counter is bumped only while below max_usage_count (SQL-side conditional
    update). Raises PromotionLimitError when either cap is reached.
    """
    promotion = db.session.get(Promotion, promotion_id)
    if promotion is None:
        raise PromotionNotFoundError("Promotion not found")
    if promotion.max_usage_per_customer is not None \
            and count_customer_usage(promotion_id, customer_id) >= promotion.max_usage_per_customer:
        raise PromotionLimitError("You have already used this promo code")

    updated = db.session.query(Promotion).filter(
        Promotion.id == promotion_id,
        or_(Promotion.max_usage_count.is_(None), Promotion.current_usage_count < Promotion.max_usage_count),
    ).update({Promotion.current_usage_count: Promotion.current_usage_count + 1}, synchronize_session=False)
    if not updated:
        raise PromotionLimitError("This promo code has reached its usage limit")


def record_promotion_usage(promotion_id: int, customer_id: int, order_id: int | None, discount_amount,
                           commit: bool = True, claimed: bool = False) -> PromotionUsage:
    """
    Append a ledger row, claiming the redemption first unless the caller
    already did (claimed=True).
    """
    if not claimed:
        claim_promotion(promotion_id, customer_id)
    usage = PromotionUsage(
        promotion_id=promotion_id,
        customer_id=customer_id,
        order_id=order_id,
        discount_amount=to_money(discount_amount),
    )
    db.session.add(usage)
    if commit:
        db.session.commit()
    logger.info("Promotion %s redeemed by customer %s on order %s", promotion_id, customer_id, order_id)
    return usage


# =============================================================================
# ADMIN CRUD
# =============================================================================

_UPDATABLE_FIELDS = (
    "description", "discount_type", "discount_value", "minimum_order_amount",
    "max_usage_count", "max_usage_per_customer", "valid_from", "valid_until", "enabled",
)


def _clean_fields(data: dict) -> dict:
    cleaned: dict = {}
    if "description" in data:
        cleaned["description"] = (data["description"] or "").strip() or None
    if "discount_type" in data:
        if data["discount_type"] not in VALID_DISCOUNT_TYPES:
            raise ValidationError(f"discount_type must be one of: {', '.join(VALID_DISCOUNT_TYPES)}")
        cleaned["discount_type"] = data["discount_type"]
    if "discount_value" in data:
        cleaned["discount_value"] = coerce_money(data["discount_value"], "discount_value", allow_zero=False)
    if "minimum_order_amount" in data:
        cleaned["minimum_order_amount"] = coerce_money(data["minimum_order_amount"] or 0, "minimum_order_amount")
    for key in ("max_usage_count", "max_usage_per_customer"):
        if key in data:
            cleaned[key] = None if data[key] is None else coerce_int(data[key], key, minimum=1)
    for key in ("valid_from", "valid_until"):
        if key in data:
            cleaned[key] = coerce_datetime(data[key], key)
    if "enabled" in data:
        cleaned["enabled"] = coerce_bool(data["enabled"])

    discount_type = cleaned.get("discount_type")
    value = cleaned.get("discount_value")
    if discount_type == DISCOUNT_PERCENTAGE and value is not None and value > 100:
        raise ValidationError("Percentage discounts cannot exceed 100")
    return cleaned


def list_promotions(enabled_only: bool = False) -> list[dict]:
    q = db.session.query(Promotion)
    if enabled_only:
        q = q.filter_by(enabled=True)
    return [p.to_dict() for p in q.order_by(Promotion.created_at.desc(), Promotion.id.desc()).all()]


def get_promotion(promo_id: int) -> Promotion:
    promo = db.session.get(Promotion, promo_id)
    if promo is None:
        raise PromotionNotFoundError("Promotion not found")
    return promo


def create_promotion(data: dict) -> dict:
    code = normalize_code(data.get("code"))
    if not code:
        raise ValidationError("code is required")
    if get_promotion_by_code(code) is not None:
        raise ConflictError(f"Promo code {code} already exists")

    fields = _clean_fields(data)
    if "discount_type" not in fields or "discount_value" not in fields:
        raise ValidationError("Missing required fields: discount_type, discount_value")

    promo = Promotion(code=code, **fields)
    if "max_usage_per_customer" not in data:
        promo.max_usage_per_customer = 1
    db.session.add(promo)
    db.session.commit()
    logger.info("Created promotion %s", code)
    return promo.to_dict()


def update_promotion(promo_id: int, data: dict) -> dict:
    promo = get_promotion(promo_id)
    fields = _clean_fields({k: v for k, v in data.items() if k in _UPDATABLE_FIELDS})
    if (
        fields.get("discount_type", promo.discount_type) == DISCOUNT_PERCENTAGE
        and to_money(fields.get("discount_value", promo.discount_value)) > 100
    ):
        raise ValidationError("Percentage discounts cannot exceed 100")
    for key, value in fields.items():
        setattr(promo, key, value)
    db.session.commit()
    return promo.to_dict()


def delete_promotion(promo_id: int) -> None:
    """Hard delete; a promotion with redemptions on the ledger can only be disabled."""
    promo = get_promotion(promo_id)
    redeemed = db.session.query(PromotionUsage.id).filter_by(promotion_id=promo.id).first()
    if redeemed is not None:
        raise PromotionInUseError("This promotion has been redeemed and cannot be deleted. Disable it instead.")
    db.session.delete(promo)
    db.session.commit()


def list_usage(promo_id: int) -> list[dict]:
    get_promotion(promo_id)
    rows = (
        db.session.query(PromotionUsage)
        .filter_by(promotion_id=promo_id)
        .order_by(PromotionUsage.used_at.desc())
        .all()
    )
    return [r.to_dict() for r in rows]
