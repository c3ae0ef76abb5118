# Overview: Abandoned-cart reminder job; finds idle carts and emails their owners.

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..extensions import db
from . import cart_service, email_service
from .concurrency import JobGuard


logger = logging.getLogger(__name__)

_guard = JobGuard("abandoned-cart")


@dataclass(frozen=True)
class JobResult:
    sent: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return {"sent": self.sent, "errors": self.errors}


def is_running() -> bool:
    return _guard.running


def process_abandoned_carts(now: datetime | None = None) -> JobResult:
    """
    Send one reminder to each eligible abandoned cart.

    Overlapping runs are skipped and report JobResult(0, 0). A failure for
    one customer is logged and counted; the rest of the batch continues.
    """
    if not _guard.try_acquire():
        logger.info("[Abandoned Cart] Job already running, skipping")
        return JobResult()

    sent = 0
    errors = 0
    try:
        config = current_app.config
        carts = cart_service.find_abandoned_carts(
            abandoned_hours=config["ABANDONED_CART_HOURS"],
            max_reminders=config["MAX_CART_REMINDERS"],
            reminder_interval_hours=config["CART_REMINDER_INTERVAL_HOURS"],
            now=now,
        )
        logger.info("[Abandoned Cart] Found %d abandoned carts", len(carts))

        for cart in carts:
            try:
                result = email_service.send_abandoned_cart_reminder(cart.customer, cart.items, cart.cart_value)
                if not result.success:
                    errors += 1
                    logger.warning("[Abandoned Cart] Reminder to customer %s failed: %s",
                                   cart.customer.id, result.error)
                    continue
                cart_service.record_reminder_sent(cart.customer.id, now=now)
                sent += 1
            except Exception:
                db.session.rollback()
                errors += 1
                logger.exception("[Abandoned Cart] Error processing cart for customer %s", cart.customer.id)
    finally:
        _guard.release()

    logger.info("[Abandoned Cart] Sent %d reminders, %d errors", sent, errors)
    return JobResult(sent=sent, errors=errors)
