from flask import Blueprint

from ..decorators import require_admin
from ..services import reviews_service

reviews_bp = Blueprint("reviews", __name__)


@reviews_bp.get("/api/reviews")
def get_reviews():
    return reviews_service.get_reviews()


@reviews_bp.post("/api/admin/reviews/refresh")
@require_admin
def refresh_reviews():
    reviews_service.invalidate()
    data = reviews_service.get_reviews()
    return {**data, "cache": reviews_service.cache_status()}
