# Overview: Google Places reviews with a short-lived in-memory cache.

from __future__ import annotations

import logging
import threading
import time

import httpx
from flask import current_app


logger = logging.getLogger(__name__)

PLACE_DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"

_cache_lock = threading.Lock()
_cache: dict | None = None  # {"data": ..., "expires_at": epoch seconds}


def _fetch(transport: httpx.BaseTransport | None = None) -> dict:
    config = current_app.config
    api_key = config["GOOGLE_PLACES_API_KEY"]
    place_id = config["GOOGLE_PLACE_ID"]
    if not api_key or not place_id:
        return {"reviews": [], "rating": None, "total_reviews": 0, "error": "Google Places is not configured"}

    params = {"place_id": place_id, "fields": "name,rating,user_ratings_total,reviews", "key": api_key}
    try:
        with httpx.Client(timeout=config["HTTP_TIMEOUT_SECONDS"], transport=transport) as client:
            response = client.get(PLACE_DETAILS_URL, params=params)
        response.raise_for_status()
        payload = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("[Google Reviews] Fetch failed: %s", exc)
        return {"reviews": [], "rating": None, "total_reviews": 0, "error": "Failed to fetch reviews"}

    if payload.get("status") != "OK":
        logger.error("[Google Reviews] API status %s", payload.get("status"))
        return {"reviews": [], "rating": None, "total_reviews": 0, "error": payload.get("status")}

    result = payload.get("result") or {}
    return {
        "name": result.get("name"),
        "rating": result.get("rating"),
        "total_reviews": result.get("user_ratings_total", 0),
        "reviews": [
            {
                "author_name": r.get("author_name"),
                "rating": r.get("rating"),
                "text": r.get("text"),
                "relative_time_description": r.get("relative_time_description"),
                "profile_photo_url": r.get("profile_photo_url"),
                "time": r.get("time"),
            }
            for r in result.get("reviews", [])
        ],
        "error": None,
    }


def get_reviews(transport: httpx.BaseTransport | None = None) -> dict:
    """Cached reviews; stale data may be served for up to the TTL. Failures are not cached."""
    global _cache
    now = time.time()
    with _cache_lock:
        if _cache is not None and _cache["expires_at"] > now:
            return _cache["data"]

    data = _fetch(transport)
    if data.get("error") is None:
        ttl = int(current_app.config["REVIEWS_CACHE_TTL_SECONDS"])
        with _cache_lock:
            _cache = {"data": data, "expires_at": now + ttl}
    return data


def invalidate() -> None:
    global _cache
    with _cache_lock:
        _cache = None


def cache_status() -> dict:
    with _cache_lock:
        if _cache is None:
            return {"cached": False}
        return {"cached": True, "expires_in_seconds": max(int(_cache["expires_at"] - time.time()), 0)}
