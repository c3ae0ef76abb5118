# Overview: Pytest coverage for the cached Google reviews lookup.

import httpx
import pytest

from storefront.services import reviews_service


@pytest.fixture
def places_configured(app, monkeypatch):
    monkeypatch.setitem(app.config, "GOOGLE_PLACES_API_KEY", "places-key")
    monkeypatch.setitem(app.config, "GOOGLE_PLACE_ID", "place-1")
    reviews_service.invalidate()
    yield
    reviews_service.invalidate()


def _counting(payload, status=200):
    calls = []

    def handler(request):
        calls.append(request.url.params["place_id"])
        return httpx.Response(status, json=payload)

    return httpx.MockTransport(handler), calls


PLACE = {
    "status": "OK",
    "result": {
        "name": "Vape Shop",
        "rating": 4.8,
        "user_ratings_total": 120,
        "reviews": [{"author_name": "Sam", "rating": 5, "text": "Fast delivery", "time": 1760000000}],
    },
}


class TestReviews:
    def test_unconfigured_reports_error(self, app):
        reviews_service.invalidate()
        data = reviews_service.get_reviews()
        assert data["reviews"] == []
        assert data["error"] == "Google Places is not configured"

    def test_success_is_cached(self, places_configured):
        transport, calls = _counting(PLACE)
        first = reviews_service.get_reviews(transport)
        second = reviews_service.get_reviews(transport)
        assert first["rating"] == 4.8
        assert first["total_reviews"] == 120
        assert first["reviews"][0]["author_name"] == "Sam"
        assert second is first
        assert calls == ["place-1"]
        assert reviews_service.cache_status()["cached"] is True

    def test_failures_are_not_cached(self, places_configured):
        transport, calls = _counting({"status": "REQUEST_DENIED"})
        assert reviews_service.get_reviews(transport)["error"] == "REQUEST_DENIED"
        reviews_service.get_reviews(transport)
        assert len(calls) == 2
        assert reviews_service.cache_status() == {"cached": False}

    def test_invalidate_forces_refetch(self, places_configured):
        transport, calls = _counting(PLACE)
        reviews_service.get_reviews(transport)
        reviews_service.invalidate()
        reviews_service.get_reviews(transport)
        assert len(calls) == 2
