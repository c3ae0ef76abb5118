# Overview: Google Geocoding API client used to place customer addresses.

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from flask import current_app


logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


@dataclass(frozen=True)
class GeocodeResult:
    lat: float
    lng: float
    formatted_address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None


def _component(components: list[dict], kind: str, short: bool = False) -> str | None:
    for component in components:
        if kind in component.get("types", []):
            return component.get("short_name" if short else "long_name")
    return None


class GeocodingClient:
    def __init__(self, api_key: str, timeout: float = 10.0, transport: httpx.BaseTransport | None = None):
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, transport: httpx.BaseTransport | None = None) -> "GeocodingClient":
        return cls(
            api_key=current_app.config["GOOGLE_GEOCODING_API_KEY"],
            timeout=current_app.config["HTTP_TIMEOUT_SECONDS"],
            transport=transport,
        )

    def geocode(self, address: str) -> GeocodeResult | None:
        """First match for an address, or None when it cannot be resolved."""
        if not self.api_key:
            logger.warning("[Geocoding] GOOGLE_GEOCODING_API_KEY not configured")
            return None
        if not address or not address.strip():
            return None

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(GEOCODE_URL, params={"address": address, "key": self.api_key})
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("[Geocoding] Request failed for %r: %s", address, exc)
            return None

        if data.get("status") != "OK" or not data.get("results"):
            logger.info("[Geocoding] No result for %r (status %s)", address, data.get("status"))
            return None

        first = data["results"][0]
        location = first["geometry"]["location"]
        components = first.get("address_components", [])
        return GeocodeResult(
            lat=float(location["lat"]),
            lng=float(location["lng"]),
            formatted_address=first.get("formatted_address"),
            city=_component(components, "locality"),
            state=_component(components, "administrative_area_level_1", short=True),
            zip_code=_component(components, "postal_code"),
        )
