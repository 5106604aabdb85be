"""
IP geolocation lookup.
Best-effort enrichment for click records: any failure yields empty fields.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from .config import settings
from .security import is_public_ip
from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GeoLocation:
    """Coarse location of a client address; all-None means unavailable."""

    country: Optional[str] = None
    city: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def available(self) -> bool:
        return any(v is not None for v in (self.country, self.city, self.lat, self.lng))


UNAVAILABLE = GeoLocation()


def _build_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.GEOIP_TIMEOUT)


def _parse_coordinates(loc) -> tuple[Optional[float], Optional[float]]:
    """Parse an ipinfo style "lat,lng" string."""
    if not isinstance(loc, str) or "," not in loc:
        return None, None
    lat_raw, lng_raw = loc.split(",", 1)
    try:
        return float(lat_raw), float(lng_raw)
    except ValueError:
        return None, None


def parse_geolocation(payload) -> GeoLocation:
    """Map a geolocation service response body onto a GeoLocation."""
    if not isinstance(payload, dict) or payload.get("bogon") or "error" in payload:
        return UNAVAILABLE

    lat, lng = _parse_coordinates(payload.get("loc"))
    country = payload.get("country") or None
    city = payload.get("city") or None
    return GeoLocation(
        country=str(country) if country is not None else None,
        city=str(city) if city is not None else None,
        lat=lat,
        lng=lng,
    )


async def resolve_location(ip: Optional[str]) -> GeoLocation:
    """
    Resolve a client IP to a coarse location.

    Private, loopback, unspecified and malformed addresses are never sent
    to the external service. Timeouts, network errors and unexpected
    responses all degrade to UNAVAILABLE.
    """
    if not settings.GEOIP_ENABLED or not is_public_ip(ip):
        return UNAVAILABLE

    url = f"{settings.GEOIP_BASE_URL.rstrip('/')}/{ip}/json"
    params = {"token": settings.GEOIP_TOKEN} if settings.GEOIP_TOKEN else None

    try:
        async with _build_client() as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
    except httpx.TimeoutException:
        logger.warning(f"Geolocation lookup timed out for {ip}")
        return UNAVAILABLE
    except httpx.HTTPStatusError as e:
        logger.warning(f"Geolocation lookup for {ip} returned {e.response.status_code}")
        return UNAVAILABLE
    except httpx.HTTPError as e:
        logger.warning(f"Geolocation lookup request error for {ip}: {e}")
        return UNAVAILABLE
    except ValueError as e:
        logger.warning(f"Geolocation lookup returned invalid JSON for {ip}: {e}")
        return UNAVAILABLE

    location = parse_geolocation(payload)
    logger.debug(f"Geolocation for {ip}: {location}")
    return location
