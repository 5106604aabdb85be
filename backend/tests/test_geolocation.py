"""
Tests for the geolocation enricher.
"""

import asyncio

import httpx
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from linktrace.geolocation import (
    GeoLocation,
    UNAVAILABLE,
    parse_geolocation,
    resolve_location,
)


def resolve(ip):
    return asyncio.run(resolve_location(ip))


class TestParseGeolocation:
    """Tests for parse_geolocation."""

    def test_full_payload(self):
        location = parse_geolocation({"country": "DE", "city": "Berlin", "loc": "52.5200,13.4050"})
        assert location == GeoLocation(country="DE", city="Berlin", lat=52.52, lng=13.405)
        assert location.available is True

    def test_missing_loc(self):
        location = parse_geolocation({"country": "DE"})
        assert location.country == "DE"
        assert location.lat is None and location.lng is None

    def test_malformed_loc(self):
        location = parse_geolocation({"country": "DE", "loc": "north,east"})
        assert (location.lat, location.lng) == (None, None)

    def test_bogon_and_error_payloads(self):
        assert parse_geolocation({"ip": "10.0.0.1", "bogon": True}) == UNAVAILABLE
        assert parse_geolocation({"error": {"title": "Wrong ip"}}) == UNAVAILABLE

    def test_non_mapping(self):
        assert parse_geolocation(["nope"]) == UNAVAILABLE
        assert UNAVAILABLE.available is False


class TestResolveLocation:
    """Tests for resolve_location."""

    def test_public_ip_is_resolved(self, geo_stub):
        location = resolve("8.8.8.8")
        assert location == GeoLocation(country="NL", city="Amsterdam", lat=52.374, lng=4.8897)
        assert len(geo_stub.requests) == 1
        assert geo_stub.requests[0].url.path == "/8.8.8.8/json"

    @pytest.mark.parametrize("ip", ["127.0.0.1", "10.1.2.3", "192.168.0.5", "::1", "0.0.0.0", "testclient", None])
    def test_non_public_addresses_skip_lookup(self, geo_stub, ip):
        assert resolve(ip) == UNAVAILABLE
        assert geo_stub.requests == []

    def test_timeout_degrades(self, geo_stub):
        def timeout(request):
            raise httpx.ReadTimeout("timed out", request=request)

        geo_stub.handler = timeout
        assert resolve("8.8.8.8") == UNAVAILABLE

    def test_network_error_degrades(self, geo_stub):
        def refused(request):
            raise httpx.ConnectError("connection refused", request=request)

        geo_stub.handler = refused
        assert resolve("8.8.8.8") == UNAVAILABLE

    def test_http_error_degrades(self, geo_stub):
        geo_stub.handler = lambda request: httpx.Response(429, json={"error": "rate limited"})
        assert resolve("8.8.8.8") == UNAVAILABLE

    def test_invalid_json_degrades(self, geo_stub):
        geo_stub.handler = lambda request: httpx.Response(200, content=b"<html>oops</html>")
        assert resolve("8.8.8.8") == UNAVAILABLE

    def test_token_is_sent_when_configured(self, geo_stub, monkeypatch):
        from linktrace.config import settings
        monkeypatch.setattr(settings, "GEOIP_TOKEN", "secret")
        resolve("1.1.1.1")
        assert geo_stub.requests[0].url.params["token"] == "secret"

    def test_disabled(self, geo_stub, monkeypatch):
        from linktrace.config import settings
        monkeypatch.setattr(settings, "GEOIP_ENABLED", False)
        assert resolve("8.8.8.8") == UNAVAILABLE
        assert geo_stub.requests == []
