"""
Unit tests for utility functions.
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from linktrace.utils import (
    CODE_ALPHABET,
    generate_short_code,
    is_valid_url,
    is_reserved_code,
    normalize_ip,
    detect_user_agent_type,
    format_short_url,
    utc_now,
    normalize_utc
)


class TestGenerateShortCode:
    """Tests for generate_short_code function."""

    def test_generates_configured_length(self):
        """Generated codes should have the configured length."""
        assert len(generate_short_code()) == 8

    def test_explicit_length(self):
        assert len(generate_short_code(12)) == 12

    def test_alphabet_has_64_symbols(self):
        assert len(set(CODE_ALPHABET)) == 64

    def test_codes_use_url_safe_alphabet(self):
        """Generated codes should only contain URL-safe characters."""
        for _ in range(50):
            code = generate_short_code()
            assert set(code) <= set(CODE_ALPHABET)

    def test_generates_unique_codes(self):
        """Generated codes should be unique."""
        codes = [generate_short_code() for _ in range(1000)]
        assert len(set(codes)) == 1000


class TestIsValidUrl:
    """Tests for is_valid_url function."""

    def test_valid_http_url(self):
        assert is_valid_url("http://example.com") is True

    def test_valid_https_url_with_path_and_query(self):
        assert is_valid_url("https://example.com/path/to/page?query=value") is True

    def test_long_tld(self):
        assert is_valid_url("https://example.technology/") is True

    def test_invalid_url_no_scheme(self):
        assert is_valid_url("example.com") is False

    def test_invalid_url_ftp(self):
        assert is_valid_url("ftp://example.com") is False

    def test_empty_string(self):
        assert is_valid_url("") is False


class TestIsReservedCode:
    """Tests for is_reserved_code function."""

    @pytest.mark.parametrize("code", ["dashboard", "login", "create", "logout", "health", "track-fingerprint"])
    def test_route_names_are_reserved(self, code):
        assert is_reserved_code(code) is True

    def test_case_insensitive(self):
        assert is_reserved_code("Dashboard") is True

    def test_regular_code_not_reserved(self):
        assert is_reserved_code("aB3_x-9Z") is False


class TestNormalizeIp:
    """Tests for normalize_ip function."""

    def test_ipv4_mapped_ipv6(self):
        assert normalize_ip("::ffff:203.0.113.7") == "203.0.113.7"

    def test_ipv6_loopback(self):
        assert normalize_ip("::1") == "127.0.0.1"

    def test_plain_ipv4_untouched(self):
        assert normalize_ip(" 8.8.8.8 ") == "8.8.8.8"

    def test_ipv6_compressed(self):
        assert normalize_ip("2001:DB8:0:0::1") == "2001:db8::1"

    def test_empty_and_unknown(self):
        assert normalize_ip(None) is None
        assert normalize_ip("") is None
        assert normalize_ip("unknown") is None

    def test_non_ip_returned_as_is(self):
        assert normalize_ip("testclient") == "testclient"


class TestDetectUserAgentType:
    """Tests for detect_user_agent_type function."""

    def test_empty(self):
        assert detect_user_agent_type("") == "unknown"

    def test_desktop(self):
        ua = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
        assert detect_user_agent_type(ua) == "desktop"

    def test_mobile(self):
        ua = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
        assert detect_user_agent_type(ua) == "mobile"

    def test_bot(self):
        ua = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"
        assert detect_user_agent_type(ua) == "bot"


class TestFormatShortUrl:
    """Tests for format_short_url function."""

    def test_formats_with_base_url(self):
        assert format_short_url("abc123") == "https://lt.example/abc123"


class TestUtcHelpers:
    """Tests for utc_now and normalize_utc."""

    def test_has_timezone(self):
        assert utc_now().tzinfo is not None

    def test_naive_assumed_utc(self):
        from datetime import datetime
        result = normalize_utc(datetime(2024, 1, 1, 12, 0))
        assert result.tzinfo is not None
        assert result.hour == 12

    def test_none(self):
        assert normalize_utc(None) is None

    def test_aware_converted_to_utc(self):
        from datetime import datetime, timedelta, timezone
        result = normalize_utc(datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2))))
        assert result.hour == 12
        assert result.utcoffset() == timedelta(0)

    def test_response_timestamps_are_utc(self):
        from datetime import datetime
        from linktrace.schemas import ShortenResponse
        response = ShortenResponse(
            short_code="abc123",
            short_url="https://lt.example/abc123",
            original_url="https://example.com/",
            created_at=datetime(2024, 1, 1, 12, 0),
        )
        assert response.created_at.tzinfo is not None
        assert response.model_dump_json().count("2024-01-01T12:00:00") == 1
