"""
Security utilities for URL validation and address classification.
Blocks private IPs, localhost, and dangerous URLs.
"""

import ipaddress
import re
from typing import Optional, Tuple
from urllib.parse import urlparse

from .logging_config import get_logger

logger = get_logger(__name__)

# Private/reserved IP ranges
PRIVATE_IP_RANGES = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),  # Link-local
    ipaddress.ip_network("100.64.0.0/10"),  # Carrier-grade NAT
    ipaddress.ip_network("::1/128"),  # IPv6 localhost
    ipaddress.ip_network("fc00::/7"),  # IPv6 private
    ipaddress.ip_network("fe80::/10"),  # IPv6 link-local
]

DEFAULT_BLOCKED_DOMAINS = [
    "localhost",
    "localhost.localdomain",
    "local",
]


def is_private_ip(ip_str: str) -> bool:
    """Check if an IP address is private, localhost, or unspecified."""
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        return False

    if ip.is_unspecified:
        return True
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    for network in PRIVATE_IP_RANGES:
        if ip.version == network.version and ip in network:
            return True
    return False


def is_public_ip(ip_str: Optional[str]) -> bool:
    """True only for syntactically valid, globally routable addresses."""
    if not ip_str:
        return False
    try:
        ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return not is_private_ip(ip_str)


def is_domain_blocked(domain: str) -> bool:
    """Check if a domain is in the blocklist."""
    domain_lower = domain.lower()

    for blocked_domain in DEFAULT_BLOCKED_DOMAINS:
        if domain_lower == blocked_domain or domain_lower.endswith("." + blocked_domain):
            return True

    return False


def extract_host_from_url(url: str) -> Optional[str]:
    """Extract the host from a URL."""
    try:
        parsed = urlparse(url)
        return parsed.hostname
    except ValueError:
        return None


def validate_url_security(url: str) -> Tuple[bool, Optional[str]]:
    """
    Validate URL for security issues.

    Returns:
        Tuple of (is_safe, error_message)
        If is_safe is True, error_message is None
    """
    if not url:
        return False, "URL is required"

    if len(url) > 2048:
        return False, "URL too long (max 2048 characters)"

    try:
        scheme = urlparse(url).scheme.lower()
    except ValueError:
        return False, "Invalid URL format"

    if scheme not in ("http", "https"):
        return False, f"Invalid URL scheme '{scheme}'. Only http and https are allowed"

    host = extract_host_from_url(url)
    if not host:
        return False, "Could not extract host from URL"

    if is_domain_blocked(host):
        logger.warning(f"Blocked domain attempted: {host}")
        return False, "This domain is not allowed"

    if is_private_ip(host):
        logger.warning(f"Private IP attempted: {host}")
        return False, "URLs pointing to private/local addresses are not allowed"

    # Credentials in the authority or embedded NUL bytes
    url_lower = url.lower().strip()
    for pattern in (r"^https?://[^/]*@", r"^https?://.*\x00"):
        if re.match(pattern, url_lower):
            return False, "Invalid URL format"

    return True, None
