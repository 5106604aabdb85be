import secrets
import string
import re
import ipaddress
from typing import Optional
from datetime import datetime, timezone
from user_agents import parse as parse_user_agent  # type: ignore
from .config import settings

# 64 URL-safe symbols (same alphabet as nanoid)
CODE_ALPHABET = string.ascii_letters + string.digits + "-_"


def generate_short_code(length: Optional[int] = None) -> str:
    """Generate a random short code using nanoid-style characters."""
    if length is None:
        length = settings.CODE_LENGTH
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def is_reserved_code(code: str) -> bool:
    """Check if a code is reserved."""
    return code.lower() in [r.lower() for r in settings.RESERVED_CODES]


def is_valid_url(url: str) -> bool:
    """Validate URL format."""
    url_pattern = re.compile(
        r'^https?://'
        r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|'
        r'localhost|'
        r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'
        r'(?::\d+)?'
        r'(?:/?|[/?#]\S+)$', re.IGNORECASE)

    return bool(url_pattern.match(url))


def normalize_ip(raw: Optional[str]) -> Optional[str]:
    """
    Normalize a client address as seen by the server.
    Strips the IPv4-mapped IPv6 prefix and folds IPv6 loopback to 127.0.0.1.
    """
    if not raw:
        return None
    ip = raw.strip()
    if not ip or ip.lower() == "unknown":
        return None

    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return ip

    if isinstance(addr, ipaddress.IPv6Address):
        if addr.ipv4_mapped is not None:
            return str(addr.ipv4_mapped)
        if addr.is_loopback:
            return "127.0.0.1"
    return str(addr)


def detect_user_agent_type(user_agent_string: str) -> str:
    """Detect device type from user agent."""
    if not user_agent_string:
        return "unknown"

    try:
        user_agent = parse_user_agent(user_agent_string)

        if user_agent.is_bot:
            return "bot"
        elif user_agent.is_mobile:
            return "mobile"
        elif user_agent.is_tablet:
            return "tablet"
        elif user_agent.is_pc:
            return "desktop"
        else:
            return "other"
    except Exception:
        return "unknown"


def format_short_url(code: str) -> str:
    """Format a short code into a full URL."""
    base = settings.BASE_URL.rstrip('/')
    return f"{base}/{code}"


def utc_now() -> datetime:
    """Return timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def normalize_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to timezone-aware UTC (assume naive is UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
