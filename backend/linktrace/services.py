from dataclasses import dataclass
from typing import Optional, Any, List, cast

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .models import Link, Click
from .redis_client import RedisService
from .context import RequestContext
from .geolocation import GeoLocation, UNAVAILABLE
from .errors import NotFoundError, CodeExhaustedError, CodeConflictError, PersistenceError
from .utils import (
    generate_short_code,
    is_reserved_code,
    detect_user_agent_type,
    format_short_url,
    utc_now,
)
from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)

# Fingerprint keys that may carry a WebRTC-observed address, highest priority first
WEBRTC_IP_KEYS = ("webrtc_local_ipv4", "webrtc_local_ipv6", "webrtc_public_ip", "webrtc_ip")


@dataclass(frozen=True)
class ResolvedLink:
    """The part of a Link the redirect path needs."""

    id: int
    short_code: str
    original_url: str


class LinkService:
    """Service for creating and resolving shortened links."""

    @staticmethod
    def _insert_link(db: Session, code: str, original_url: str) -> Link:
        """
        Insert one link row.
        Raises CodeConflictError when the store rejects the code as taken.
        """
        link = Link(short_code=code, original_url=original_url)
        db.add(link)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            # The unique index is the only constraint a well-formed insert can
            # trip; confirm against the store instead of parsing driver text.
            if LinkService.code_exists(db, code):
                raise CodeConflictError(code) from e
            raise PersistenceError(f"Failed to insert link {code}") from e
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to insert link {code}") from e

        db.refresh(link)
        return link

    @staticmethod
    def create_link(db: Session, original_url: str) -> Link:
        """
        Create a new shortened link under a freshly generated code.

        Collisions are retried with a new code up to CODE_MAX_ATTEMPTS times;
        the store's unique constraint is the only arbiter. Raises
        CodeExhaustedError when the budget runs out and PersistenceError on
        any other store failure.
        """
        max_attempts = settings.CODE_MAX_ATTEMPTS

        for attempt in range(1, max_attempts + 1):
            candidate = generate_short_code()
            if is_reserved_code(candidate):
                logger.info(f"Generated reserved code {candidate}, regenerating")
                continue

            try:
                link = LinkService._insert_link(db, candidate, original_url)
            except CodeConflictError:
                logger.info(f"Code collision on {candidate} (attempt {attempt}/{max_attempts})")
                continue

            RedisService.cache_link(candidate, cast(int, link.id), original_url)
            logger.info(f"Created link: {candidate} -> {original_url[:50]}")
            return link

        logger.error(f"Failed to generate unique code after {max_attempts} attempts")
        raise CodeExhaustedError(max_attempts)

    @staticmethod
    def code_exists(db: Session, code: str) -> bool:
        try:
            return db.query(Link.id).filter(Link.short_code == code).first() is not None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to look up code {code}") from e

    @staticmethod
    def get_link_by_code(db: Session, code: str) -> Optional[Link]:
        """Get a link by its short code."""
        try:
            return db.query(Link).filter(Link.short_code == code).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to look up code {code}") from e

    @staticmethod
    def resolve(db: Session, code: str) -> ResolvedLink:
        """
        Resolve a short code for redirecting.
        Checks the Redis cache first, falls back to the DB.
        Raises NotFoundError for unknown codes.
        """
        cached = RedisService.get_cached_link(code)
        if cached:
            link_id, url = cached
            return ResolvedLink(id=link_id, short_code=code, original_url=url)

        link = LinkService.get_link_by_code(db, code)
        if not link:
            raise NotFoundError(code)

        resolved = ResolvedLink(
            id=cast(int, link.id),
            short_code=cast(str, link.short_code),
            original_url=cast(str, link.original_url),
        )
        RedisService.cache_link(code, resolved.id, resolved.original_url)
        return resolved

    @staticmethod
    def list_links_with_click_counts(db: Session) -> List[dict[str, Any]]:
        """All links with their click counts, newest first."""
        rows = (
            db.query(Link, func.count(Click.id).label("click_count"))
            .outerjoin(Click, Click.link_id == Link.id)
            .group_by(Link.id)
            .order_by(Link.created_at.desc(), Link.id.desc())
            .all()
        )
        return [
            {
                "id": link.id,
                "short_code": link.short_code,
                "short_url": format_short_url(link.short_code),
                "original_url": link.original_url,
                "created_at": link.created_at,
                "click_count": click_count,
            }
            for link, click_count in rows
        ]

    @staticmethod
    def delete_link(db: Session, code: str) -> bool:
        """Delete a link and all of its clicks."""
        link = LinkService.get_link_by_code(db, code)
        if not link:
            return False

        db.delete(link)
        db.commit()
        RedisService.delete_cached_link(code)
        logger.info(f"Deleted link {code}")
        return True


def pick_webrtc_ip(fingerprint: dict) -> Optional[str]:
    """First usable WebRTC address among the known fingerprint keys."""
    for key in WEBRTC_IP_KEYS:
        value = fingerprint.get(key)
        if not isinstance(value, str):
            continue
        value = value.strip()
        if value and value.lower() not in ("undefined", "null"):
            return value[:64]
    return None


def build_fingerprint_snapshot(context: RequestContext) -> dict[str, Any]:
    """Server-side fingerprint derivable from the request alone."""
    now = utc_now()
    return {
        "ip": context.ip,
        "method": context.method,
        "hostname": context.hostname,
        "path": context.path,
        "query": context.query,
        "headers": dict(context.headers),
        "device_type": detect_user_agent_type(context.user_agent or ""),
        "server_time": now.isoformat(),
        "server_timestamp": int(now.timestamp() * 1000),
    }


class ClickService:
    """Creates click records and merges client fingerprints onto them."""

    @staticmethod
    def record_click(
        db: Session,
        link_id: int,
        context: RequestContext,
        location: GeoLocation = UNAVAILABLE,
    ) -> int:
        """Insert a click for a resolved link and return its id."""
        click = Click(
            link_id=link_id,
            ip=context.ip,
            user_agent=context.user_agent,
            referrer=context.referrer,
            country=location.country,
            city=location.city,
            lat=location.lat,
            lng=location.lng,
            fingerprint=build_fingerprint_snapshot(context),
        )
        db.add(click)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to record click for link {link_id}") from e

        click_id = cast(int, click.id)
        logger.debug(f"Recorded click {click_id} for link {link_id}")
        return click_id

    @staticmethod
    def merge_fingerprint(db: Session, click_id: Any, partial: Any) -> bool:
        """
        Shallow-merge client fingerprint data onto a click.

        Incoming keys overwrite stored keys of the same name, everything else
        is kept. The webrtc_ip column is only ever written once. Malformed
        input and unknown click ids are ignored; returns True only when a
        row was updated. Store failures raise PersistenceError.
        """
        if isinstance(click_id, bool) or not isinstance(click_id, int) or click_id <= 0:
            return False
        if not isinstance(partial, dict):
            return False

        try:
            click = (
                db.query(Click)
                .filter(Click.id == click_id)
                .with_for_update()
                .first()
            )
            if click is None:
                logger.debug(f"Fingerprint for unknown click {click_id} dropped")
                return False

            current = click.fingerprint or {}
            click.fingerprint = {**current, **partial}

            webrtc_ip = pick_webrtc_ip(partial)
            if webrtc_ip:
                # Conditional update keeps the first writer's value under races
                db.query(Click).filter(
                    Click.id == click_id,
                    Click.webrtc_ip.is_(None),
                ).update({Click.webrtc_ip: webrtc_ip}, synchronize_session=False)

            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to merge fingerprint for click {click_id}") from e

        logger.debug(f"Merged {len(partial)} fingerprint keys into click {click_id}")
        return True

    @staticmethod
    def get_click(db: Session, click_id: int) -> Optional[Click]:
        return db.query(Click).filter(Click.id == click_id).first()

    @staticmethod
    def get_clicks_for_link(db: Session, link_id: int) -> List[Click]:
        """Clicks of one link, newest first."""
        return (
            db.query(Click)
            .filter(Click.link_id == link_id)
            .order_by(Click.clicked_at.desc(), Click.id.desc())
            .all()
        )

    @staticmethod
    def delete_click(db: Session, click_id: int) -> bool:
        """Administrative removal of a single click."""
        click = ClickService.get_click(db, click_id)
        if not click:
            return False

        db.delete(click)
        db.commit()
        logger.info(f"Deleted click {click_id}")
        return True
