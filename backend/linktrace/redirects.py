"""
Redirect orchestration: resolve, enrich, record, respond.

Only resolution can fail a redirect. Enrichment and recording failures are
logged and the visitor is still sent on to the destination.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from .context import RequestContext
from .errors import NotFoundError
from .geolocation import GeoLocation, UNAVAILABLE, resolve_location
from .services import LinkService, ClickService
from .utils import is_reserved_code
from .logging_config import get_logger, bind_click_id

logger = get_logger(__name__)


@dataclass(frozen=True)
class RedirectOutcome:
    url: str
    click_id: Optional[int] = None


async def enrich(ip: Optional[str]) -> GeoLocation:
    try:
        return await resolve_location(ip)
    except Exception as e:
        logger.error(f"Geolocation enrichment failed for {ip}: {e}")
        return UNAVAILABLE


async def serve_redirect(db: Session, code: str, context: RequestContext) -> RedirectOutcome:
    """
    Serve one redirect request.
    Raises NotFoundError for unknown or reserved codes; no click is recorded then.
    """
    if is_reserved_code(code):
        raise NotFoundError(code)

    # Blocking DB work runs on the threadpool so the event loop stays free
    link = await run_in_threadpool(LinkService.resolve, db, code)

    location = await enrich(context.ip)

    click_id = None
    try:
        click_id = await run_in_threadpool(
            ClickService.record_click, db, link.id, context, location
        )
        bind_click_id(click_id)
        logger.info(f"Recorded click for {code}")
    except Exception as e:
        logger.error(f"Failed to record click for {code}: {e}")

    return RedirectOutcome(url=link.original_url, click_id=click_id)
