import json
import re
from typing import cast, List
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from .auth import require_admin
from .config import settings
from .database import get_db
from .errors import CodeExhaustedError, PersistenceError
from .schemas import (
    ShortenRequest,
    ShortenResponse,
    LinkSummary,
    ClickResponse,
    LinkClicksResponse,
    ErrorResponse,
)
from .services import LinkService, ClickService
from .utils import format_short_url
from .logging_config import get_logger, bind_click_id

logger = get_logger(__name__)

router = APIRouter()
dashboard_router = APIRouter(dependencies=[Depends(require_admin)])
tracking_router = APIRouter()

CLICK_ID_PATTERN = re.compile(r"[1-9][0-9]{0,18}")


@router.post(
    "/shorten",
    response_model=ShortenResponse,
    responses={
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse}
    }
)
def create_short_link(
    data: ShortenRequest,
    db: Session = Depends(get_db)
):
    """Create a new shortened link."""
    try:
        link = LinkService.create_link(db, data.url)
    except CodeExhaustedError:
        raise HTTPException(
            status_code=503,
            detail="Could not allocate a short code. Please try again."
        )
    except PersistenceError as e:
        logger.error(f"Link creation failed: {e}")
        raise HTTPException(
            status_code=500,
            detail="Failed to create link. Please try again."
        )

    code = cast(str, link.short_code)
    return ShortenResponse(
        short_code=code,
        short_url=format_short_url(code),
        original_url=cast(str, link.original_url),
        created_at=cast(datetime, link.created_at),
    )


@dashboard_router.get("/links", response_model=List[LinkSummary])
def list_links(db: Session = Depends(get_db)):
    """All links with click counts, newest first."""
    return [LinkSummary(**row) for row in LinkService.list_links_with_click_counts(db)]


@dashboard_router.get(
    "/links/{code}/clicks",
    response_model=LinkClicksResponse,
    responses={404: {"model": ErrorResponse}}
)
def get_link_clicks(code: str, db: Session = Depends(get_db)):
    """Clicks recorded for one link, newest first."""
    link = LinkService.get_link_by_code(db, code)
    if not link:
        raise HTTPException(status_code=404, detail="Link not found")

    clicks = ClickService.get_clicks_for_link(db, cast(int, link.id))
    return LinkClicksResponse(
        short_code=cast(str, link.short_code),
        original_url=cast(str, link.original_url),
        click_count=len(clicks),
        clicks=[ClickResponse.model_validate(click) for click in clicks],
    )


@dashboard_router.delete(
    "/links/{code}",
    status_code=204,
    responses={404: {"model": ErrorResponse}}
)
def delete_link(code: str, db: Session = Depends(get_db)):
    """Delete a link together with its clicks."""
    if not LinkService.delete_link(db, code):
        raise HTTPException(status_code=404, detail="Link not found")
    return Response(status_code=204)


@dashboard_router.delete(
    "/clicks/{click_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}}
)
def delete_click(click_id: int, db: Session = Depends(get_db)):
    """Delete a single click."""
    if not ClickService.delete_click(db, click_id):
        raise HTTPException(status_code=404, detail="Click not found")
    return Response(status_code=204)


async def read_limited_body(request: Request, max_bytes: int) -> bytes:
    """
    Read the request body, giving up with a 400 as soon as it grows past
    max_bytes. Chunked uploads are never buffered beyond the limit.
    """
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise HTTPException(status_code=400, detail="Fingerprint payload too large")

    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_bytes:
            raise HTTPException(status_code=400, detail="Fingerprint payload too large")
        chunks.append(chunk)
    return b"".join(chunks)


@tracking_router.post(
    "/track-fingerprint/{click_id}",
    status_code=204,
    responses={400: {"model": ErrorResponse}}
)
async def track_fingerprint(
    click_id: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Attach client-collected fingerprint data to a click.

    Input problems get a 400; anything that goes wrong after validation is
    logged and the client still gets a 204.
    """
    if not CLICK_ID_PATTERN.fullmatch(click_id):
        raise HTTPException(status_code=400, detail="Invalid click id")
    bind_click_id(int(click_id))

    body = await read_limited_body(request, settings.FINGERPRINT_MAX_BYTES)
    if not body:
        raise HTTPException(status_code=400, detail="Missing fingerprint payload")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Fingerprint payload must be JSON")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Fingerprint payload must be a JSON object")

    try:
        await run_in_threadpool(ClickService.merge_fingerprint, db, int(click_id), payload)
    except Exception as e:
        logger.error(f"Fingerprint merge failed for click {click_id}: {e}")

    return Response(status_code=204)
