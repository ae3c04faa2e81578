"""Donation ingestion routes."""

import asyncio
import math
import secrets
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from effekt_common import get_logger

from .accumulator import DonationEvent
from .batcher import Batcher
from .errors import FlushFailedError, WaiterCancelledError

logger = get_logger(__name__)

router = APIRouter()

DISCONNECT_POLL_SEC = 0.5


def get_batcher(request: Request) -> Batcher:
    return request.app.state.batcher


def require_auth(request: Request) -> None:
    """Reject the request unless it carries the configured bearer token."""
    token = request.app.state.config.auth_token
    if not token:
        return
    header = request.headers.get("authorization", "")
    if not secrets.compare_digest(header.encode(), f"Bearer {token}".encode()):
        raise HTTPException(status_code=401)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
    elif not isinstance(value, (int, float)):
        return None
    try:
        return float(value)
    except (ValueError, OverflowError):
        # Integers beyond float range are as unusable as inf
        return None


def _as_donation_id(value: Any) -> Optional[int]:
    """Positive integer id; integral ints are kept exact rather than rounded through float."""
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            pass
    if isinstance(value, int) and not isinstance(value, bool):
        if _as_number(value) is None or value <= 0:
            return None
        return value

    number = _as_number(value)
    if number is None or not math.isfinite(number) or number <= 0:
        return None
    if not number.is_integer():
        return None
    return int(number)


def parse_donation(body: Any) -> Optional[DonationEvent]:
    """Build a DonationEvent from a request body, or None if it is invalid."""
    if not isinstance(body, dict):
        return None

    donation_id = _as_donation_id(body.get("donationId"))
    amount = _as_number(body.get("amount"))
    if donation_id is None:
        return None
    if amount is None or not math.isfinite(amount) or amount <= 0:
        return None

    timestamp = body.get("timestamp") or datetime.now(timezone.utc).isoformat()
    return DonationEvent(
        donation_id=donation_id,
        amount=amount,
        timestamp=str(timestamp),
    )


def bad_request() -> JSONResponse:
    return JSONResponse({"ok": False}, status_code=400)


async def _watch_disconnect(request: Request, cancel_event: asyncio.Event) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_SEC)
    logger.info("Client disconnected while waiting for batch")
    cancel_event.set()


@router.get("/healthz")
async def healthz():
    return {"ok": True}


@router.get("/stats", dependencies=[Depends(require_auth)])
async def stats(batcher: Batcher = Depends(get_batcher)):
    return {"ok": True, **batcher.stats}


@router.post("/donations/confirmed", dependencies=[Depends(require_auth)])
async def donation_confirmed(
    request: Request,
    wait: bool = False,
    batcher: Batcher = Depends(get_batcher),
):
    """Accept a confirmed donation.

    With ``?wait=true`` the response is held until the batch the donation
    joined has been pushed to the display.
    """
    raw = await request.body()
    try:
        body = await request.json() if raw else {}
    except ValueError:
        return bad_request()

    event = parse_donation(body)
    if event is None:
        return bad_request()

    if not wait:
        accepted = batcher.submit(event)
        return {"ok": True, "accepted": accepted}

    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
    try:
        snapshot = await batcher.submit_and_await(event, cancel_event)
    except FlushFailedError as e:
        return JSONResponse({"ok": False, "accepted": True, "error": str(e)}, status_code=502)
    except WaiterCancelledError as e:
        return JSONResponse({"ok": False, "accepted": True, "error": str(e)}, status_code=503)
    finally:
        watcher.cancel()

    if snapshot is None:
        return {"ok": True, "accepted": False}
    return {"ok": True, "accepted": True, "batch": snapshot.to_dict()}
