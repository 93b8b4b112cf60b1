import asyncio
import logging

import httpx
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from workshop_api.core import config
from workshop_api.core.errors import UpstreamFailure, ValidationFailure
from workshop_api.services import entity_store

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

# Statuses the Geocoding API returns with HTTP 200 that still carry a usable answer.
GEOCODE_OK = "OK"
GEOCODE_ZERO_RESULTS = "ZERO_RESULTS"


class _RetryableGeocodeError(Exception):
    pass


async def _geocode_once(client: httpx.AsyncClient, address: str) -> list[dict]:
    try:
        response = await client.get(
            GEOCODE_URL,
            params={"address": address, "key": config.GOOGLE_MAPS_API_KEY},
        )
    except httpx.HTTPError as exc:
        raise _RetryableGeocodeError(str(exc)) from exc

    if response.status_code >= 500:
        raise _RetryableGeocodeError(f"HTTP {response.status_code}")
    if response.is_error:
        raise UpstreamFailure(f"Geocoding request failed: HTTP {response.status_code}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamFailure("Geocoding service returned a non-JSON response.") from exc
    status = payload.get("status")
    if status == GEOCODE_ZERO_RESULTS:
        return []
    if status != GEOCODE_OK:
        detail = payload.get("error_message") or status or "unknown error"
        raise UpstreamFailure(f"Geocoding request failed: {detail}")
    return payload.get("results", [])


async def geocode_address(client: httpx.AsyncClient, address: str) -> list[dict]:
    """Resolve ``address`` to the raw Geocoding API result list.

    Transport errors and 5xx responses are retried up to GEOCODE_MAX_ATTEMPTS
    times in total, waiting GEOCODE_RETRY_BACKOFF_SECONDS and doubling after
    each failure. Every other failure is raised immediately.
    """
    if not config.GOOGLE_MAPS_API_KEY:
        raise UpstreamFailure("Geocoding is not configured. Set GOOGLE_MAPS_API_KEY.")

    max_attempts = max(1, config.GEOCODE_MAX_ATTEMPTS)
    attempts = 0
    while True:
        attempts += 1
        try:
            return await _geocode_once(client, address)
        except _RetryableGeocodeError as exc:
            logger.warning("Geocoding failed (attempt %s/%s): %s", attempts, max_attempts, exc)
            if attempts >= max_attempts:
                raise UpstreamFailure(f"Geocoding request failed after {attempts} attempts: {exc}") from exc
            await asyncio.sleep(config.GEOCODE_RETRY_BACKOFF_SECONDS * 2 ** (attempts - 1))


async def geocode_workshop_location(db: Session, client: httpx.AsyncClient, workshop_id: int) -> list[dict]:
    workshop = await run_in_threadpool(entity_store.require_workshop, db, workshop_id)
    if not workshop.location:
        raise ValidationFailure("Workshop has no location to geocode.")
    return await geocode_address(client, workshop.location)
