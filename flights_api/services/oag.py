"""
OAG flight-instances client.

lookup_status() never raises for "not found", HTTP errors, timeouts or bad
payloads: all of them become None so one broken lookup can't take down a
whole flights request. Only cancellation propagates.

OAG wants unpadded flight numbers ("1", not "0001") and a carrier code;
the session carries the Subscription-Key header and the per-call timeout.
"""
import asyncio
import logging
from datetime import date

import aiohttp

from flights_api.models.oag import OagFlightInstance, OagResponse
from flights_api.services.normalize import unpad_flight_number

logger = logging.getLogger("flights-api.oag")

USER_AGENT = "GFG-Flights-API/1.0"


def create_oag_session(subscription_key: str, timeout_seconds: float) -> aiohttp.ClientSession:
    """Process-wide session, created once in the app lifespan."""
    headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
    if subscription_key:
        headers["Subscription-Key"] = subscription_key
    return aiohttp.ClientSession(
        headers=headers,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds),
    )


class OagClient:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        carrier_code: str,
        *,
        enabled: bool = True,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self.carrier_code = carrier_code
        self.enabled = enabled

    async def lookup_status(self, flight_number: str, flight_date: date) -> OagFlightInstance | None:
        """Current OAG instance for one flight/date, or None."""
        if not self.enabled:
            return None

        number = unpad_flight_number(flight_number)
        if not number:
            logger.warning("Skipping OAG lookup for unusable flight number %r", flight_number)
            return None

        url = f"{self._base_url}/flight-instances/"
        params = {
            "DepartureDateTime": flight_date.isoformat(),
            "CarrierCode": self.carrier_code,
            "FlightNumber": number,
            "Content": "status,map",
            "CodeType": "IATA",
            "version": "v2",
        }
        logger.debug("Calling OAG: %s %s", url, params)

        try:
            async with self._session.get(url, params=params) as resp:
                if not 200 <= resp.status < 300:
                    logger.warning(
                        "OAG returned %s for flight %s on %s",
                        resp.status, flight_number, flight_date,
                    )
                    return None
                body = await resp.json(content_type=None)
            envelope = OagResponse.model_validate(body)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            # ValueError covers bad JSON and pydantic ValidationError
            logger.warning(
                "OAG lookup failed for flight %s on %s: %s",
                flight_number, flight_date, e,
            )
            return None

        if not envelope.data:
            logger.debug("No OAG data for flight %s on %s", flight_number, flight_date)
            return None

        logger.debug("OAG data retrieved for flight %s on %s", flight_number, flight_date)
        return envelope.data[0]
