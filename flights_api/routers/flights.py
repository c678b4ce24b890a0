"""
Flights router: enriched flight status for a date range and passenger lists.

    GET /today?from=&to=                 CDD schedule + OAG live status
    GET /{flight}/{date}/booked          CDD bookings (also triggers check-in reminders)
    GET /{flight}/{date}/checked-in      airport DCS, checked in but not boarded
    GET /{flight}/{date}/boarded         airport DCS, boarded

Dates are yyyy-MM-dd. Data-source failures bubble up to the global
handlers in main.py; OAG failures never do.
"""
import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from starlette.concurrency import run_in_threadpool

from flights_api.config import settings
from flights_api.dependencies import get_oag_client, get_reminder_dispatcher
from flights_api.models.flight import FlightStatus
from flights_api.models.passenger import Passenger
from flights_api.repositories import airport, cdd
from flights_api.services.enrichment import get_flights as enrich_flights
from flights_api.services.oag import OagClient
from flights_api.services.reminders import ReminderDispatcher, build_test_passengers

logger = logging.getLogger("flights-api.flights")

router = APIRouter()


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=422, detail="Invalid date (use yyyy-MM-dd).")


@router.get("/today", response_model=list[FlightStatus])
async def get_flights(
    from_: str = Query(..., alias="from", description="First departure date, yyyy-MM-dd"),
    to: str = Query(..., description="Last departure date (inclusive), yyyy-MM-dd"),
    oag: OagClient = Depends(get_oag_client),
):
    """Own-airline flights in [from, to], each merged with its live OAG status."""
    from_date, to_date = parse_date(from_), parse_date(to)
    if from_date > to_date:
        raise HTTPException(status_code=400, detail="'from' must not be after 'to'")

    return await enrich_flights(
        from_date,
        to_date,
        oag.lookup_status,
        airline_code=settings.airline_code,
        max_concurrency=settings.oag_max_concurrency,
    )


@router.get(
    "/{flight_number}/{flight_date}/booked",
    response_model=list[Passenger],
    response_model_exclude_none=True,
)
async def get_booked(
    flight_number: str,
    flight_date: str,
    reminders: ReminderDispatcher = Depends(get_reminder_dispatcher),
):
    """Booked passengers with a phone number. Check-in reminders go out in the background."""
    d = parse_date(flight_date)
    passengers = await run_in_threadpool(cdd.get_booked_passengers, flight_number, d)

    if settings.whatsapp_use_test_data:
        test_passengers = build_test_passengers(settings.test_phone_numbers, flight_number, d)
        if test_passengers:
            logger.warning(
                "TEST MODE: check-in reminders for flight %s go to %d test passengers",
                flight_number, len(test_passengers),
            )
            reminders.submit(test_passengers)
        else:
            logger.warning("TEST MODE: no test phone numbers configured (WHATSAPP_TEST_PHONE_NUMBERS)")
    elif passengers:
        logger.info(
            "Initiating online check-in reminders for flight %s with %d passengers",
            flight_number, len(passengers),
        )
        reminders.submit(passengers)

    return passengers


@router.get(
    "/{flight_number}/{flight_date}/checked-in",
    response_model=list[Passenger],
    response_model_exclude_none=True,
)
def get_checked_in(flight_number: str, flight_date: str):
    return airport.get_checked_in_passengers(flight_number, parse_date(flight_date))


@router.get(
    "/{flight_number}/{flight_date}/boarded",
    response_model=list[Passenger],
    response_model_exclude_none=True,
)
def get_boarded(flight_number: str, flight_date: str):
    return airport.get_boarded_passengers(flight_number, parse_date(flight_date))
