"""
Queries against the CDD reservations view (vw_pax_details).

CDD writes passenger names "SURNAME GIVEN [MIDDLE]" and appends contact
type suffixes to phone numbers; both are cleaned here so callers get
Passenger models in the same shape as the airport lists.
"""
import logging
from datetime import date

from flights_api.database import CDD, fetch_all
from flights_api.models.flight import ScheduleRow
from flights_api.models.passenger import Passenger
from flights_api.services.normalize import clean_phone, safe, split_name_surname_first

logger = logging.getLogger("flights-api.cdd")

SCHEDULE_QUERY = """
    SELECT DISTINCT
        TRIM(t.airline_code)        AS airline_code,
        TRIM(t.flight_number)       AS flight_number,
        TRIM(t.service_start_city)  AS dep_city,
        TRIM(t.service_end_city)    AS arr_city,
        t.service_start_date::date  AS sch_dep_date,
        t.service_start_time        AS sch_dep_time
    FROM vw_pax_details t
    WHERE t.service_start_date::date BETWEEN %(from_date)s AND %(to_date)s
        AND TRIM(t.airline_code) = %(airline)s
    ORDER BY sch_dep_date, flight_number
"""

BOOKED_QUERY = """
    SELECT
        TRIM(t.pnr_locator)         AS pnr,
        TRIM(t.passenger_name)      AS full_name,
        t.phone_number              AS phone_number,
        TRIM(t.flight_number)       AS flight_number,
        t.service_start_date::date  AS service_start_date
    FROM vw_pax_details t
    WHERE TRIM(t.flight_number) = %(flight_number)s
        AND t.service_start_date::date = %(flight_date)s
        AND (t.passenger_status IS NULL OR UPPER(t.passenger_status) IN ('BOOKED', 'CONFIRMED'))
        AND t.phone_number IS NOT NULL
        AND COALESCE(t.coupon_status, '') <> 'CKIN'
    ORDER BY t.passenger_name
"""


def get_schedule_rows(from_date: date, to_date: date, airline_code: str) -> list[ScheduleRow]:
    """Distinct own-airline flights departing in [from_date, to_date]."""
    rows = fetch_all(
        SCHEDULE_QUERY,
        {"from_date": from_date, "to_date": to_date, "airline": airline_code},
        source=CDD,
    )
    logger.info("Retrieved %d flights from CDD for %s to %s", len(rows), from_date, to_date)
    # Keep query order, drop repeats
    return list(dict.fromkeys(ScheduleRow.model_validate(r) for r in rows))


def get_booked_passengers(flight_number: str, flight_date: date) -> list[Passenger]:
    rows = fetch_all(
        BOOKED_QUERY,
        {"flight_number": safe(flight_number), "flight_date": flight_date},
        source=CDD,
    )
    passengers = []
    for r in rows:
        given, surname = split_name_surname_first(r.get("full_name"))
        passengers.append(Passenger(
            pnr=safe(r.get("pnr")),
            given_name=given,
            surname=surname,
            seat_or_phone=clean_phone(r.get("phone_number")),
            flight_number=r.get("flight_number"),
            flight_date=r.get("service_start_date"),
        ))
    return passengers
