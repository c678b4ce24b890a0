"""
Queries against the airport departure-control view (v_pax_all_details).

FLT_NR is stored zero-padded to four digits and names are written
"GIVEN [MIDDLE] SURNAME", the opposite of CDD.
"""
from datetime import date

from flights_api.config import settings
from flights_api.database import AIRPORT, fetch_all
from flights_api.models.passenger import Passenger
from flights_api.services.normalize import normalize_flight_number, safe, split_name_surname_last

_BASE_QUERY = """
    SELECT
        TRIM(a.pnr)       AS pnr,
        TRIM(a.pax_name)  AS pax_name,
        TRIM(a.seat_no)   AS seat
    FROM v_pax_all_details a
    WHERE TRIM(a.aln_cd) = %(airline)s
        AND TRIM(a.flt_nr) = %(flt_nr)s
        AND COALESCE(a.pub_dep_dt, a.sch_dep_dt)::date = %(flight_date)s
        AND {condition}
    ORDER BY a.pax_name
"""

CHECKED_IN_QUERY = _BASE_QUERY.format(
    condition="UPPER(TRIM(a.status)) = 'CKIN' AND UPPER(TRIM(a.boarded)) = 'FALSE'"
)
BOARDED_QUERY = _BASE_QUERY.format(condition="UPPER(TRIM(a.boarded)) = 'TRUE'")


def _passengers(query: str, flight_number: str, flight_date: date) -> list[Passenger]:
    rows = fetch_all(
        query,
        {
            "airline": settings.airline_code,
            "flt_nr": normalize_flight_number(flight_number),
            "flight_date": flight_date,
        },
        source=AIRPORT,
    )
    result = []
    for r in rows:
        given, surname = split_name_surname_last(r.get("pax_name"))
        result.append(Passenger(
            pnr=safe(r.get("pnr")),
            given_name=given,
            surname=surname,
            seat_or_phone=r.get("seat") or None,
        ))
    return result


def get_checked_in_passengers(flight_number: str, flight_date: date) -> list[Passenger]:
    return _passengers(CHECKED_IN_QUERY, flight_number, flight_date)


def get_boarded_passengers(flight_number: str, flight_date: date) -> list[Passenger]:
    return _passengers(BOARDED_QUERY, flight_number, flight_date)
