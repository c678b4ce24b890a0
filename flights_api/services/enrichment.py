"""
Flight status enrichment: CDD schedule rows + live OAG status -> FlightStatus.

Flow for one request:
    1. Pull distinct schedule rows for the date range from CDD (fatal on failure)
    2. Fan out one OAG lookup per row, capped by a semaphore, and wait for all
    3. Merge each row with its status (or None) into a FlightStatus
    4. Sort by scheduled departure date, then flight number

A lookup that fails only degrades its own row to "Scheduled". The snapshot
time is captured once so every record in a response shows the same instant.
"""
import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Optional, Sequence

from starlette.concurrency import run_in_threadpool

from flights_api.models.flight import FlightPortInfo, FlightStatus, ScheduleRow
from flights_api.models.oag import OagFlightInstance, OagTimes
from flights_api.repositories import cdd
from flights_api.services.normalize import (
    extract_date,
    extract_time,
    format_date,
    normalize_time,
    parse_terminal,
    safe,
)

logger = logging.getLogger("flights-api.enrichment")

StatusLookup = Callable[[str, date], Awaitable[Optional[OagFlightInstance]]]

DEFAULT_MAX_CONCURRENCY = 16


def _local(times: OagTimes | None, point: str) -> str:
    """times.<point>.local, or "" anywhere along the way."""
    detail = getattr(times, point, None) if times else None
    return detail.local if detail and detail.local else ""


def _status_labels(instance: OagFlightInstance | None) -> tuple[str, bool, str]:
    """(status, delayed, statusWithTime) for one flight."""
    detail = instance.current_status if instance else None
    if detail is None:
        return "Scheduled", False, "Scheduled"

    status = detail.state or "Scheduled"
    dep = detail.departure
    actual = dep.actual_time if dep else None
    estimated = dep.estimated_time if dep else None

    if (actual and actual.out_gate_timeliness == "Delayed") or (
        estimated and estimated.out_gate_timeliness == "Delayed"
    ):
        variation = (actual and actual.out_gate_variation) or (
            estimated and estimated.out_gate_variation
        ) or ""
        return status, True, f"Delayed {variation}"
    if status in ("InGate", "Arrived"):
        return status, False, "Arrived"
    if status in ("Airborne", "InFlight"):
        return status, False, "In Flight"
    return status, False, status


def build_flight_status(
    row: ScheduleRow,
    instance: OagFlightInstance | None,
    now: datetime,
) -> FlightStatus:
    """Merge one CDD row with its OAG instance (which may be None)."""
    status, delayed, status_with_time = _status_labels(instance)
    detail = instance.current_status if instance else None

    sched_dep = instance.departure if instance else None
    sched_arr = instance.arrival if instance else None
    live_dep = detail.departure if detail else None
    live_arr = detail.arrival if detail else None

    dep_estimated = _local(live_dep.estimated_time if live_dep else None, "out_gate")
    dep_actual = _local(live_dep.actual_time if live_dep else None, "out_gate")
    departure = FlightPortInfo(
        city=safe(row.dep_city),
        airport=safe(sched_dep.airport.iata) if sched_dep and sched_dep.airport else "",
        # Scheduled terminal; OAG has no live departure terminal
        terminal=parse_terminal(sched_dep.terminal) if sched_dep else None,
        scheduled_time=normalize_time(row.sch_dep_time),
        scheduled_date=format_date(row.sch_dep_date),
        estimated_time=extract_time(dep_estimated),
        estimated_date=extract_date(dep_estimated),
        actual_time=extract_time(dep_actual),
        actual_date=extract_date(dep_actual),
        gate=safe(live_dep.gate) if live_dep else "",
    )

    arr_estimated = _local(live_arr.estimated_time if live_arr else None, "in_gate")
    arr_actual = _local(live_arr.actual_time if live_arr else None, "in_gate")
    arr_terminal = (live_arr.actual_terminal if live_arr else None) or (
        sched_arr.terminal if sched_arr else None
    )
    arrival = FlightPortInfo(
        city=safe(row.arr_city),
        airport=safe(sched_arr.airport.iata) if sched_arr and sched_arr.airport else "",
        terminal=parse_terminal(arr_terminal),
        scheduled_time=extract_time(sched_arr.time.local if sched_arr and sched_arr.time else None),
        scheduled_date=extract_date(sched_arr.date.local if sched_arr and sched_arr.date else None),
        estimated_time=extract_time(arr_estimated),
        estimated_date=extract_date(arr_estimated),
        actual_time=extract_time(arr_actual),
        actual_date=extract_date(arr_actual),
        gate=safe(live_arr.gate) if live_arr else "",
        baggage=safe(live_arr.baggage) if live_arr else "",
    )

    return FlightStatus(
        flight=f"{safe(row.airline_code)} {safe(row.flight_number)}".strip(),
        flight_number=row.flight_number,
        airline_code=row.airline_code,
        departure=departure,
        arrival=arrival,
        status=status,
        delayed=delayed,
        status_with_time=status_with_time,
        current_time=now.strftime("%H:%M"),
        current_date=now.strftime("%d/%m/%Y"),
        current_date_time=now,
    )


def _sort_key(row: ScheduleRow):
    digits = "".join(ch for ch in row.flight_number if ch.isdigit())
    return (
        row.sch_dep_date is None,
        row.sch_dep_date or date.min,
        int(digits) if digits else 0,
        row.flight_number,
    )


async def enrich(
    rows: Sequence[ScheduleRow],
    lookup: StatusLookup,
    *,
    now: datetime | None = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> list[FlightStatus]:
    """One FlightStatus per row, sorted by (scheduled date, flight number)."""
    now = now or datetime.now(timezone.utc)
    semaphore = asyncio.Semaphore(max_concurrency)

    async def _lookup(row: ScheduleRow) -> OagFlightInstance | None:
        flight_date = row.sch_dep_date or now.date()
        async with semaphore:
            try:
                return await lookup(row.flight_number, flight_date)
            except Exception:
                logger.warning(
                    "Failed to get OAG data for flight %s on %s",
                    row.flight_number, flight_date, exc_info=True,
                )
                return None

    statuses = await asyncio.gather(*(_lookup(r) for r in rows))

    enriched = sum(1 for s in statuses if s is not None)
    logger.info("OAG enrichment completed: %d/%d flights enriched", enriched, len(rows))

    pairs = sorted(zip(rows, statuses), key=lambda p: _sort_key(p[0]))
    return [build_flight_status(row, status, now) for row, status in pairs]


async def get_flights(
    from_date: date,
    to_date: date,
    lookup: StatusLookup,
    *,
    airline_code: str,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> list[FlightStatus]:
    """Enriched own-airline flights for [from_date, to_date]."""
    rows = await run_in_threadpool(cdd.get_schedule_rows, from_date, to_date, airline_code)
    return await enrich(rows, lookup, max_concurrency=max_concurrency)
