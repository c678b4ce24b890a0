"""
Online check-in reminders, sent fire-and-forget after a booked-passenger lookup.

The batch goes to the check-in relay as one POST covering every passenger
with a phone number. It runs as its own asyncio task so neither the
request that triggered it nor a client disconnect can cancel it; the
caller never sees the outcome, which is only logged. A semaphore bounds how
many batches are in flight at once, max_pending caps how many may wait
(extra batches are dropped with a warning), and shutdown() drains what's left.
"""
import asyncio
import logging
from datetime import date
from typing import Iterable, Optional, Sequence

import aiohttp

from flights_api.models.passenger import Passenger
from flights_api.services.normalize import safe, strip_carrier_prefix

logger = logging.getLogger("flights-api.reminders")

BATCH_PATH = "/api/checkin/online/batch"


def build_reminder_payload(passengers: Iterable[Passenger], carrier: str) -> list[dict]:
    """Relay payload; passengers without a phone are dropped."""
    return [
        {
            "pnr": p.pnr,
            "givenName": p.given_name,
            "surname": p.surname,
            "seatOrPhone": p.seat_or_phone,
            "flightNumber": strip_carrier_prefix(p.flight_number, carrier) if p.flight_number else None,
            "flightDate": p.flight_date.isoformat() if p.flight_date else None,
        }
        for p in passengers
        if p.seat_or_phone and p.seat_or_phone.strip()
    ]


def build_test_passengers(
    entries: Sequence[str], flight_number: str, flight_date: date
) -> list[Passenger]:
    """Dummy passengers from "Name Surname:+973..." entries (test mode)."""
    passengers = []
    for i, entry in enumerate(entries, start=1):
        name, _, phone = entry.rpartition(":")
        if not phone.strip():
            continue
        words = name.split()
        passengers.append(Passenger(
            pnr=f"TEST{i:03d}",
            given_name=words[0] if words else f"Test{i}",
            surname=words[1] if len(words) > 1 else "",
            seat_or_phone=phone.strip(),
            flight_number=flight_number,
            flight_date=flight_date,
        ))
    return passengers


class ReminderDispatcher:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        carrier: str,
        *,
        timeout_seconds: float = 300.0,
        max_workers: int = 4,
        max_pending: int = 64,
    ) -> None:
        self._session = session
        self.base_url = safe(base_url).rstrip("/")
        self.carrier = carrier
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._semaphore = asyncio.Semaphore(max_workers)
        self.max_pending = max_pending
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, passengers: Sequence[Passenger]) -> Optional[asyncio.Task]:
        """Schedule a batch send and return immediately. Must be called from the event loop."""
        if not passengers:
            return None
        if len(self._tasks) >= self.max_pending:
            logger.warning(
                "Reminder queue full (%d batches pending), dropping batch of %d passengers",
                len(self._tasks), len(passengers),
            )
            return None
        task = asyncio.create_task(self._run(list(passengers)), name="checkin-reminders")
        # Hold a strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def _run(self, passengers: list[Passenger]) -> bool:
        async with self._semaphore:
            return await self.send_batch(passengers)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Check-in reminder batch was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Check-in reminder batch crashed", exc_info=exc)
        else:
            logger.info("Check-in reminder batch finished ok=%s", task.result())

    async def send_batch(self, passengers: Sequence[Passenger]) -> bool:
        """POST the batch to the relay. Logs and returns False on any failure."""
        payload = build_reminder_payload(passengers, self.carrier)
        if not payload:
            logger.info("No passengers with valid phone numbers to send reminders")
            return False
        if not self.base_url:
            logger.warning("Reminder relay URL not configured, skipping check-in reminders")
            return False

        logger.debug("Sending check-in reminders for %d passengers", len(payload))
        try:
            async with self._session.post(
                f"{self.base_url}{BATCH_PATH}", json=payload, timeout=self._timeout
            ) as resp:
                body = await resp.text()
                if not 200 <= resp.status < 300:
                    logger.error("Reminder relay returned error %s: %s", resp.status, body[:500])
                    return False
        except asyncio.TimeoutError:
            logger.warning("Check-in reminder batch timed out")
            return False
        except aiohttp.ClientError as e:
            logger.error("Failed to send check-in reminders batch: %s", e)
            return False

        logger.info("Check-in reminders accepted for %d passengers", len(payload))
        return True

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Give in-flight batches a grace period, then cancel them."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
