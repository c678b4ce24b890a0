"""
Tests for the fire-and-forget check-in reminder batch.
"""
import asyncio
from datetime import date

import aiohttp

from fakes import FakeResponse, FakeSession
from flights_api.models.passenger import Passenger
from flights_api.services.reminders import (
    ReminderDispatcher,
    build_reminder_payload,
    build_test_passengers,
)

PASSENGERS = [
    Passenger(pnr="ABC123", given_name="JOHN", surname="SMITH", seat_or_phone="+97312345678",
              flight_number="GF0277", flight_date=date(2024, 1, 1)),
    Passenger(pnr="DEF456", given_name="JANE", surname="DOE", seat_or_phone="  ",
              flight_number="GF0277", flight_date=date(2024, 1, 1)),
    Passenger(pnr="GHI789", given_name="ALI", surname="HASSAN", seat_or_phone=None),
]


def test_payload_keeps_only_passengers_with_phone():
    payload = build_reminder_payload(PASSENGERS, "GF")
    assert payload == [{
        "pnr": "ABC123",
        "givenName": "JOHN",
        "surname": "SMITH",
        "seatOrPhone": "+97312345678",
        "flightNumber": "277",
        "flightDate": "2024-01-01",
    }]


def test_test_passengers_from_config_entries():
    result = build_test_passengers(["Jane Doe:+97311112222", "Bob:+97333334444", "broken:"], "0277", date(2024, 1, 1))
    assert [p.pnr for p in result] == ["TEST001", "TEST002"]
    assert (result[0].given_name, result[0].surname, result[0].seat_or_phone) == ("Jane", "Doe", "+97311112222")
    assert result[1].surname == ""
    assert result[1].flight_date == date(2024, 1, 1)


def test_send_batch_posts_to_relay_with_long_timeout():
    session = FakeSession(FakeResponse(200, {"sent": 1}))
    dispatcher = ReminderDispatcher(session, "https://relay.example.com/", "GF")

    assert asyncio.run(dispatcher.send_batch(PASSENGERS)) is True
    call = session.calls[0]
    assert call["url"] == "https://relay.example.com/api/checkin/online/batch"
    assert len(call["json"]) == 1
    assert call["timeout"].total == 300


def test_send_batch_without_relay_url_is_skipped():
    session = FakeSession()
    dispatcher = ReminderDispatcher(session, "", "GF")
    assert asyncio.run(dispatcher.send_batch(PASSENGERS)) is False
    assert session.calls == []


def test_send_batch_without_phones_is_skipped():
    session = FakeSession()
    dispatcher = ReminderDispatcher(session, "https://relay.example.com", "GF")
    assert asyncio.run(dispatcher.send_batch(PASSENGERS[1:])) is False
    assert session.calls == []


def test_send_batch_swallows_relay_errors():
    """Background failures are logged, never raised."""
    for outcome in (
        FakeResponse(500, text="boom"),
        aiohttp.ClientConnectionError("refused"),
        asyncio.TimeoutError(),
    ):
        dispatcher = ReminderDispatcher(FakeSession(outcome), "https://relay.example.com", "GF")
        assert asyncio.run(dispatcher.send_batch(PASSENGERS)) is False


def test_batch_outlives_the_request_that_submitted_it():
    """Cancelling the triggering request must not cancel the detached send."""
    async def scenario():
        session = FakeSession(FakeResponse(200, {}))
        dispatcher = ReminderDispatcher(session, "https://relay.example.com", "GF")

        async def request_handler():
            dispatcher.submit(PASSENGERS)
            await asyncio.sleep(10)

        request = asyncio.create_task(request_handler())
        await asyncio.sleep(0)
        request.cancel()
        await asyncio.gather(request, return_exceptions=True)

        await dispatcher.shutdown()
        return session, dispatcher

    session, dispatcher = asyncio.run(scenario())
    assert len(session.calls) == 1
    assert dispatcher.pending == 0


def test_submit_with_no_passengers_does_nothing():
    async def scenario():
        dispatcher = ReminderDispatcher(FakeSession(), "https://relay.example.com", "GF")
        return dispatcher.submit([])

    assert asyncio.run(scenario()) is None


class StalledSession:
    """Relay that doesn't answer until released."""

    def __init__(self):
        self.release = asyncio.Event()
        self.posts = 0

    def post(self, url, **kwargs):
        self.posts += 1
        session = self

        class _Response:
            status = 200

            async def text(self):
                return "{}"

            async def __aenter__(self):
                await session.release.wait()
                return self

            async def __aexit__(self, *exc):
                return False

        return _Response()


def test_pending_batches_are_capped_under_a_slow_relay():
    """Once max_pending batches are waiting, further submits are dropped."""
    async def scenario():
        session = StalledSession()
        dispatcher = ReminderDispatcher(
            session, "https://relay.example.com", "GF", max_workers=1, max_pending=4,
        )
        accepted = [dispatcher.submit(PASSENGERS) for _ in range(1000)]
        await asyncio.sleep(0)
        pending = dispatcher.pending

        session.release.set()
        await dispatcher.shutdown()
        return accepted, pending, session, dispatcher

    accepted, pending, session, dispatcher = asyncio.run(scenario())
    assert pending == 4
    assert sum(1 for t in accepted if t is not None) == 4
    assert session.posts == 4
    assert dispatcher.pending == 0


def test_capacity_frees_up_once_batches_finish():
    async def scenario():
        dispatcher = ReminderDispatcher(
            FakeSession(FakeResponse(200, {}), FakeResponse(200, {})),
            "https://relay.example.com", "GF", max_pending=1,
        )
        first = dispatcher.submit(PASSENGERS)
        assert dispatcher.submit(PASSENGERS) is None
        await first
        await asyncio.sleep(0)
        second = dispatcher.submit(PASSENGERS)
        await dispatcher.shutdown()
        return second

    assert asyncio.run(scenario()) is not None
