"""
FastAPI dependencies for the process-wide collaborators.

The HTTP sessions and the clients built on them are created once in the
lifespan (see main.py) and parked on app.state; routes get them injected
here, which also makes them easy to override in tests.
"""
from fastapi import HTTPException, Request

from flights_api.services.messaging import MessagingClient
from flights_api.services.oag import OagClient
from flights_api.services.reminders import ReminderDispatcher


def get_oag_client(request: Request) -> OagClient:
    return request.app.state.oag


def get_reminder_dispatcher(request: Request) -> ReminderDispatcher:
    return request.app.state.reminders


def get_messaging_client(request: Request) -> MessagingClient:
    client = getattr(request.app.state, "messaging", None)
    if client is None:
        raise HTTPException(
            status_code=503,
            detail="WhatsApp messaging is unavailable: ACS_CONNECTION_STRING / ACS_CHANNEL_REGISTRATION_ID not configured",
        )
    return client
