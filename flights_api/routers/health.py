"""
Liveness probe. Reports which optional integrations are configured, never their secrets.
"""
from fastapi import APIRouter, Request

from flights_api.config import settings

router = APIRouter()


@router.get("/health")
def health(request: Request):
    return {
        "status": "ok",
        "oag": bool(settings.oag_subscription_key),
        "whatsapp": getattr(request.app.state, "messaging", None) is not None,
        "reminders": bool(settings.reminder_base_url),
        "pendingReminderBatches": request.app.state.reminders.pending,
    }
