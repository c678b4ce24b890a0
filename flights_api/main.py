"""
FastAPI application entry point.
Lifespan owns every process-wide resource: the psycopg2 pools, the aiohttp
sessions, and the OAG / ACS / reminder clients built on them.
"""
import logging
from contextlib import asynccontextmanager

import aiohttp
import psycopg2
import psycopg2.errors
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flights_api.config import settings
from flights_api.database import DataSourceUnavailable, close_pool, init_pool
from flights_api.routers import flights, health, whatsapp
from flights_api.services.messaging import MessagingClient
from flights_api.services.oag import OagClient, create_oag_session
from flights_api.services.reminders import ReminderDispatcher

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

logger = logging.getLogger("flights-api")


def _log_configuration():
    logger.info(
        "Configuration check - ACS connection string: %s, channel id: %s, OAG key: %s, reminder relay: %s",
        "Present" if settings.acs_connection_string else "Missing",
        settings.acs_channel_registration_id or "Missing",
        "Present" if settings.oag_subscription_key else "Missing",
        settings.reminder_base_url or "Missing",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    _log_configuration()
    try:
        init_pool()
    except psycopg2.OperationalError as e:
        logger.warning("Data source unavailable at startup, flight queries will fail: %s", e)

    oag_session = create_oag_session(settings.oag_subscription_key, settings.oag_timeout_seconds)
    http_session = aiohttp.ClientSession()

    app.state.oag = OagClient(
        oag_session,
        settings.oag_base_url,
        settings.airline_code,
        enabled=bool(settings.oag_subscription_key),
    )
    app.state.reminders = ReminderDispatcher(
        http_session,
        settings.reminder_base_url,
        settings.airline_code,
        timeout_seconds=settings.reminder_timeout_seconds,
        max_workers=settings.reminder_max_workers,
        max_pending=settings.reminder_max_pending,
    )
    app.state.messaging = None
    if settings.acs_connection_string and settings.acs_channel_registration_id:
        try:
            app.state.messaging = MessagingClient(
                http_session,
                settings.acs_connection_string,
                settings.acs_channel_registration_id,
                settings.acs_api_version,
            )
            logger.info("ACS endpoint: %s", app.state.messaging.endpoint)
        except ValueError as e:
            logger.error("ACS configuration invalid, WhatsApp disabled: %s", e)

    logger.info("Flights API started")
    yield

    # Shutdown
    await app.state.reminders.shutdown()
    await oag_session.close()
    await http_session.close()
    close_pool()


app = FastAPI(
    title="Flights API",
    description="Flight status (CDD + OAG) and WhatsApp passenger messaging",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(flights.router, prefix="/api/flights", tags=["Flights"])
app.include_router(whatsapp.router, prefix="/api/whatsapp", tags=["WhatsApp"])
app.include_router(health.router, tags=["Health"])


# Global error handlers
@app.exception_handler(psycopg2.OperationalError)
async def db_error_handler(request: Request, exc: psycopg2.OperationalError):
    logger.error("Data source error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={
            "error": "Database unavailable",
            "detail": str(exc),
            "status_code": 503,
        },
    )


@app.exception_handler(DataSourceUnavailable)
async def pool_missing_handler(request: Request, exc: DataSourceUnavailable):
    return JSONResponse(
        status_code=503,
        content={
            "error": "Database unavailable",
            "detail": str(exc),
            "status_code": 503,
        },
    )


@app.exception_handler(psycopg2.errors.QueryCanceled)
async def query_timeout_handler(request: Request, exc):
    return JSONResponse(
        status_code=504,
        content={
            "error": "Query timeout",
            "detail": "Query exceeded time limit",
            "status_code": 504,
        },
    )
