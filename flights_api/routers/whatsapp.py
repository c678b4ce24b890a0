"""
WhatsApp router: send approved templates through ACS.

Every request gets a short request id that prefixes its log lines and is
returned to the caller, on success and on failure:

    400  variables or phone failed validation  {"error", "requestId"}
    502  ACS rejected the message              {"error", "status", "code", "requestId"}
    500  anything else went wrong locally      {"error", "requestId"}
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from flights_api.config import settings
from flights_api.dependencies import get_messaging_client
from flights_api.models.whatsapp import (
    PingResponse,
    SendResponse,
    SendTemplateRequest,
    SendTextRequest,
    SendUnifiedRequest,
)
from flights_api.services.messaging import MessagingClient, ProviderError, mask_phone, new_op_id
from flights_api.services.template_binder import (
    TemplateButton,
    TemplateValidationError,
    bind_unified,
    bind_variables,
    ordered_keys,
    variables_from_request,
)

logger = logging.getLogger("flights-api.whatsapp")

router = APIRouter()


def _bad_request(req_id: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message, "requestId": req_id})


def _provider_failure(req_id: str, exc: ProviderError) -> JSONResponse:
    logger.error("[%s] ACS failure Status=%s Code=%s Msg=%s", req_id, exc.status, exc.code, exc)
    return JSONResponse(
        status_code=502,
        content={"error": "ACS error", "status": exc.status, "code": exc.code, "requestId": req_id},
    )


def _unexpected_failure(req_id: str, exc: Exception) -> JSONResponse:
    logger.exception("[%s] Unexpected error: %s", req_id, exc)
    return JSONResponse(status_code=500, content={"error": str(exc), "requestId": req_id})


@router.post("/template", response_model=SendResponse)
async def send_template(
    request: SendTemplateRequest,
    client: MessagingClient = Depends(get_messaging_client),
):
    """Send an approved template; variables as an ordered list and/or a numeric-keyed map.

    {"phone": "+97300000000", "template": "jfk_after_boarding", "variables": ["John Doe", "New York (JFK)"]}
    {"phone": "+97300000000", "template": "jfk_after_checkin", "variablesMap": {"1": "John Doe", "5": "11A"}}
    """
    req_id = new_op_id()
    logger.info("[%s] Incoming template send request Template=%s", req_id, request.template)

    try:
        variables = bind_variables(variables_from_request(request.variables, request.variables_map))
    except TemplateValidationError as e:
        logger.info("[%s] Rejected: %s", req_id, e)
        return _bad_request(req_id, str(e))

    buttons = [TemplateButton(b.type, b.ref) for b in request.buttons or []]
    logger.info(
        "[%s] Sending template %s to %s VarKeys=[%s]",
        req_id, request.template, mask_phone(request.phone), ",".join(ordered_keys(variables)),
    )
    try:
        await client.send_template(
            request.phone,
            request.template,
            request.language or settings.whatsapp_default_language,
            variables,
            buttons,
            op=req_id,
        )
    except ProviderError as e:
        return _provider_failure(req_id, e)
    except ValueError as e:
        logger.info("[%s] Rejected: %s", req_id, e)
        return _bad_request(req_id, str(e))
    except Exception as e:
        return _unexpected_failure(req_id, e)

    return SendResponse(message="Template sent", request_id=req_id)


@router.post("/unified", response_model=SendResponse)
async def send_unified(
    request: SendUnifiedRequest,
    client: MessagingClient = Depends(get_messaging_client),
):
    """Free-text body dropped into placeholder {{1}} of the configured unified template."""
    req_id = new_op_id()
    try:
        unified = bind_unified(request.message, settings.whatsapp_unified_template)
    except TemplateValidationError as e:
        logger.info("[%s] Rejected: %s", req_id, e)
        return _bad_request(req_id, str(e))

    logger.info(
        "[%s] Sending unified template %s to %s",
        req_id, unified.template_name, mask_phone(request.phone),
    )
    try:
        await client.send_template(
            request.phone,
            unified.template_name,
            request.language or settings.whatsapp_default_language,
            unified.variables,
            op=req_id,
        )
    except ProviderError as e:
        return _provider_failure(req_id, e)
    except ValueError as e:
        logger.info("[%s] Rejected: %s", req_id, e)
        return _bad_request(req_id, str(e))
    except Exception as e:
        return _unexpected_failure(req_id, e)

    return SendResponse(message="Template sent", request_id=req_id)


@router.post("/text", response_model=SendResponse)
async def send_text(
    request: SendTextRequest,
    client: MessagingClient = Depends(get_messaging_client),
):
    """Plain text message for diagnostics."""
    req_id = new_op_id()
    try:
        await client.send_text(request.phone, request.message, op=req_id)
    except ProviderError as e:
        return _provider_failure(req_id, e)
    except ValueError as e:
        logger.info("[%s] Rejected: %s", req_id, e)
        return _bad_request(req_id, str(e))
    except Exception as e:
        return _unexpected_failure(req_id, e)

    return SendResponse(message="Text sent", request_id=req_id)


@router.get("/ping", response_model=PingResponse)
def ping():
    return PingResponse(time=datetime.now(timezone.utc))
