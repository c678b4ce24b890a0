"""
WhatsApp sender over Azure Communication Services Advanced Messaging (REST).

Requests are signed with the ACS HMAC-SHA256 scheme using the access key
from the connection string ("endpoint=https://...;accesskey=...").

Two failure kinds reach callers:
    ProviderError   ACS answered with a non-2xx status (carries status + error code)
    MessagingError  we never got an answer (network, timeout, bad response)

Phone numbers only ever appear in logs through mask_phone().
"""
import asyncio
import base64
import binascii
import hashlib
import hmac
import json
import logging
import re
import time
import uuid
from email.utils import formatdate
from typing import Mapping, Optional, Sequence
from urllib.parse import urlparse

import aiohttp

from flights_api.services.template_binder import (
    TemplateButton,
    build_template_payload,
    ordered_keys,
)

logger = logging.getLogger("flights-api.messaging")

PHONE_MASK = "****"
SEND_PATH = "/messages/notifications:send"


class MessagingError(RuntimeError):
    """Local failure talking to ACS (no provider verdict)."""


class ProviderError(MessagingError):
    """ACS rejected the request."""

    def __init__(self, status: int, code: Optional[str], message: str = "") -> None:
        super().__init__(message or f"ACS request failed with status {status}")
        self.status = status
        self.code = code


def mask_phone(phone: Optional[str]) -> str:
    """"+97312345678" -> "+973******78"; anything shorter than 6 chars -> "****"."""
    if not phone or not phone.strip() or len(phone) < 6:
        return PHONE_MASK
    return phone[:4] + "*" * (len(phone) - 6) + phone[-2:]


def new_op_id() -> str:
    """Short correlation id echoed back to the caller."""
    return uuid.uuid4().hex[:8]


def normalize_newlines(text: str) -> str:
    if not text:
        return text
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return re.sub(r"\n{3,}", "\n\n", text)


def parse_connection_string(connection_string: str) -> tuple[str, str]:
    """(endpoint, accesskey) from an ACS connection string."""
    parts = {}
    for chunk in connection_string.split(";"):
        if "=" in chunk:
            k, v = chunk.split("=", 1)
            parts[k.strip().lower()] = v.strip()
    endpoint, key = parts.get("endpoint"), parts.get("accesskey")
    if not endpoint or not key:
        raise ValueError("ACS connection string must contain endpoint= and accesskey=")
    return endpoint.rstrip("/"), key


class MessagingClient:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        connection_string: str,
        channel_registration_id: str,
        api_version: str = "2024-02-01",
    ) -> None:
        if not channel_registration_id:
            raise ValueError("ACS channel registration id is required")
        self._session = session
        self.endpoint, access_key = parse_connection_string(connection_string)
        try:
            self._secret = base64.b64decode(access_key, validate=True)
        except binascii.Error as e:
            raise ValueError(f"ACS access key is not valid base64: {e}") from e
        self.channel_registration_id = channel_registration_id
        self.api_version = api_version

    # ─────────────────────────────────────────────────────────────
    # Transport
    # ─────────────────────────────────────────────────────────────

    def _signed_headers(self, method: str, path_and_query: str, body: bytes) -> dict:
        content_hash = base64.b64encode(hashlib.sha256(body).digest()).decode()
        date = formatdate(usegmt=True)
        host = urlparse(self.endpoint).netloc
        string_to_sign = f"{method}\n{path_and_query}\n{date};{host};{content_hash}"
        signature = base64.b64encode(
            hmac.new(
                self._secret,
                string_to_sign.encode("utf-8"),
                hashlib.sha256,
            ).digest()
        ).decode()
        return {
            "Content-Type": "application/json",
            "x-ms-date": date,
            "x-ms-content-sha256": content_hash,
            "Authorization": (
                "HMAC-SHA256 SignedHeaders=x-ms-date;host;x-ms-content-sha256"
                f"&Signature={signature}"
            ),
        }

    async def _send(self, content: dict, op: str) -> dict:
        path_and_query = f"{SEND_PATH}?api-version={self.api_version}"
        body = json.dumps(content).encode("utf-8")
        headers = self._signed_headers("POST", path_and_query, body)

        started = time.perf_counter()
        try:
            async with self._session.post(
                f"{self.endpoint}{path_and_query}", data=body, headers=headers
            ) as resp:
                text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("[%s] ACS transport failure: %s", op, e)
            raise MessagingError(f"ACS request failed: {e}") from e
        elapsed_ms = (time.perf_counter() - started) * 1000

        try:
            payload = json.loads(text) if text else {}
        except ValueError:
            payload = {"raw": text[:500]}

        if not 200 <= status < 300:
            error = payload.get("error") if isinstance(payload, dict) else None
            if not isinstance(error, dict):
                error = {}
            code, message = error.get("code"), error.get("message")
            logger.error(
                "[%s] ACS RequestFailed Status=%s Code=%s Msg=%s",
                op, status, code, message,
            )
            raise ProviderError(status, code, message or "")

        logger.info("[%s] ACS send complete in %.0fms Raw=%s", op, elapsed_ms, text[:500])
        return payload

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def send_template(
        self,
        phone: str,
        template_name: str,
        language: Optional[str],
        variables: Mapping[str, str],
        buttons: Optional[Sequence[TemplateButton]] = None,
        *,
        op: Optional[str] = None,
    ) -> dict:
        """Send an approved template; variables must already be bound ("1", "2", ...)."""
        if not phone or not phone.strip():
            raise ValueError("Phone required")
        if not template_name or not template_name.strip():
            raise ValueError("Template name required")
        op = op or new_op_id()
        language = language or "en"

        logger.info(
            "[%s] SendTemplate start Template=%s Lang=%s Phone=%s VarCount=%d",
            op, template_name, language, mask_phone(phone), len(variables),
        )
        template = build_template_payload(template_name, language, dict(variables), buttons)
        logger.debug(
            "[%s] Template prepared Keys=[%s] Buttons=%d",
            op, ",".join(ordered_keys(dict(variables))), len(buttons or []),
        )
        return await self._send(
            {
                "channelRegistrationId": self.channel_registration_id,
                "to": [phone],
                "kind": "template",
                "template": template,
            },
            op,
        )

    async def send_text(self, phone: str, message: str, *, op: Optional[str] = None) -> dict:
        """Plain text message, for diagnostics (only delivered inside a 24h session)."""
        if not phone or not phone.strip():
            raise ValueError("Phone required")
        if not message or not message.strip():
            raise ValueError("Message required")
        op = op or new_op_id()
        logger.info("[%s] Sending plain text message to %s", op, mask_phone(phone))
        return await self._send(
            {
                "channelRegistrationId": self.channel_registration_id,
                "to": [phone],
                "kind": "text",
                "content": normalize_newlines(message),
            },
            op,
        )
