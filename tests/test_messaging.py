"""
Tests for the ACS WhatsApp client: masking, request shape, signing, and
how provider rejections are told apart from local failures.
"""
import asyncio
import base64
import json

import aiohttp
import pytest

from fakes import FakeResponse, FakeSession
from flights_api.services.messaging import (
    MessagingClient,
    MessagingError,
    ProviderError,
    mask_phone,
    new_op_id,
    normalize_newlines,
    parse_connection_string,
)
from flights_api.services.template_binder import TemplateButton

ACCESS_KEY = base64.b64encode(b"not-a-real-secret").decode()
CONNECTION_STRING = f"endpoint=https://gf-acs.communication.azure.com/;accesskey={ACCESS_KEY}"
CHANNEL = "11111111-2222-3333-4444-555555555555"


def _client(*responses):
    session = FakeSession(*responses)
    return MessagingClient(session, CONNECTION_STRING, CHANNEL), session


def test_mask_phone():
    assert mask_phone("+97312345678") == "+973******78"
    assert mask_phone("123456") == "123456"
    assert mask_phone("123") == "****"
    assert mask_phone("") == "****"
    assert mask_phone(None) == "****"


def test_op_id_is_short_hex():
    op = new_op_id()
    assert len(op) == 8
    int(op, 16)


def test_parse_connection_string():
    endpoint, key = parse_connection_string(CONNECTION_STRING)
    assert endpoint == "https://gf-acs.communication.azure.com"
    assert key == ACCESS_KEY


def test_parse_connection_string_requires_both_parts():
    with pytest.raises(ValueError):
        parse_connection_string("endpoint=https://x.communication.azure.com/")


def test_normalize_newlines():
    assert normalize_newlines("a\r\nb\rc\n\n\n\nd") == "a\nb\nc\n\nd"


def test_send_template_posts_signed_template_request():
    client, session = _client(FakeResponse(202, {"receipts": [{"messageId": "m1", "to": "+97312345678"}]}))
    result = asyncio.run(client.send_template(
        "+97312345678", "jfk_after_checkin", "en", {"2": "BAH", "1": "John"},
        [TemplateButton("url", "1")], op="abcd1234",
    ))

    assert result["receipts"][0]["messageId"] == "m1"
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == (
        "https://gf-acs.communication.azure.com/messages/notifications:send?api-version=2024-02-01"
    )
    body = json.loads(call["data"])
    assert body["channelRegistrationId"] == CHANNEL
    assert body["to"] == ["+97312345678"]
    assert body["kind"] == "template"
    assert [v["name"] for v in body["template"]["values"]] == ["1", "2"]
    assert body["template"]["bindings"]["buttons"] == [{"subType": "url", "refValue": "1"}]

    headers = call["headers"]
    assert headers["Authorization"].startswith(
        "HMAC-SHA256 SignedHeaders=x-ms-date;host;x-ms-content-sha256&Signature="
    )
    assert "x-ms-date" in headers
    assert "x-ms-content-sha256" in headers


def test_provider_rejection_carries_status_and_code():
    client, _ = _client(FakeResponse(400, {"error": {"code": "InvalidTemplate", "message": "bad template"}}))
    with pytest.raises(ProviderError) as info:
        asyncio.run(client.send_template("+97312345678", "t", "en", {"1": "x"}))
    assert info.value.status == 400
    assert info.value.code == "InvalidTemplate"


def test_provider_rejection_without_json_body():
    client, _ = _client(FakeResponse(503, text="Service Unavailable"))
    with pytest.raises(ProviderError) as info:
        asyncio.run(client.send_template("+97312345678", "t", "en", {"1": "x"}))
    assert info.value.status == 503
    assert info.value.code is None


def test_transport_failure_is_a_local_error():
    client, _ = _client(aiohttp.ClientConnectionError("dns failure"))
    with pytest.raises(MessagingError) as info:
        asyncio.run(client.send_template("+97312345678", "t", "en", {"1": "x"}))
    assert not isinstance(info.value, ProviderError)


def test_send_template_requires_phone_and_template():
    client, session = _client()
    with pytest.raises(ValueError):
        asyncio.run(client.send_template("", "t", "en", {"1": "x"}))
    with pytest.raises(ValueError):
        asyncio.run(client.send_template("+97312345678", " ", "en", {"1": "x"}))
    assert session.calls == []


def test_send_text_normalizes_newlines():
    client, session = _client(FakeResponse(202, {"receipts": []}))
    asyncio.run(client.send_text("+97312345678", "line1\r\n\r\n\r\nline2"))
    body = json.loads(session.calls[0]["data"])
    assert body["kind"] == "text"
    assert body["content"] == "line1\n\nline2"


def test_client_requires_channel_id():
    with pytest.raises(ValueError):
        MessagingClient(FakeSession(), CONNECTION_STRING, "")


def test_malformed_access_key_fails_at_construction():
    """A bad key disables WhatsApp at startup rather than failing every send."""
    with pytest.raises(ValueError, match="base64"):
        MessagingClient(
            FakeSession(),
            "endpoint=https://gf-acs.communication.azure.com/;accesskey=not*base64!",
            CHANNEL,
        )
