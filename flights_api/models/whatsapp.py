"""
Pydantic models for the WhatsApp endpoints.

Template variables arrive either as an ordered list ("variables") or as a
map keyed by placeholder number ("variablesMap"), or both. The request
model only checks shape; the binding rules live in
services.template_binder so they run once, before anything is sent.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from flights_api.models.base import CamelModel


class TemplateButtonIn(CamelModel):
    type: str = Field(..., min_length=1, description="WhatsApp button sub-type, e.g. 'url' or 'quickReply'")
    ref: str = Field(..., min_length=1, description="Variable key or literal value the button refers to")


class SendTemplateRequest(CamelModel):
    phone: str = Field(..., min_length=1)
    template: str = Field(..., min_length=1)
    language: Optional[str] = None
    variables: Optional[List[Optional[str]]] = None
    variables_map: Optional[Dict[str, Optional[str]]] = None
    buttons: Optional[List[TemplateButtonIn]] = None


class SendUnifiedRequest(CamelModel):
    phone: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=1024)
    language: Optional[str] = None


class SendTextRequest(CamelModel):
    phone: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=4096)


class SendResponse(CamelModel):
    message: str
    request_id: str


class PingResponse(CamelModel):
    status: str = "ok"
    time: datetime
