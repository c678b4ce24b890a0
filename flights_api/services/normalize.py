"""
Field normalizers for the raw strings coming out of CDD, the airport DCS and OAG.

The sources disagree on almost everything: CDD stores flight numbers as
"0001" while OAG wants "1", CDD writes names "SURNAME GIVEN" while the
airport view writes "GIVEN SURNAME", times arrive as "14:05:00", "9:05" or
full ISO timestamps. Everything here is pure and never raises; unknown
values collapse to "" so the response schema stays stable.
"""
import logging
import re
from datetime import date, datetime, time, timedelta

from dateutil import parser as date_parser

logger = logging.getLogger("flights-api.normalize")

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_TIME_SPAN = re.compile(r"^(\d{1,2}):(\d{1,2})(?::(\d{1,2})(?:\.\d+)?)?$")


def safe(value) -> str:
    """Trimmed string, or "" for None/blank."""
    if value is None:
        return ""
    return str(value).strip()


# ─────────────────────────────────────────────────────────────
# Flight numbers
# ─────────────────────────────────────────────────────────────

def normalize_flight_number(raw) -> str:
    """Four-digit form used by the airport DCS ("277" -> "0277", "GF12345" -> "2345")."""
    digits = "".join(ch for ch in safe(raw) if ch.isdigit())
    if not digits:
        return "0000"
    return digits[-4:].rjust(4, "0")


def unpad_flight_number(raw) -> str:
    """Digits with leading zeros stripped, the form OAG expects. "" if nothing is left."""
    digits = "".join(ch for ch in safe(raw) if ch.isdigit())
    return digits.lstrip("0")


def strip_carrier_prefix(flight_number, carrier: str) -> str:
    """"GF0277" -> "277" for the check-in relay."""
    value = safe(flight_number)
    if carrier:
        value = value.replace(carrier, "")
    return value.lstrip("0")


# ─────────────────────────────────────────────────────────────
# Passenger names
# ─────────────────────────────────────────────────────────────

def _tokens(full) -> list[str]:
    parts = safe(full).split()
    if len(parts) >= 3:
        # No way to tell which token is the surname in "A B C"
        logger.debug("Ambiguous passenger name with %d tokens", len(parts))
    return parts


def split_name_surname_first(full) -> tuple[str, str]:
    """CDD convention: "ALI MOHAMMAD BARKATH" -> ("MOHAMMAD BARKATH", "ALI")."""
    parts = _tokens(full)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return " ".join(parts[1:]), parts[0]


def split_name_surname_last(full) -> tuple[str, str]:
    """Airport DCS convention: "MOHAMMAD BARKATH ALI" -> ("MOHAMMAD BARKATH", "ALI")."""
    parts = _tokens(full)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return " ".join(parts[:-1]), parts[-1]


def clean_phone(raw):
    """Drop the CDD contact-type suffixes ("-M", "-H-1.1")."""
    if raw is None:
        return None
    return str(raw).replace("-M", "").replace("-H-1.1", "").strip()


# ─────────────────────────────────────────────────────────────
# Dates, times, terminals
# ─────────────────────────────────────────────────────────────

def normalize_time(raw) -> str:
    """Scheduled departure time as "HH:mm", or "" if it can't be read."""
    if isinstance(raw, time):
        return raw.strftime("%H:%M")
    if isinstance(raw, timedelta):
        minutes = int(raw.total_seconds()) // 60
        if 0 <= minutes < 24 * 60:
            return f"{minutes // 60:02d}:{minutes % 60:02d}"
        return ""

    s = safe(raw)
    if _HHMM.match(s[:5]):
        return s[:5]

    m = _TIME_SPAN.match(s)
    if m:
        hours, minutes = int(m.group(1)), int(m.group(2))
        seconds = int(m.group(3) or 0)
        if hours < 24 and minutes < 60 and seconds < 60:
            return f"{hours:02d}:{minutes:02d}"
    return ""


def format_date(value) -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime("%d/%m/%Y")
    return ""


def _parse_loose(value):
    s = safe(value)
    if not s:
        return None
    try:
        return date_parser.parse(s)
    except (ValueError, OverflowError, TypeError):
        return None


def extract_time(value) -> str:
    """"2024-01-01T14:05:00+03:00" -> "14:05"; "" when unparseable."""
    dt = _parse_loose(value)
    return dt.strftime("%H:%M") if dt else ""


def extract_date(value) -> str:
    """"2024-01-01T14:05:00" -> "01/01/2024"; "" when unparseable."""
    dt = _parse_loose(value)
    return dt.strftime("%d/%m/%Y") if dt else ""


def parse_terminal(raw):
    """"T1", "Terminal 1" -> 1. None when the label has no digits."""
    digits = "".join(ch for ch in safe(raw) if ch.isdigit())
    return int(digits) if digits else None
