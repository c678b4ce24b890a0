"""
Pydantic models for the OAG flight-instances response.

Only the parts the enrichment step reads are modelled. Every field is
optional: OAG drops whole blocks (statusDetails, estimatedTime, gate...) when
it has nothing to say, and a missing block must never fail the parse.
Unknown fields are ignored.
"""
from typing import List, Optional

from flights_api.models.base import CamelModel


class OagTimeDetail(CamelModel):
    local: Optional[str] = None
    utc: Optional[str] = None


class OagAirport(CamelModel):
    iata: Optional[str] = None
    icao: Optional[str] = None


class OagCarrier(CamelModel):
    iata: Optional[str] = None
    icao: Optional[str] = None


class OagScheduledPoint(CamelModel):
    """Scheduled departure/arrival block of a flight instance."""
    airport: Optional[OagAirport] = None
    terminal: Optional[str] = None
    date: Optional[OagTimeDetail] = None
    time: Optional[OagTimeDetail] = None


class OagTimes(CamelModel):
    """Shape shared by estimatedTime and actualTime."""
    out_gate_timeliness: Optional[str] = None
    out_gate_variation: Optional[str] = None
    out_gate: Optional[OagTimeDetail] = None
    off_ground: Optional[OagTimeDetail] = None
    in_gate_timeliness: Optional[str] = None
    in_gate_variation: Optional[str] = None
    on_ground: Optional[OagTimeDetail] = None
    in_gate: Optional[OagTimeDetail] = None


class OagStatusDeparture(CamelModel):
    estimated_time: Optional[OagTimes] = None
    actual_time: Optional[OagTimes] = None
    airport: Optional[OagAirport] = None
    gate: Optional[str] = None


class OagStatusArrival(CamelModel):
    estimated_time: Optional[OagTimes] = None
    actual_time: Optional[OagTimes] = None
    airport: Optional[OagAirport] = None
    actual_terminal: Optional[str] = None
    gate: Optional[str] = None
    baggage: Optional[str] = None


class OagStatusDetail(CamelModel):
    state: Optional[str] = None
    updated_at: Optional[str] = None
    departure: Optional[OagStatusDeparture] = None
    arrival: Optional[OagStatusArrival] = None


class OagFlightInstance(CamelModel):
    carrier: Optional[OagCarrier] = None
    flight_number: Optional[int] = None
    departure: Optional[OagScheduledPoint] = None
    arrival: Optional[OagScheduledPoint] = None
    status_key: Optional[str] = None
    status_details: Optional[List[OagStatusDetail]] = None

    @property
    def current_status(self) -> Optional[OagStatusDetail]:
        """First statusDetails entry is the live one."""
        if self.status_details:
            return self.status_details[0]
        return None


class OagResponse(CamelModel):
    data: List[OagFlightInstance] = []
