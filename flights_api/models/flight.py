"""
Flight models: the raw CDD schedule row going in, the unified status going out.

FlightStatus is rebuilt on every request and never stored. Time/date fields
are "HH:mm" / "dd/MM/yyyy" strings or "" so clients always see the same keys.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from flights_api.models.base import CamelModel


class ScheduleRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    airline_code: str
    flight_number: str
    dep_city: Optional[str] = None
    arr_city: Optional[str] = None
    sch_dep_date: Optional[date] = None
    sch_dep_time: Optional[Union[time, timedelta, str]] = None


class FlightPortInfo(CamelModel):
    city: str = ""
    airport: str = ""
    terminal: Optional[int] = None
    scheduled_time: str = ""
    scheduled_date: str = ""
    estimated_time: str = ""
    estimated_date: str = ""
    actual_time: str = ""
    actual_date: str = ""
    checkin_counter: str = ""
    gate: str = ""
    baggage: str = ""


class FlightStatus(CamelModel):
    model_config = ConfigDict(frozen=True)

    flight: str
    flight_number: str
    airline_code: str
    departure: FlightPortInfo
    arrival: FlightPortInfo
    status: str = "Scheduled"
    delayed: bool = False
    status_with_time: str = "Scheduled"
    current_time: str
    current_date: str
    current_date_time: datetime
