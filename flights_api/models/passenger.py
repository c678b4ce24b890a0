from datetime import date
from typing import Optional

from flights_api.models.base import CamelModel


class Passenger(CamelModel):
    pnr: str
    given_name: str = ""
    surname: str = ""
    # Phone for CDD bookings, seat for airport check-in/boarding lists
    seat_or_phone: Optional[str] = None
    flight_number: Optional[str] = None
    flight_date: Optional[date] = None
