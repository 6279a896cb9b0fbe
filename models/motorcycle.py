from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class MotorcycleRequest(BaseModel):
    id: Optional[str] = Field(default=None, max_length=255)
    make: str = Field(min_length=1, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    bike_class: str = Field(default="", max_length=100, alias="class")
    number: str = Field(default="", max_length=10)
    variant: str = Field(default="", max_length=10)
    team_id: Optional[int] = None

    model_config = {"populate_by_name": True}


class SessionRequest(BaseModel):
    """Setup sheet for one motorcycle in one event session."""
    event: str = Field(min_length=1, max_length=100)
    motorcycle_id: str = Field(min_length=1, max_length=255)
    session: str = Field(min_length=1, max_length=50)

    front_spring: str = ""
    front_preload: str = ""
    front_compression: str = ""
    front_rebound: str = ""
    rear_spring: str = ""
    rear_preload: str = ""
    rear_compression: str = ""
    rear_rebound: str = ""
    front_sprocket: str = ""
    rear_sprocket: str = ""
    swingarm_length: str = ""
    front_tire: str = ""
    rear_tire: str = ""
    front_pressure: str = ""
    rear_pressure: str = ""
    rake: str = ""
    trail: str = ""
    front_ride_height: str = ""
    rear_ride_height: str = ""
    front_sag: str = ""
    rear_sag: str = ""
    swingarm_angle: str = ""
    notes: str = ""
    feedback: str = ""

    weather_temperature: str = ""
    weather_condition: str = ""
    weather_description: str = ""
    weather_humidity: str = ""
    weather_wind_speed: str = ""
    weather_captured_at: Optional[datetime] = None

    def setup_fields(self) -> dict:
        return self.model_dump(exclude={"event", "motorcycle_id", "session"})
