"""Pydantic models for API request bodies."""

from pydantic import BaseModel, Field


class CredentialsRequest(BaseModel):
    """Username/password pair for register and login."""

    username: str
    password: str


class FlightCodeRequest(BaseModel):
    """Flight code as typed or scanned."""

    flight_code: str


class ScanRequest(BaseModel):
    """Raw scanner output to verify against a session."""

    code: str = ""


class PaxRequest(BaseModel):
    """Passenger to board."""

    name: str
    seat: str
    source: str = Field(default="manual")


class PreferencesRequest(BaseModel):
    """Display preferences update."""

    night_mode: bool
