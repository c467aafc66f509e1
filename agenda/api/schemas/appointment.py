from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field


class AvailableSlotsResponse(BaseModel):
    date: str  # YYYY-MM-DD, location-local
    location_id: int
    provider_id: int | None = None
    duration_minutes: int
    slots: list[str]  # local "HH:MM" start times


class DaySuggestionOut(BaseModel):
    date: date
    slots: list[str]


class SuggestDatesResponse(BaseModel):
    from_date: date
    location_id: int
    provider_id: int | None = None
    duration_minutes: int
    days: list[DaySuggestionOut]


class BookAppointmentRequest(BaseModel):
    patient_name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=1, max_length=40)
    email: EmailStr | None = None
    start_at: datetime  # naive values are read as UTC
    duration_minutes: int | None = Field(default=None, gt=0, le=24 * 60)
    service_id: int | None = None
    service_name: str | None = Field(default=None, max_length=200)
    provider_id: int | None = None
    location_id: int | None = None
    notes: str | None = Field(default=None, max_length=2000)
