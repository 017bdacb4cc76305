"""API request/response schemas."""

from pydantic import BaseModel, Field
from typing import List, Optional

from core.models import DoseReminderView


class CreateMedicineRequest(BaseModel):
    """Request to register a medicine."""

    name: str
    dosage: str
    description: Optional[str] = None
    image_uri: Optional[str] = None
    quantity: Optional[str] = None
    unit: Optional[str] = None
    form: Optional[str] = None


class UpdateMedicineRequest(CreateMedicineRequest):
    """Request to edit a medicine; name and dosage are required again."""


class CreateScheduleRequest(BaseModel):
    """Request to create a treatment plan and its dose reminders."""

    medicine_id: int
    interval_hours: int = Field(..., description="Hours between doses")
    duration_days: int = Field(..., description="Treatment length in days")
    start_time: str = Field(..., description="First dose of the day, HH:MM")
    notes: Optional[str] = None


class DoseHistoryResponse(BaseModel):
    """Dose reminders with medicine details, newest first."""

    results: List[DoseReminderView]
    total: int


class CreateUserRequest(BaseModel):
    """Request to create a user profile."""

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[str] = None
    avatar_uri: Optional[str] = None


class UpdateUserRequest(BaseModel):
    """Partial profile update; omitted fields stay unchanged."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[str] = None
    avatar_uri: Optional[str] = None


class ErrorResponse(BaseModel):
    """Body returned for every domain error."""

    detail: str
    kind: str
    context: dict = Field(default_factory=dict)
