from typing import List, Optional
from datetime import datetime
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, UniqueConstraint
from pydantic import BaseModel

class Booking(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        # At most one booking per slot; a lost race surfaces as IntegrityError
        UniqueConstraint("scheduled_at", name="uq_appointments_scheduled_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    patient_name: str
    phone: Optional[str] = None  # digits only
    # Naive local time; sqlmodel would otherwise map datetime to an aware column
    scheduled_at: datetime = Field(
        sa_column=Column(DateTime(timezone=False), nullable=False, index=True)
    )
    chief_complaint: str
    line_user_id: Optional[str] = Field(default=None, index=True)
    created_at: datetime = Field(
        default_factory=datetime.now,
        sa_column=Column(DateTime(timezone=False), nullable=False),
    )


# Pydantic Schemas for Request/Response
class BookingRequest(BaseModel):
    # Defaults let the pipeline report ValidationFailed instead of a bare 422
    name: str = ""
    phone: str = ""
    date: str = ""
    time: str = ""
    symptom: str = ""

class BookingOut(BaseModel):
    id: int
    patient_name: str
    phone: Optional[str]
    scheduled_at: str
    chief_complaint: str
    line_user_id: Optional[str]

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingOut":
        return cls(
            id=booking.id,
            patient_name=booking.patient_name,
            phone=booking.phone,
            scheduled_at=booking.scheduled_at.isoformat(timespec="seconds"),
            chief_complaint=booking.chief_complaint,
            line_user_id=booking.line_user_id,
        )

class BookingResult(BaseModel):
    ok: bool
    booking: Optional[BookingOut] = None
    confirmation: Optional[str] = None
    close_view: bool = False
    error: Optional[str] = None
    message: Optional[str] = None
    login_url: Optional[str] = None
    warnings: List[str] = []

class SlotStatus(BaseModel):
    time: str
    scheduled_at: str
    status: str
    patient_name: Optional[str] = None
