"""Public appointment booking endpoints."""

from fastapi import APIRouter, status

from labvisit.dependencies import Appointments
from labvisit.schemas.appointments import AppointmentCreate, AppointmentCreatedResponse

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book a home sample collection",
)
async def create_appointment(
    data: AppointmentCreate,
    service: Appointments,
) -> AppointmentCreatedResponse:
    """
    Create a new appointment from the public booking form.

    The customer and the admin are notified over every configured channel;
    delivery problems never fail the booking.

    Args:
        data: Booking form data
        service: Appointment service

    Returns:
        Confirmation message and the stored appointment
    """
    return await service.create_appointment(data)
