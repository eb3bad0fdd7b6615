# app/routers/bookings_routes.py

from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.auth import get_current_user
from app.config import settings
from app.core import to_platform_time
from app.db import get_session
from app.deps import Capability, require_capability
from app.errors import AuthorizationError
from app.models import User
from app.notifications import NotificationDispatcher, get_dispatcher
from app.schemas import (
    AvailabilityResponse,
    BookingCreate,
    BookingPublic,
    BookingStatus,
    BookingUpdate,
    SlotCheck,
    SlotCheckResponse,
)
from app.services import bookings as lifecycle
from app.services.availability import available_starts, is_available

router = APIRouter(
    prefix="/bookings",
    tags=["bookings"],
)


@router.get("/availability", response_model=AvailabilityResponse)
def service_availability(
    service_id: int,
    on_date: date = Query(..., alias="date"),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    service = lifecycle.get_bookable_service(session, service_id)
    return {
        "service_id": service.id,
        "provider_id": service.provider_id,
        "date": on_date,
        "available_starts": available_starts(session, service, on_date),
    }


@router.post("/check-slot", response_model=SlotCheckResponse)
def check_slot(
    payload: SlotCheck,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    service = lifecycle.get_bookable_service(session, payload.service_id)
    start = to_platform_time(payload.date)
    end = start + timedelta(minutes=service.duration)
    return {
        "service_id": service.id,
        "provider_id": service.provider_id,
        "date": start,
        "ends_at": end,
        "available": is_available(session, service.provider_id, start, end),
    }


@router.get("/status/{status}", response_model=List[BookingPublic])
def bookings_by_status(
    status: BookingStatus,
    service_id: Optional[int] = None,
    user_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    q: Optional[str] = None,
    price_min: Optional[float] = Query(None, ge=0),
    price_max: Optional[float] = Query(None, ge=0),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.booking.page_size, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return lifecycle.list_bookings(
        session,
        current_user,
        status,
        service_id,
        user_id,
        date_from,
        date_to,
        page,
        per_page,
        q=q,
        price_min=price_min,
        price_max=price_max,
    )


@router.get("", response_model=List[BookingPublic])
def list_bookings(
    status: Optional[BookingStatus] = None,
    service_id: Optional[int] = None,
    user_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    q: Optional[str] = None,
    price_min: Optional[float] = Query(None, ge=0),
    price_max: Optional[float] = Query(None, ge=0),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.booking.page_size, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return lifecycle.list_bookings(
        session,
        current_user,
        status,
        service_id,
        user_id,
        date_from,
        date_to,
        page,
        per_page,
        q=q,
        price_min=price_min,
        price_max=price_max,
    )


@router.post("", response_model=BookingPublic, status_code=201)
def create_booking(
    payload: BookingCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    require_capability(current_user, Capability.book_services)
    return lifecycle.create_booking(
        session,
        current_user,
        payload.service_id,
        payload.date,
        notes=payload.customer_notes,
        dispatcher=dispatcher,
    )


@router.get("/{booking_id}", response_model=BookingPublic)
def get_booking(
    booking_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    booking = lifecycle.get_booking(session, booking_id)
    if not lifecycle.can_view(current_user, booking):
        raise AuthorizationError("You may not view this booking")
    return booking


@router.patch("/{booking_id}", response_model=BookingPublic)
def update_booking(
    booking_id: int,
    payload: BookingUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return lifecycle.update_booking(
        session,
        booking_id,
        current_user,
        status=payload.status,
        customer_notes=payload.customer_notes,
        provider_notes=payload.provider_notes,
        dispatcher=dispatcher,
    )


@router.post("/{booking_id}/confirm", response_model=BookingPublic)
def confirm_booking(
    booking_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return lifecycle.confirm_booking(session, booking_id, current_user, dispatcher)


@router.post("/{booking_id}/cancel", response_model=BookingPublic)
def cancel_booking(
    booking_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return lifecycle.cancel_booking(session, booking_id, current_user, dispatcher)


@router.post("/{booking_id}/complete", response_model=BookingPublic)
def complete_booking(
    booking_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return lifecycle.complete_booking(session, booking_id, current_user, dispatcher)
