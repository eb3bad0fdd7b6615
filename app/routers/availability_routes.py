# app/routers/availability_routes.py

import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from app.auth import get_current_user
from app.config import settings
from app.db import get_session
from app.deps import Capability, is_admin, require_capability
from app.errors import AuthorizationError, NotFoundError, ValidationError
from app.models import AvailabilitySlot, User, utcnow
from app.schemas import AvailabilityCreate, AvailabilityPublic, AvailabilityUpdate, SlotType, UserRole
from app.services.availability import slot_fields, slot_to_public

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/availability-management",
    tags=["availability"],
)


def get_slot_or_404(session: Session, slot_id: int) -> AvailabilitySlot:
    slot = session.get(AvailabilitySlot, slot_id)
    if slot is None or slot.deleted_at is not None:
        raise NotFoundError(f"Availability slot {slot_id} not found")
    return slot


def require_slot_owner(user: User, slot: AvailabilitySlot) -> None:
    require_capability(user, Capability.manage_availability)
    if not is_admin(user) and slot.provider_id != user.id:
        raise AuthorizationError("Providers can only manage their own availability")


def slot_query(
    provider_id: Optional[int] = None,
    slot_type: Optional[SlotType] = None,
    week_day: Optional[int] = None,
    active: Optional[bool] = None,
):
    stmt = select(AvailabilitySlot).where(AvailabilitySlot.deleted_at == None)  # noqa: E711
    if provider_id is not None:
        stmt = stmt.where(AvailabilitySlot.provider_id == provider_id)
    if slot_type is not None:
        stmt = stmt.where(AvailabilitySlot.type == slot_type.value)
    if week_day is not None:
        stmt = stmt.where(AvailabilitySlot.week_day == week_day)
    if active is not None:
        stmt = stmt.where(AvailabilitySlot.active == active)
    return stmt


def _page(session: Session, stmt, page: int, per_page: int) -> List[AvailabilityPublic]:
    stmt = (
        stmt.order_by(AvailabilitySlot.week_day, AvailabilitySlot.day_start, AvailabilitySlot.start)
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return [slot_to_public(s) for s in session.exec(stmt).all()]


@router.get("", response_model=List[AvailabilityPublic])
def list_slots(
    type: Optional[SlotType] = None,
    week_day: Optional[int] = Query(None, ge=0, le=6),
    active: Optional[bool] = None,
    provider_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.booking.page_size, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    require_capability(current_user, Capability.manage_availability)
    # Providers only ever see their own slots
    if not is_admin(current_user):
        provider_id = current_user.id
    return _page(session, slot_query(provider_id, type, week_day, active), page, per_page)


@router.post("", response_model=AvailabilityPublic, status_code=201)
def create_slot(
    payload: AvailabilityCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    require_capability(current_user, Capability.manage_availability)

    provider_id = current_user.id
    if is_admin(current_user) and payload.provider_id is not None:
        provider = session.get(User, payload.provider_id)
        if provider is None or provider.role != UserRole.provider.value:
            raise ValidationError(f"User {payload.provider_id} is not a provider")
        provider_id = provider.id

    fields = slot_fields(payload.type, payload.week_day, payload.from_, payload.to)
    slot = AvailabilitySlot(provider_id=provider_id, active=payload.active, **fields)

    session.add(slot)
    session.commit()
    session.refresh(slot)

    logger.info(
        "Availability slot %s (%s) created for provider %s by %s",
        slot.id,
        slot.type,
        provider_id,
        current_user.id,
    )
    return slot_to_public(slot)


@router.get("/provider/{provider_id}", response_model=List[AvailabilityPublic])
def provider_slots(
    provider_id: int,
    type: Optional[SlotType] = None,
    week_day: Optional[int] = Query(None, ge=0, le=6),
    active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.booking.page_size, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return _page(session, slot_query(provider_id, type, week_day, active), page, per_page)


@router.get("/provider/{provider_id}/recurring", response_model=List[AvailabilityPublic])
def provider_recurring_slots(
    provider_id: int,
    week_day: Optional[int] = Query(None, ge=0, le=6),
    active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.booking.page_size, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = slot_query(provider_id, SlotType.recurring, week_day, active)
    return _page(session, stmt, page, per_page)


@router.get("/available/{on_date}", response_model=List[AvailabilityPublic])
def slots_open_on(
    on_date: date,
    provider_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.booking.page_size, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Active slots, recurring or one-off, that are open at some point on ``on_date``.

    Includes overnight slots of the previous weekday that run past midnight.
    """
    day_start = datetime.combine(on_date, datetime.min.time())
    day_end = day_start + timedelta(days=1)
    previous_weekday = (on_date.weekday() - 1) % 7

    stmt = slot_query(provider_id, active=True).where(
        (
            (AvailabilitySlot.type == SlotType.recurring.value)
            & (AvailabilitySlot.week_day == on_date.weekday())
        )
        | (
            (AvailabilitySlot.type == SlotType.recurring.value)
            & (AvailabilitySlot.week_day == previous_weekday)
            & (AvailabilitySlot.day_end <= AvailabilitySlot.day_start)
            & (AvailabilitySlot.day_end > time(0, 0))
        )
        | (
            (AvailabilitySlot.type == SlotType.once.value)
            & (AvailabilitySlot.start < day_end)
            & (AvailabilitySlot.end > day_start)
        )
    )
    return _page(session, stmt, page, per_page)


@router.get("/{slot_id}", response_model=AvailabilityPublic)
def get_slot(
    slot_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return slot_to_public(get_slot_or_404(session, slot_id))


@router.put("/{slot_id}", response_model=AvailabilityPublic)
def update_slot(
    slot_id: int,
    payload: AvailabilityUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    slot = get_slot_or_404(session, slot_id)
    require_slot_owner(current_user, slot)

    current = slot_to_public(slot)
    changes = payload.model_dump(exclude_unset=True)

    # A type change needs a full new window, so validate the merged definition
    slot_type = changes.get("type") or current.type
    if slot_type != current.type and ("from_" not in changes or "to" not in changes):
        raise ValidationError("Changing the slot type requires new from and to values")
    fields = slot_fields(
        slot_type,
        changes["week_day"] if "week_day" in changes else current.week_day,
        changes.get("from_") or current.from_,
        changes.get("to") or current.to,
    )
    for key, value in fields.items():
        setattr(slot, key, value)
    if changes.get("active") is not None:
        slot.active = changes["active"]
    slot.updated_at = utcnow()

    session.add(slot)
    session.commit()
    session.refresh(slot)

    logger.info("Availability slot %s updated by %s", slot.id, current_user.id)
    return slot_to_public(slot)


@router.delete("/{slot_id}", status_code=204)
def delete_slot(
    slot_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    slot = get_slot_or_404(session, slot_id)
    require_slot_owner(current_user, slot)

    # Soft delete: kept for audit, never matched by the resolver again
    slot.deleted_at = utcnow()
    slot.active = False
    session.add(slot)
    session.commit()

    logger.info("Availability slot %s deleted by %s", slot_id, current_user.id)
