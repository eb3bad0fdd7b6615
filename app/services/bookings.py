# app/services/bookings.py

"""
Booking lifecycle.

    pending   -> confirmed | cancelled
    confirmed -> cancelled | completed
    pending   -> (deleted by the expiry sweep once stale)

Every write is one transaction. Notifications go out after the commit.
"""

import logging
from datetime import date as Date, datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.config import settings
from app.core import platform_now, to_platform_time
from app.deps import Capability, has_capability, is_admin
from app.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    UnavailableSlotError,
    ValidationError,
)
from app.models import Booking, Service, User, utcnow
from app.notifications import NotificationDispatcher, get_dispatcher
from app.schemas import BookingStatus, UserRole
from app.services.availability import (
    find_conflicts,
    find_customer_conflicts,
    find_matching_slot,
    validate_interval,
)

logger = logging.getLogger(__name__)

PENDING_TIMEOUT = timedelta(minutes=settings.booking.pending_timeout_minutes)


def get_booking(session: Session, booking_id: int) -> Booking:
    booking = session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


def get_bookable_service(session: Session, service_id: int) -> Service:
    service = session.get(Service, service_id)
    if service is None or service.deleted_at is not None or not service.active:
        raise NotFoundError(f"Service {service_id} not found")
    return service


def can_view(user: User, booking: Booking) -> bool:
    return (
        has_capability(user, Capability.view_all_bookings)
        or user.id == booking.user_id
        or user.id == booking.provider_id
    )


def create_booking(
    session: Session,
    customer: User,
    service_id: int,
    date: datetime,
    notes: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
) -> Booking:
    dispatcher = dispatcher or get_dispatcher()
    now = now or platform_now()

    service = get_bookable_service(session, service_id)

    # Row lock on the provider serializes concurrent bookings for them
    # (a no-op on SQLite, where the writer lock does the same job).
    provider = session.exec(
        select(User).where(User.id == service.provider_id).with_for_update()
    ).first()
    if provider is None:
        raise NotFoundError(f"Provider {service.provider_id} not found")
    if provider.id == customer.id:
        raise ValidationError("You cannot book your own service")

    start = to_platform_time(date)
    end = start + timedelta(minutes=service.duration)
    validate_interval(start, end)

    if start < now:
        raise ValidationError("Cannot book appointments in the past")
    if start > now + timedelta(days=settings.booking.max_advance_days):
        raise ValidationError(
            f"Cannot book more than {settings.booking.max_advance_days} days in advance"
        )

    slot = find_matching_slot(session, provider.id, start, end)
    if slot is None:
        raise UnavailableSlotError("Provider is not available at the requested time")
    if find_conflicts(session, provider.id, start, end):
        raise UnavailableSlotError("This time slot is already occupied")
    if find_customer_conflicts(session, customer.id, start, end):
        raise ConflictError("You already have a booking during this time")

    booking = Booking(
        user_id=customer.id,
        provider_id=provider.id,
        service_id=service.id,
        slot_id=slot.id,
        date=start,
        ends_at=end,
        status=BookingStatus.pending.value,
        price=service.price,
        service_name=service.name,
        service_description=service.description,
        customer_notes=notes,
    )
    session.add(booking)

    clash = []
    try:
        session.flush()
        clash = find_conflicts(session, provider.id, start, end, exclude_booking_id=booking.id)
        if not clash:
            session.commit()
    except IntegrityError:
        session.rollback()
        logger.warning(
            "Double booking rejected by constraint: provider %s at %s", provider.id, start
        )
        raise ConflictError("This time slot was just booked by someone else") from None
    if clash:
        session.rollback()
        logger.warning("Double booking rejected on re-check: provider %s at %s", provider.id, start)
        raise ConflictError("This time slot was just booked by someone else")

    session.refresh(booking)
    logger.info(
        "Booking %s created: service %s, customer %s, date %s",
        booking.id,
        booking.service_id,
        booking.user_id,
        booking.date,
    )

    dispatcher.on_created(booking)
    return booking


def _actor_label(actor: User, booking: Booking) -> str:
    if actor.id == booking.user_id:
        return "customer"
    if actor.id == booking.provider_id:
        return "provider"
    return "admin"


def _authorize_status_change(actor: User, booking: Booking, new_status: BookingStatus) -> None:
    if is_admin(actor) or actor.id == booking.provider_id:
        return
    if new_status == BookingStatus.cancelled and actor.id == booking.user_id:
        return
    raise AuthorizationError(f"You may not mark this booking as {new_status.value}")


def _check_transition(actor: User, booking: Booking, new_status: BookingStatus) -> BookingStatus:
    """Raise unless ``actor`` may move ``booking`` to ``new_status``; return the current status."""
    _authorize_status_change(actor, booking, new_status)
    previous = BookingStatus(booking.status)
    if not previous.can_transition_to(new_status):
        raise InvalidTransitionError(
            f"Cannot transition from {previous.value} to {new_status.value}",
            errors={"allowed": [s.value for s in previous.valid_transitions()]},
        )
    return previous


def _check_notes(
    actor: User,
    booking: Booking,
    customer_notes: Optional[str],
    provider_notes: Optional[str],
) -> None:
    if not can_view(actor, booking):
        raise AuthorizationError("You may not modify this booking")
    if BookingStatus(booking.status).is_final():
        raise ValidationError(f"A {booking.status} booking can no longer be modified")
    if customer_notes is not None and actor.id != booking.user_id and not is_admin(actor):
        raise AuthorizationError("Only the customer may edit customer notes")
    if provider_notes is not None and actor.id != booking.provider_id and not is_admin(actor):
        raise AuthorizationError("Only the provider may edit provider notes")


def _write_status(
    session: Session, booking: Booking, previous: BookingStatus, new_status: BookingStatus
) -> None:
    # Conditional update: loses cleanly to the expiry sweep or a concurrent change.
    result = session.exec(
        update(Booking)
        .where(Booking.id == booking.id)
        .where(Booking.status == previous.value)
        .values(status=new_status.value, updated_at=utcnow())
    )
    if result.rowcount != 1:
        session.rollback()
        raise ConflictError("Booking changed concurrently, reload and retry")


def _announce(
    dispatcher: NotificationDispatcher,
    booking: Booking,
    previous: BookingStatus,
    new_status: BookingStatus,
    actor: User,
) -> None:
    logger.info(
        "Booking %s status %s -> %s by user %s",
        booking.id,
        previous.value,
        new_status.value,
        actor.id,
    )
    if new_status == BookingStatus.cancelled:
        dispatcher.on_cancelled(booking, previous, _actor_label(actor, booking))
    else:
        dispatcher.on_status_changed(booking, previous, new_status)


def change_status(
    session: Session,
    booking_id: int,
    new_status: BookingStatus,
    actor: User,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Booking:
    dispatcher = dispatcher or get_dispatcher()
    new_status = BookingStatus(new_status)

    booking = get_booking(session, booking_id)
    previous = _check_transition(actor, booking, new_status)

    _write_status(session, booking, previous, new_status)
    session.commit()
    session.refresh(booking)

    _announce(dispatcher, booking, previous, new_status, actor)
    return booking


def confirm_booking(session: Session, booking_id: int, actor: User, dispatcher=None) -> Booking:
    return change_status(session, booking_id, BookingStatus.confirmed, actor, dispatcher)


def cancel_booking(session: Session, booking_id: int, actor: User, dispatcher=None) -> Booking:
    return change_status(session, booking_id, BookingStatus.cancelled, actor, dispatcher)


def complete_booking(session: Session, booking_id: int, actor: User, dispatcher=None) -> Booking:
    return change_status(session, booking_id, BookingStatus.completed, actor, dispatcher)


def update_notes(
    session: Session,
    booking_id: int,
    actor: User,
    customer_notes: Optional[str] = None,
    provider_notes: Optional[str] = None,
) -> Booking:
    return update_booking(
        session,
        booking_id,
        actor,
        customer_notes=customer_notes,
        provider_notes=provider_notes,
    )


def update_booking(
    session: Session,
    booking_id: int,
    actor: User,
    status: Optional[BookingStatus] = None,
    customer_notes: Optional[str] = None,
    provider_notes: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Booking:
    """Apply note edits and a status change together.

    Every check runs before anything is written, and both changes share one
    commit, so a refused transition never leaves edited notes behind.
    """
    dispatcher = dispatcher or get_dispatcher()
    booking = get_booking(session, booking_id)

    new_status = BookingStatus(status) if status is not None else None
    previous = None
    if new_status is not None:
        previous = _check_transition(actor, booking, new_status)
    notes_changed = customer_notes is not None or provider_notes is not None
    if notes_changed:
        _check_notes(actor, booking, customer_notes, provider_notes)
    elif new_status is None:
        if not can_view(actor, booking):
            raise AuthorizationError("You may not view this booking")
        return booking

    if customer_notes is not None:
        booking.customer_notes = customer_notes
    if provider_notes is not None:
        booking.provider_notes = provider_notes
    if notes_changed:
        booking.updated_at = utcnow()
        session.add(booking)
    if new_status is not None:
        _write_status(session, booking, previous, new_status)

    session.commit()
    session.refresh(booking)

    if new_status is not None:
        _announce(dispatcher, booking, previous, new_status, actor)
    return booking


def list_bookings(
    session: Session,
    actor: User,
    status: Optional[BookingStatus] = None,
    service_id: Optional[int] = None,
    user_id: Optional[int] = None,
    date_from: Optional[Date] = None,
    date_to: Optional[Date] = None,
    page: int = 1,
    per_page: int = settings.booking.page_size,
    q: Optional[str] = None,
    price_min: Optional[float] = None,
    price_max: Optional[float] = None,
) -> List[Booking]:
    stmt = select(Booking)

    # Admins see everything, providers their services' bookings, customers their own
    if actor.role == UserRole.provider.value:
        stmt = stmt.where(Booking.provider_id == actor.id)
    elif not has_capability(actor, Capability.view_all_bookings):
        stmt = stmt.where(Booking.user_id == actor.id)

    if user_id is not None and actor.role != UserRole.user.value:
        stmt = stmt.where(Booking.user_id == user_id)
    if service_id is not None:
        stmt = stmt.where(Booking.service_id == service_id)
    if status is not None:
        stmt = stmt.where(Booking.status == BookingStatus(status).value)
    if date_from is not None:
        stmt = stmt.where(Booking.date >= datetime.combine(date_from, datetime.min.time()))
    if date_to is not None:
        stmt = stmt.where(
            Booking.date < datetime.combine(date_to + timedelta(days=1), datetime.min.time())
        )
    if q:
        stmt = stmt.where(
            or_(Booking.service_name.contains(q), Booking.service_description.contains(q))
        )
    if price_min is not None:
        stmt = stmt.where(Booking.price >= price_min)
    if price_max is not None:
        stmt = stmt.where(Booking.price <= price_max)

    stmt = stmt.order_by(Booking.date.desc()).offset((page - 1) * per_page).limit(per_page)
    return session.exec(stmt).all()


def expire_stale(
    session: Session,
    now: Optional[datetime] = None,
    timeout: timedelta = PENDING_TIMEOUT,
) -> int:
    """Delete pending bookings whose date is older than ``now - timeout``.

    The status condition is part of the DELETE itself, so a booking confirmed
    while the sweep runs is never removed. Safe to run repeatedly.
    """
    now = now or platform_now()
    cutoff = now - timeout
    try:
        result = session.exec(
            delete(Booking)
            .where(Booking.status == BookingStatus.pending.value)
            .where(Booking.date < cutoff)
        )
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Expiry sweep failed (cutoff %s), leaving it to the next run", cutoff)
        raise

    count = result.rowcount
    logger.info("Expiry sweep removed %d stale pending booking(s) older than %s", count, cutoff)
    return count
