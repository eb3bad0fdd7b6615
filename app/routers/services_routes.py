# app/routers/services_routes.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.auth import get_current_user
from app.config import settings
from app.db import get_session
from app.deps import Capability, is_admin, require_capability
from app.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.models import Category, Service, User, utcnow
from app.schemas import ServiceCreate, ServicePublic, ServiceUpdate, UserRole

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/services",
    tags=["services"],
)


def get_service_or_404(session: Session, service_id: int) -> Service:
    service = session.get(Service, service_id)
    if service is None or service.deleted_at is not None:
        raise NotFoundError(f"Service {service_id} not found")
    return service


def require_owner(user: User, service: Service) -> None:
    require_capability(user, Capability.manage_services)
    if not is_admin(user) and service.provider_id != user.id:
        raise AuthorizationError("Providers can only manage their own services")


def ensure_category(session: Session, category_id: int) -> None:
    category = session.get(Category, category_id)
    if category is None or category.deleted_at is not None:
        raise ValidationError(f"Category {category_id} does not exist")


def _save(session: Session, service: Service) -> Service:
    session.add(service)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError(f"Provider already offers a service named '{service.name}'")
    session.refresh(service)
    return service


@router.get("", response_model=List[ServicePublic])
def list_services(
    q: Optional[str] = None,
    provider_id: Optional[int] = None,
    category_id: Optional[int] = None,
    active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.booking.page_size, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = select(Service).where(Service.deleted_at == None)  # noqa: E711
    if q:
        stmt = stmt.where(Service.name.contains(q))
    if provider_id is not None:
        stmt = stmt.where(Service.provider_id == provider_id)
    if category_id is not None:
        stmt = stmt.where(Service.category_id == category_id)
    if active is not None:
        stmt = stmt.where(Service.active == active)
    stmt = stmt.order_by(Service.name).offset((page - 1) * per_page).limit(per_page)
    return session.exec(stmt).all()


@router.post("", response_model=ServicePublic, status_code=201)
def create_service(
    payload: ServiceCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    require_capability(current_user, Capability.manage_services)
    ensure_category(session, payload.category_id)

    provider_id = current_user.id
    if is_admin(current_user) and payload.provider_id is not None:
        provider = session.get(User, payload.provider_id)
        if provider is None or provider.role != UserRole.provider.value:
            raise ValidationError(f"User {payload.provider_id} is not a provider")
        provider_id = provider.id

    service = _save(session, Service(
        provider_id=provider_id,
        category_id=payload.category_id,
        name=payload.name,
        description=payload.description,
        duration=payload.duration,
        price=payload.price,
        active=payload.active,
    ))
    logger.info("Service %s created for provider %s", service.id, provider_id)
    return service


@router.get("/{service_id}", response_model=ServicePublic)
def get_service(
    service_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return get_service_or_404(session, service_id)


@router.put("/{service_id}", response_model=ServicePublic)
def update_service(
    service_id: int,
    payload: ServiceUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    service = get_service_or_404(session, service_id)
    require_owner(current_user, service)

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("category_id") is not None:
        ensure_category(session, changes["category_id"])
    for key, value in changes.items():
        if value is not None:
            setattr(service, key, value)
    service.updated_at = utcnow()
    return _save(session, service)


@router.delete("/{service_id}", status_code=204)
def delete_service(
    service_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    service = get_service_or_404(session, service_id)
    require_owner(current_user, service)
    service.deleted_at = utcnow()
    service.active = False
    session.add(service)
    session.commit()
    logger.info("Service %s deleted by %s", service_id, current_user.id)
