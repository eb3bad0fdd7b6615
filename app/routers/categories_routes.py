# app/routers/categories_routes.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.auth import get_current_user
from app.config import settings
from app.db import get_session
from app.deps import Capability, require_capability
from app.errors import ConflictError, NotFoundError
from app.models import Category, User, utcnow
from app.schemas import CategoryCreate, CategoryPublic

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/categories",
    tags=["categories"],
)


def get_category_or_404(session: Session, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if category is None or category.deleted_at is not None:
        raise NotFoundError(f"Category {category_id} not found")
    return category


def _save(session: Session, category: Category) -> Category:
    session.add(category)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError(f"Category '{category.name}' already exists")
    session.refresh(category)
    return category


@router.get("", response_model=List[CategoryPublic])
def list_categories(
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.booking.page_size, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = select(Category).where(Category.deleted_at == None)  # noqa: E711
    if q:
        stmt = stmt.where(Category.name.contains(q))
    stmt = stmt.order_by(Category.name).offset((page - 1) * per_page).limit(per_page)
    return session.exec(stmt).all()


@router.post("", response_model=CategoryPublic, status_code=201)
def create_category(
    payload: CategoryCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    require_capability(current_user, Capability.manage_categories)
    category = _save(session, Category(name=payload.name, last_updated_by=current_user.id))
    logger.info("Category %s created by %s", category.id, current_user.id)
    return category


@router.get("/{category_id}", response_model=CategoryPublic)
def get_category(
    category_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return get_category_or_404(session, category_id)


@router.put("/{category_id}", response_model=CategoryPublic)
def update_category(
    category_id: int,
    payload: CategoryCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    require_capability(current_user, Capability.manage_categories)
    category = get_category_or_404(session, category_id)
    category.name = payload.name
    category.last_updated_by = current_user.id
    category.updated_at = utcnow()
    return _save(session, category)


@router.delete("/{category_id}", status_code=204)
def delete_category(
    category_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    require_capability(current_user, Capability.manage_categories)
    category = get_category_or_404(session, category_id)
    category.deleted_at = utcnow()
    category.last_updated_by = current_user.id
    session.add(category)
    session.commit()
    logger.info("Category %s deleted by %s", category_id, current_user.id)
