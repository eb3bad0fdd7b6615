# app/routers/reports_routes.py

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.auth import get_current_user
from app.db import get_session
from app.deps import Capability, require_capability
from app.models import User
from app.schemas import (
    CustomerDurationStats,
    PeakHoursReport,
    ProviderBookingStats,
    ReportGrouping,
    ServiceBookingRates,
)
from app.services import reports
from app.services.reports import ReportFilters

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/reports",
    tags=["reports"],
)


def report_filters(
    provider_id: Optional[int] = None,
    service_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> ReportFilters:
    return ReportFilters(provider_id, service_id, date_from, date_to)


def report_reader(current_user: User = Depends(get_current_user)) -> User:
    require_capability(current_user, Capability.view_reports)
    return current_user


@router.get("/bookings/per-provider", response_model=List[ProviderBookingStats])
def bookings_per_provider(
    filters: ReportFilters = Depends(report_filters),
    session: Session = Depends(get_session),
    current_user: User = Depends(report_reader),
):
    logger.info("Provider booking report requested by %s", current_user.id)
    return reports.provider_booking_stats(session, filters)


@router.get("/services/rates", response_model=List[ServiceBookingRates])
def service_rates(
    filters: ReportFilters = Depends(report_filters),
    session: Session = Depends(get_session),
    current_user: User = Depends(report_reader),
):
    return reports.service_booking_rates(session, filters)


@router.get("/bookings/peak-hours", response_model=PeakHoursReport, response_model_exclude_none=True)
def peak_hours(
    groupby: ReportGrouping = ReportGrouping.both,
    filters: ReportFilters = Depends(report_filters),
    session: Session = Depends(get_session),
    current_user: User = Depends(report_reader),
):
    return reports.peak_hours(session, filters, groupby)


@router.get("/customers/duration-analysis", response_model=List[CustomerDurationStats])
def customer_duration(
    min_bookings: int = Query(1, ge=1),
    filters: ReportFilters = Depends(report_filters),
    session: Session = Depends(get_session),
    current_user: User = Depends(report_reader),
):
    return reports.customer_booking_duration(session, filters, min_bookings)
