"""
Statistics endpoints.

The shop's cases and part lines are fetched first; the aggregation only
runs once both reads have succeeded.
"""
import logging
from datetime import date, datetime, time
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from savtrack.api.v1.catalog import get_catalog
from savtrack.core.config import get_settings
from savtrack.core.db import get_db
from savtrack.core.security import get_current_shop
from savtrack.models.shop import Shop
from savtrack.schemas.statistics import (
    MonthlyFiguresResponse,
    MonthlyLateRateResponse,
    StatisticsResponse,
)
from savtrack.services import case_service
from savtrack.services.catalog import CatalogResolver
from savtrack.services.clock import utcnow
from savtrack.services.statistics import (
    DateRange,
    StatisticsFilters,
    aggregate,
    monthly_late_rates,
    monthly_statistics,
    period_range,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/statistics", tags=["statistics"])
settings = get_settings()


@router.get("", response_model=StatisticsResponse)
async def get_statistics(
    period: Literal["7d", "30d", "3m", "6m", "1y"] = "30d",
    start: date | None = None,
    end: date | None = None,
    statuses: list[str] = Query(default=[]),
    types: list[str] = Query(default=[]),
    shop: Shop = Depends(get_current_shop),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> StatisticsResponse:
    now = utcnow()
    if start is not None and end is not None:
        if start > end:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="start must not be after end",
            )
        date_range = DateRange(start=start, end=end)
    else:
        date_range = period_range(period, now)

    cases = await case_service.list_cases_between(
        db,
        shop.id,
        datetime.combine(date_range.start, time.min),
        datetime.combine(date_range.end, time.max),
    )
    parts = await case_service.load_part_lines(db, [c.id for c in cases])

    snapshot = aggregate(
        cases,
        parts,
        catalog,
        date_range,
        now,
        filters=StatisticsFilters(statuses=frozenset(statuses), types=frozenset(types)),
        top_n=settings.statistics_top_n,
    )
    return StatisticsResponse.model_validate(
        {"start": date_range.start, "end": date_range.end, **vars(snapshot)},
        from_attributes=True,
    )


def _year_bounds(year: int) -> tuple[datetime, datetime]:
    return datetime(year, 1, 1), datetime.combine(date(year, 12, 31), time.max)


@router.get("/monthly", response_model=list[MonthlyFiguresResponse])
async def get_monthly_statistics(
    year: int | None = None,
    shop: Shop = Depends(get_current_shop),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> list[MonthlyFiguresResponse]:
    year = year or utcnow().year
    cases = await case_service.list_cases_between(db, shop.id, *_year_bounds(year))
    parts = await case_service.load_part_lines(db, [c.id for c in cases])
    return [
        MonthlyFiguresResponse.model_validate(m)
        for m in monthly_statistics(cases, parts, catalog, year)
    ]


@router.get("/late-rate", response_model=list[MonthlyLateRateResponse])
async def get_monthly_late_rate(
    year: int | None = None,
    shop: Shop = Depends(get_current_shop),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> list[MonthlyLateRateResponse]:
    now = utcnow()
    year = year or now.year
    # Cases opened before the year can still be active during it.
    _, year_end = _year_bounds(year)
    cases = await case_service.list_cases_between(db, shop.id, end=year_end)
    return [
        MonthlyLateRateResponse.model_validate(m)
        for m in monthly_late_rates(cases, catalog, year, now)
    ]
