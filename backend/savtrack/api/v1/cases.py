"""
SAV case endpoints.

Every response carries the case's current delay state; the detail view adds
its part lines and cost / revenue allocation.
"""
import logging
import math
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from savtrack.api.v1.catalog import get_catalog
from savtrack.core.db import get_db
from savtrack.core.security import get_current_shop, get_current_user
from savtrack.models.case import SavCase
from savtrack.models.shop import Shop
from savtrack.models.user import User
from savtrack.schemas.case import (
    AllocationResponse,
    CaseCreate,
    CaseDetailResponse,
    CaseLimitResponse,
    CaseListResponse,
    CasePartResponse,
    CaseResponse,
    CaseUpdate,
    DelayResponse,
    PartLineCreate,
    StatusChangeRequest,
    StatusChangeResponse,
    StatusHistoryResponse,
)
from savtrack.services import case_service
from savtrack.services.allocation import allocate, part_lines_from_rows
from savtrack.services.catalog import CatalogResolver
from savtrack.services.clock import utcnow
from savtrack.services.delay import DelayInfo, delay_for_case, format_delay_text

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/cases", tags=["cases"])


def _delay_response(info: DelayInfo) -> DelayResponse:
    return DelayResponse.model_validate(info).model_copy(update={"text": format_delay_text(info)})


def _case_response(case: SavCase, catalog: CatalogResolver, now) -> CaseResponse:
    response = CaseResponse.model_validate(case)
    return response.model_copy(update={"delay": _delay_response(delay_for_case(case, catalog, now))})


async def _case_detail(
    db: AsyncSession, case: SavCase, catalog: CatalogResolver
) -> CaseDetailResponse:
    rows = await case_service.list_part_rows(db, case.id)
    lines = part_lines_from_rows(rows)
    allocation = allocate(case, lines, catalog.resolve_type(case.sav_type))
    base = _case_response(case, catalog, utcnow())
    return CaseDetailResponse(
        **base.model_dump(exclude={"delay"}),
        delay=base.delay,
        allocation=AllocationResponse.model_validate(allocation),
        parts=[
            CasePartResponse(
                id=sav_part.id,
                part_id=sav_part.part_id,
                name=line.display_name,
                quantity=sav_part.quantity,
                purchase_price=sav_part.purchase_price,
                unit_price=sav_part.unit_price,
                custom_part_name=sav_part.custom_part_name,
            )
            for (sav_part, _part), line in zip(rows, lines)
        ],
    )


@router.post("", response_model=CaseResponse, status_code=status.HTTP_201_CREATED)
async def create_case(
    payload: CaseCreate,
    shop: Shop = Depends(get_current_shop),
    user: User = Depends(get_current_user),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> CaseResponse:
    now = utcnow()
    case = await case_service.create_case(
        db,
        shop,
        catalog,
        now,
        sav_type=payload.sav_type,
        customer_id=payload.customer_id,
        device_brand=payload.device_brand,
        device_model=payload.device_model,
        problem_description=payload.problem_description,
        user_id=user.id,
    )
    return _case_response(case, catalog, now)


@router.get("", response_model=CaseListResponse)
async def list_cases(
    page: int = 1,
    page_size: int = 20,
    status_key: str | None = None,
    sav_type: str | None = None,
    customer_id: uuid.UUID | None = None,
    shop: Shop = Depends(get_current_shop),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> CaseListResponse:
    page = max(page, 1)
    page_size = min(max(page_size, 1), 100)
    cases, total = await case_service.list_cases(
        db,
        shop.id,
        status=status_key,
        sav_type=sav_type,
        customer_id=customer_id,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    now = utcnow()
    return CaseListResponse(
        items=[_case_response(c, catalog, now) for c in cases],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total else 0,
    )


@router.get("/late", response_model=list[CaseResponse])
async def list_late_cases(
    shop: Shop = Depends(get_current_shop),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> list[CaseResponse]:
    """Open cases past their deadline, most overdue first."""
    cases, _ = await case_service.list_cases(db, shop.id, limit=None)
    now = utcnow()
    late = []
    for case in cases:
        if not catalog.resolve_type(case.sav_type).tracks_deadline:
            continue
        info = delay_for_case(case, catalog, now)
        if info.is_overdue:
            late.append((info.deadline, case))
    late.sort(key=lambda pair: pair[0])
    return [_case_response(case, catalog, now) for _, case in late]


@router.get("/{case_id}", response_model=CaseDetailResponse)
async def get_case(
    case_id: uuid.UUID,
    shop: Shop = Depends(get_current_shop),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> CaseDetailResponse:
    case = await case_service.get_case(db, shop.id, case_id)
    return await _case_detail(db, case, catalog)


@router.patch("/{case_id}", response_model=CaseDetailResponse)
async def update_case(
    case_id: uuid.UUID,
    payload: CaseUpdate,
    shop: Shop = Depends(get_current_shop),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> CaseDetailResponse:
    case = await case_service.get_case(db, shop.id, case_id)
    await case_service.update_case(db, case, utcnow(), **payload.model_dump(exclude_unset=True))
    return await _case_detail(db, case, catalog)


@router.post("/{case_id}/status", response_model=StatusChangeResponse)
async def change_status(
    case_id: uuid.UUID,
    payload: StatusChangeRequest,
    shop: Shop = Depends(get_current_shop),
    user: User = Depends(get_current_user),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> StatusChangeResponse:
    case = await case_service.get_case(db, shop.id, case_id)
    now = utcnow()
    result = await case_service.change_status(
        db, shop, case, payload.status, catalog, now, note=payload.note, user_id=user.id
    )
    case_out = CaseResponse.model_validate(result.case).model_copy(
        update={"delay": _delay_response(result.delay)}
    )
    return StatusChangeResponse(
        case=case_out,
        previous_status=result.previous_status,
        limit=CaseLimitResponse.model_validate(result.limit),
        survey_sent=result.survey_sent,
        review_requested=result.review_requested,
    )


@router.get("/{case_id}/history", response_model=list[StatusHistoryResponse])
async def get_history(
    case_id: uuid.UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_db),
) -> list[StatusHistoryResponse]:
    case = await case_service.get_case(db, shop.id, case_id)
    rows = await case_service.list_history(db, case.id)
    return [StatusHistoryResponse.model_validate(r) for r in rows]


@router.post("/{case_id}/parts", response_model=CaseDetailResponse, status_code=status.HTTP_201_CREATED)
async def add_part(
    case_id: uuid.UUID,
    payload: PartLineCreate,
    shop: Shop = Depends(get_current_shop),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> CaseDetailResponse:
    case = await case_service.get_case(db, shop.id, case_id)
    await case_service.add_part_line(
        db,
        case,
        utcnow(),
        part_id=payload.part_id,
        quantity=payload.quantity,
        purchase_price=payload.purchase_price,
        unit_price=payload.unit_price,
        custom_part_name=payload.custom_part_name,
    )
    return await _case_detail(db, case, catalog)


@router.delete("/{case_id}/parts/{line_id}", response_model=CaseDetailResponse)
async def remove_part(
    case_id: uuid.UUID,
    line_id: uuid.UUID,
    shop: Shop = Depends(get_current_shop),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> CaseDetailResponse:
    case = await case_service.get_case(db, shop.id, case_id)
    await case_service.remove_part_line(db, case, line_id, utcnow())
    return await _case_detail(db, case, catalog)


@router.delete("/{case_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_case(
    case_id: uuid.UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_db),
) -> None:
    await case_service.delete_case(db, shop.id, case_id)
