"""Coupon listing endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from kupon.core.exceptions import NotFoundError
from kupon.dependencies import get_gateway
from kupon.schemas import ApiResponse, CouponResponse, Pagination
from kupon.services.persistence import CouponFilters, SQLAlchemyPersistenceGateway

router = APIRouter()


@router.get("", response_model=ApiResponse)
async def list_coupons(
    platform: Optional[str] = Query(None, description="Filter by platform slug"),
    merchant: Optional[str] = Query(None, description="Filter by merchant slug"),
    status: str = Query("active", pattern="^(active|expired|disabled|pending|all)$", description="Coupon status, or 'all'"),
    featured: Optional[bool] = Query(None, description="Only featured (true) or non-featured (false) coupons"),
    discount_type: Optional[str] = Query(
        None, pattern="^(percentage|fixed|shipping|cashback|bogo)$", description="Filter by discount type"
    ),
    limit: int = Query(50, ge=1, le=100, description="Items per page"),
    offset: int = Query(0, ge=0, description="Items to skip"),
    sort: str = Query(
        "created_at",
        pattern="^(created_at|updated_at|scraped_at|valid_until|discount_value|title)$",
        description="Sort column",
    ),
    order: str = Query("desc", pattern="^(asc|desc)$", description="Sort direction"),
    gateway: SQLAlchemyPersistenceGateway = Depends(get_gateway),
):
    """List coupons with filtering and offset pagination.

    Defaults to active coupons, newest first.
    """
    filters = CouponFilters(
        platform=platform,
        merchant=merchant,
        status=None if status == "all" else status,
        featured=featured,
        discount_type=discount_type,
        limit=limit,
        offset=offset,
        sort=sort,
        order=order,
    )
    coupons, total = await gateway.query_coupons(filters)

    return ApiResponse(
        data=[CouponResponse.model_validate(c) for c in coupons],
        pagination=Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(coupons) < total,
        ),
    )


@router.get("/code/{code}", response_model=ApiResponse)
async def get_coupon_by_code(
    code: str,
    gateway: SQLAlchemyPersistenceGateway = Depends(get_gateway),
):
    """Look up a coupon by its code (case-insensitive)."""
    coupon = await gateway.get_coupon_by_code(code)
    if coupon is None:
        raise NotFoundError("Coupon", code)
    return ApiResponse(data=CouponResponse.model_validate(coupon))
