"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from kupon.api.v1 import coupons, health, scrape, status

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(coupons.router, prefix="/coupons", tags=["coupons"])
api_v1_router.include_router(status.router, prefix="/status", tags=["status"])
api_v1_router.include_router(scrape.router, prefix="/scrape", tags=["scrape"])
