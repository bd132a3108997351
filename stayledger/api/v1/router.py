"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from stayledger.api.v1 import admin, bookings, loyalty

api_router = APIRouter()

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Loyalty
api_router.include_router(loyalty.router, prefix="/loyalty", tags=["Loyalty"])

# Admin
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
