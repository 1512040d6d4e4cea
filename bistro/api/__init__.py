"""
API routes and endpoints.
"""

from fastapi import APIRouter
from .v1 import admin_slots, availability, reservations

api_router = APIRouter()

api_router.include_router(availability.router, prefix="/availability", tags=["店面"])
api_router.include_router(reservations.router, prefix="/reservations", tags=["预留"])
api_router.include_router(admin_slots.router, prefix="/admin", tags=["后台"])
