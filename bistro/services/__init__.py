"""
Business logic services.
Contains service layer implementations for date-scoped capacity.
"""

from .availability_checker import AvailabilityChecker
from .availability_store import AvailabilityStore
from .capacity_admin import CapacityAdmin
from .export_service import ExportService
from .menu_catalog import MenuCatalog
from .reservation_service import ReservationCommitter
from .slot_generator import SlotGenerator

__all__ = [
    "AvailabilityChecker",
    "AvailabilityStore",
    "CapacityAdmin",
    "ExportService",
    "MenuCatalog",
    "ReservationCommitter",
    "SlotGenerator",
]
