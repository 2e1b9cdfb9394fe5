"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from station_queue.api.routes import bookings, passes, queue, reports, vehicles

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(queue.router)
api_router.include_router(bookings.router)
api_router.include_router(vehicles.router)
api_router.include_router(passes.router)
api_router.include_router(reports.router)
