from fastapi import APIRouter

from eventgate.modules.registrations import admin_router as registrations_admin_router
from eventgate.modules.registrations import router as registrations_router

api_router = APIRouter()

api_router.include_router(registrations_router, tags=["Registrations & Check-In"])

api_router.include_router(
    registrations_admin_router,
    tags=["Organizer - Registrations"],
)
