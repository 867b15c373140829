from fastapi import APIRouter

from app.api.routers import leads

api_router = APIRouter()

api_router.include_router(leads.router)
