"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter

from covercredit.api.v1.endpoints import admin, health, submissions

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(submissions.router)
api_router.include_router(admin.router)
