"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter

from .routes import expenses, health, users

api_router = APIRouter()

api_router.include_router(users.router)
api_router.include_router(expenses.router)
api_router.include_router(health.router)
