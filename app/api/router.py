"""
Cupid: Main API Router

Aggregates all sub-routers so that ``app.main`` can mount the entire API
surface under ``/api`` with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import auth, matching, users

router = APIRouter()

router.include_router(auth.router, tags=["Auth"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(matching.router, tags=["Matching"])
