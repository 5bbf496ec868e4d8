"""
Dashboard Routes

GET /dashboard - Aggregates for the caller's role
"""

import logging
from fastapi import APIRouter, HTTPException, Depends

from placement_portal.db.database import get_db_session
from placement_portal.core.auth import get_current_user, get_current_student
from placement_portal.services import dashboard_service
from placement_portal.schemas.schemas import UserRole

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])
logger = logging.getLogger(__name__)


async def build_dashboard(user: dict) -> dict:
    """Role-specific dashboard data; shared with the HTML dashboard page."""
    role = user["role"]
    if role == UserRole.student.value:
        student = await get_current_student(user)
        with get_db_session() as db:
            return dashboard_service.student_dashboard(db, student)

    with get_db_session() as db:
        if role == UserRole.super_admin.value:
            return dashboard_service.super_admin_dashboard(db)
        if role == UserRole.university_admin.value:
            if not user["university_id"]:
                raise HTTPException(status_code=404, detail="University not found")
            return dashboard_service.university_admin_dashboard(db, user["university_id"])
        if role == UserRole.sub_user.value:
            if not user["university_id"]:
                raise HTTPException(status_code=404, detail="University not found")
            return dashboard_service.sub_user_dashboard(db, user["user_id"])

    raise HTTPException(status_code=400, detail="Invalid user role")


@router.get("")
async def get_dashboard(user: dict = Depends(get_current_user)):
    return await build_dashboard(user)
