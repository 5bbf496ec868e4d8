"""
Activity Log Routes

GET /activity-logs - Audit trail (super admin: all, university admin: own university's users)
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional

from placement_portal.db.database import get_db_session
from placement_portal.core.auth import require_roles
from placement_portal.services.activity_service import list_activity
from placement_portal.schemas.schemas import ActivityLogListResponse, UserRole

router = APIRouter(prefix="/activity-logs", tags=["Activity Log"])


@router.get("", response_model=ActivityLogListResponse)
async def get_activity_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None, description="e.g. JOB_UPDATED"),
    user: dict = Depends(require_roles(UserRole.super_admin, UserRole.university_admin))
):
    university_id = None if user["role"] == UserRole.super_admin.value else user["university_id"]
    with get_db_session() as db:
        result = list_activity(db, university_id=university_id, action=action, page=page, page_size=page_size)
    return ActivityLogListResponse(**result)
