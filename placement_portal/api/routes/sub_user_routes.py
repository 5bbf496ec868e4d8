"""
Sub-User Routes (university admin only)

GET /sub-users - List sub-users of the university
POST /sub-users - Create sub-user
PUT /sub-users/{user_id} - Update sub-user
DELETE /sub-users/{user_id} - Delete sub-user
POST /sub-users/{user_id}/reset-password - Generate a temporary password
GET /sub-users/{user_id}/jobs - Jobs assigned to the sub-user
POST /sub-users/{user_id}/jobs - Assign a job (or update its permissions)
DELETE /sub-users/{user_id}/jobs/{job_id} - Unassign a job
"""

import logging
from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy import text
from typing import List, Optional

from placement_portal.db.database import get_db_session, fetch_all, fetch_one
from placement_portal.core.auth import get_university_admin, hash_password, generate_temporary_password
from placement_portal.services.activity_service import log_activity
from placement_portal.schemas.schemas import (
    StaffUserCreate, SubUserUpdate, SubUserResponse, TemporaryPasswordResponse,
    JobAssignment, AssignedJobResponse, MessageResponse
)

router = APIRouter(prefix="/sub-users", tags=["Sub-Users"])
logger = logging.getLogger(__name__)

SUB_USER_SELECT = """
    SELECT u.user_id, u.name, u.email, u.phone, u.designation, u.university_id, u.is_active,
           u.last_login, u.created_at,
           (SELECT COUNT(*) FROM sub_user_jobs sj WHERE sj.user_id = u.user_id) AS assigned_jobs
    FROM users u
    WHERE u.role = 'SUB_USER'
"""

ASSIGNED_JOB_SELECT = """
    SELECT j.job_id, j.title, c.name AS company_name, j.status,
           sj.can_edit_job_details, sj.can_manage_students, sj.can_schedule_interviews
    FROM sub_user_jobs sj
    JOIN jobs j ON sj.job_id = j.job_id
    JOIN companies c ON j.company_id = c.company_id
"""


def _get_sub_user(db, user_id: int, university_id: int) -> dict:
    row = fetch_one(
        db,
        SUB_USER_SELECT + " AND u.user_id = :uid AND u.university_id = :uni",
        {"uid": user_id, "uni": university_id}
    )
    if not row:
        raise HTTPException(status_code=404, detail="Sub-user not found")
    return row


@router.get("", response_model=List[SubUserResponse])
async def list_sub_users(
    search: Optional[str] = Query(None, description="Search in name, email, designation"),
    admin: dict = Depends(get_university_admin)
):
    sql = SUB_USER_SELECT + " AND u.university_id = :uni"
    params = {"uni": admin["university_id"]}
    if search:
        sql += """ AND (LOWER(u.name) LIKE LOWER(:search) OR LOWER(u.email) LIKE LOWER(:search)
                   OR LOWER(u.designation) LIKE LOWER(:search))"""
        params["search"] = f"%{search}%"
    sql += " ORDER BY u.name"

    with get_db_session() as db:
        rows = fetch_all(db, sql, params)
    return [SubUserResponse(**r) for r in rows]


@router.post("", response_model=SubUserResponse, status_code=201)
async def create_sub_user(sub_user: StaffUserCreate, admin: dict = Depends(get_university_admin)):
    with get_db_session() as db:
        if fetch_one(db, "SELECT user_id FROM users WHERE LOWER(email) = LOWER(:email)", {"email": sub_user.email}):
            raise HTTPException(status_code=409, detail="Email already registered")

        result = db.execute(
            text("""
                INSERT INTO users (email, name, password_hash, role, university_id, phone, designation)
                VALUES (:email, :name, :password_hash, 'SUB_USER', :uni, :phone, :designation)
                RETURNING user_id
            """),
            {
                "email": sub_user.email, "name": sub_user.name,
                "password_hash": hash_password(sub_user.password), "uni": admin["university_id"],
                "phone": sub_user.phone, "designation": sub_user.designation
            }
        )
        user_id = result.fetchone()[0]
        log_activity(db, admin["user_id"], "SUB_USER_CREATED", {"user_id": user_id, "email": sub_user.email})
        row = _get_sub_user(db, user_id, admin["university_id"])

    return SubUserResponse(**row)


@router.put("/{user_id}", response_model=SubUserResponse)
async def update_sub_user(user_id: int, updates: SubUserUpdate, admin: dict = Depends(get_university_admin)):
    data = updates.model_dump(exclude_unset=True)
    with get_db_session() as db:
        _get_sub_user(db, user_id, admin["university_id"])
        if data:
            set_clause = ", ".join(f"{field} = :{field}" for field in data)
            db.execute(
                text(f"UPDATE users SET {set_clause}, updated_at = CURRENT_TIMESTAMP WHERE user_id = :uid"),
                {**data, "uid": user_id}
            )
            log_activity(db, admin["user_id"], "SUB_USER_UPDATED", {"user_id": user_id, "fields": list(data)})
        row = _get_sub_user(db, user_id, admin["university_id"])

    return SubUserResponse(**row)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_sub_user(user_id: int, admin: dict = Depends(get_university_admin)):
    with get_db_session() as db:
        sub_user = _get_sub_user(db, user_id, admin["university_id"])
        db.execute(text("DELETE FROM users WHERE user_id = :uid"), {"uid": user_id})
        log_activity(db, admin["user_id"], "SUB_USER_DELETED", {"user_id": user_id, "email": sub_user["email"]})

    return MessageResponse(message="Sub-user deleted")


@router.post("/{user_id}/reset-password", response_model=TemporaryPasswordResponse)
async def reset_sub_user_password(user_id: int, admin: dict = Depends(get_university_admin)):
    """Replace the password with a generated one and hand it to the admin."""
    temporary_password = generate_temporary_password()
    with get_db_session() as db:
        _get_sub_user(db, user_id, admin["university_id"])
        db.execute(
            text("UPDATE users SET password_hash = :hash, updated_at = CURRENT_TIMESTAMP WHERE user_id = :uid"),
            {"hash": hash_password(temporary_password), "uid": user_id}
        )
        log_activity(db, admin["user_id"], "SUB_USER_PASSWORD_RESET", {"user_id": user_id})

    return TemporaryPasswordResponse(message="Password reset", temporary_password=temporary_password)


@router.get("/{user_id}/jobs", response_model=List[AssignedJobResponse])
async def list_assigned_jobs(user_id: int, admin: dict = Depends(get_university_admin)):
    with get_db_session() as db:
        _get_sub_user(db, user_id, admin["university_id"])
        rows = fetch_all(db, ASSIGNED_JOB_SELECT + " WHERE sj.user_id = :uid ORDER BY j.title", {"uid": user_id})
    return [AssignedJobResponse(**r) for r in rows]


@router.post("/{user_id}/jobs", response_model=AssignedJobResponse, status_code=201)
async def assign_job(user_id: int, assignment: JobAssignment, admin: dict = Depends(get_university_admin)):
    """Assign a job of the admin's university; re-assigning updates the permission flags."""
    with get_db_session() as db:
        _get_sub_user(db, user_id, admin["university_id"])

        job = fetch_one(
            db,
            "SELECT job_id FROM jobs WHERE job_id = :jid AND university_id = :uni",
            {"jid": assignment.job_id, "uni": admin["university_id"]}
        )
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")

        params = {**assignment.model_dump(), "uid": user_id}
        if fetch_one(db, "SELECT id FROM sub_user_jobs WHERE user_id = :uid AND job_id = :job_id", params):
            db.execute(
                text("""
                    UPDATE sub_user_jobs
                    SET can_edit_job_details = :can_edit_job_details,
                        can_manage_students = :can_manage_students,
                        can_schedule_interviews = :can_schedule_interviews
                    WHERE user_id = :uid AND job_id = :job_id
                """),
                params
            )
        else:
            db.execute(
                text("""
                    INSERT INTO sub_user_jobs (user_id, job_id, can_edit_job_details, can_manage_students,
                        can_schedule_interviews)
                    VALUES (:uid, :job_id, :can_edit_job_details, :can_manage_students, :can_schedule_interviews)
                """),
                params
            )
        log_activity(db, admin["user_id"], "SUB_USER_JOB_ASSIGNED", {"user_id": user_id, **assignment.model_dump()})

        row = fetch_one(
            db, ASSIGNED_JOB_SELECT + " WHERE sj.user_id = :uid AND sj.job_id = :jid",
            {"uid": user_id, "jid": assignment.job_id}
        )

    return AssignedJobResponse(**row)


@router.delete("/{user_id}/jobs/{job_id}", response_model=MessageResponse)
async def unassign_job(user_id: int, job_id: int, admin: dict = Depends(get_university_admin)):
    with get_db_session() as db:
        _get_sub_user(db, user_id, admin["university_id"])
        result = db.execute(
            text("DELETE FROM sub_user_jobs WHERE user_id = :uid AND job_id = :jid"),
            {"uid": user_id, "jid": job_id}
        )
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Job is not assigned to this sub-user")
        log_activity(db, admin["user_id"], "SUB_USER_JOB_UNASSIGNED", {"user_id": user_id, "job_id": job_id})

    return MessageResponse(message="Job unassigned")
