"""
Role and tenant checks for jobs and applications.

Rules:
- SUPER_ADMIN sees and edits everything.
- UNIVERSITY_ADMIN sees and edits jobs of their own university only; other
  tenants' jobs look like they don't exist (404).
- SUB_USER sees only jobs assigned to them and edits them only when the
  assignment grants the matching permission flag.
- STUDENT has no staff access.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from placement_portal.core.exceptions import InvalidRoleError, NotFoundError, PermissionDeniedError
from placement_portal.db.database import fetch_one

logger = logging.getLogger(__name__)

SUPER_ADMIN = "SUPER_ADMIN"
UNIVERSITY_ADMIN = "UNIVERSITY_ADMIN"
SUB_USER = "SUB_USER"
STUDENT = "STUDENT"

STAFF_ROLES = (SUPER_ADMIN, UNIVERSITY_ADMIN, SUB_USER)

# Assignment flags a sub-user may hold for a job
EDIT_JOB = "can_edit_job_details"
MANAGE_STUDENTS = "can_manage_students"
SCHEDULE_INTERVIEWS = "can_schedule_interviews"


def get_assignment(db: Session, user_id: int, job_id: int) -> Optional[dict]:
    return fetch_one(
        db,
        """
        SELECT user_id, job_id, can_edit_job_details, can_manage_students, can_schedule_interviews
        FROM sub_user_jobs WHERE user_id = :uid AND job_id = :jid
        """,
        {"uid": user_id, "jid": job_id},
    )


def _job_row(db: Session, job_id: int, university_id: Optional[int] = None) -> Optional[dict]:
    sql = "SELECT job_id, title, university_id, company_id, status FROM jobs WHERE job_id = :jid"
    params = {"jid": job_id}
    if university_id is not None:
        sql += " AND university_id = :uni"
        params["uni"] = university_id
    return fetch_one(db, sql, params)


def load_job_for_view(db: Session, user: dict, job_id: int) -> dict:
    """Staff read access to a job."""
    role = user["role"]
    if role == SUPER_ADMIN:
        job = _job_row(db, job_id)
    elif role == UNIVERSITY_ADMIN:
        job = _job_row(db, job_id, user["university_id"])
    elif role == SUB_USER:
        if not get_assignment(db, user["user_id"], job_id):
            raise NotFoundError("Job not found or not assigned to you")
        job = _job_row(db, job_id)
    else:
        raise InvalidRoleError()

    if not job:
        raise NotFoundError("Job not found")
    return job


def load_job_for_edit(
    db: Session,
    user: dict,
    job_id: int,
    denied_message: str = "Not authorized to edit this job",
    role_message: str = "Not authorized to update jobs",
) -> dict:
    """Staff write access to a job's details or rounds."""
    role = user["role"]
    if role == UNIVERSITY_ADMIN:
        job = _job_row(db, job_id, user["university_id"])
    elif role == SUB_USER:
        assignment = get_assignment(db, user["user_id"], job_id)
        if not assignment or not assignment[EDIT_JOB]:
            raise PermissionDeniedError(denied_message)
        job = _job_row(db, job_id)
    elif role != SUPER_ADMIN:
        raise PermissionDeniedError(role_message)
    else:
        job = _job_row(db, job_id)

    if not job:
        raise NotFoundError("Job not found")
    return job


def load_job_for_delete(db: Session, user: dict, job_id: int) -> dict:
    role = user["role"]
    if role == UNIVERSITY_ADMIN:
        job = _job_row(db, job_id, user["university_id"])
    elif role == SUPER_ADMIN:
        job = _job_row(db, job_id)
    else:
        raise PermissionDeniedError("Not authorized to delete jobs")

    if not job:
        raise NotFoundError("Job not found")
    return job


def load_application_for_staff(db: Session, user: dict, application_id: int, permission: str) -> dict:
    """
    Staff write access to an application.

    `permission` names the sub-user assignment flag required
    (MANAGE_STUDENTS or SCHEDULE_INTERVIEWS).
    """
    app = fetch_one(
        db,
        """
        SELECT a.application_id, a.job_id, a.student_id, a.status, j.university_id, j.title
        FROM applications a JOIN jobs j ON a.job_id = j.job_id
        WHERE a.application_id = :aid
        """,
        {"aid": application_id},
    )
    if not app:
        raise NotFoundError("Application not found")

    role = user["role"]
    if role == SUPER_ADMIN:
        return app
    if role == UNIVERSITY_ADMIN:
        if app["university_id"] != user["university_id"]:
            raise NotFoundError("Application not found")
        return app
    if role == SUB_USER:
        assignment = get_assignment(db, user["user_id"], app["job_id"])
        if not assignment:
            raise NotFoundError("Application not found")
        if not assignment[permission]:
            raise PermissionDeniedError("Not authorized to manage this application")
        return app
    raise PermissionDeniedError("Not authorized to manage applications")


def require_university_access(user: dict, university_id: int) -> None:
    """Super admins reach every university; university admins only their own."""
    if user["role"] == SUPER_ADMIN:
        return
    if user["role"] == UNIVERSITY_ADMIN and user["university_id"] == university_id:
        return
    if user["role"] == UNIVERSITY_ADMIN:
        raise NotFoundError("University not found")
    raise PermissionDeniedError("Not authorized for this university")
