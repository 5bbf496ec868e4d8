"""
Job Routes

GET /jobs - List jobs visible to the caller, with filters
POST /jobs - Create job (university admin, or super admin naming a university)
GET /jobs/{job_id} - Job detail
PUT /jobs/{job_id} - Update job, its rounds and points of contact
DELETE /jobs/{job_id} - Delete job with everything attached to it
POST /jobs/{job_id}/apply - Apply to job (student only)
GET /jobs/{job_id}/applications - Applications for a job (staff)
"""

import logging
from fastapi import APIRouter, HTTPException, Depends, Query, Body
from sqlalchemy import text
from typing import List, Optional

from placement_portal.db.database import get_db_session
from placement_portal.core.auth import get_current_user, get_current_student, require_roles
from placement_portal.services import job_service
from placement_portal.services.access_service import (
    load_job_for_view, load_job_for_edit, load_job_for_delete
)
from placement_portal.services.activity_service import log_activity
from placement_portal.services.application_service import apply_to_job, get_application, list_applications
from placement_portal.schemas.schemas import (
    JobCreate, JobUpdate, JobDetailResponse, JobListResponse, JobStatus, JobType,
    ApplyRequest, ApplicationResponse, ApplicationStatus, MessageResponse, UserRole
)

router = APIRouter(prefix="/jobs", tags=["Jobs"])
logger = logging.getLogger(__name__)


async def _viewer(user: dict) -> dict:
    """Students get their department and CGPA attached for eligibility checks."""
    if user["role"] == UserRole.student.value:
        return await get_current_student(user)
    return user


@router.get("", response_model=JobListResponse)
async def list_jobs(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    status: Optional[JobStatus] = Query(None),
    job_type: Optional[JobType] = Query(None),
    company_id: Optional[int] = Query(None),
    university_id: Optional[int] = Query(None, description="Super admin only"),
    min_ctc: Optional[float] = Query(None, ge=0),
    max_ctc: Optional[float] = Query(None, ge=0),
    location: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search in title and company"),
    user: dict = Depends(get_current_user)
):
    """Super admin: all jobs. University admin: own university. Sub-user: assigned jobs. Student: open jobs."""
    viewer = await _viewer(user)
    filters = {
        "status": status.value if status else None,
        "job_type": job_type.value if job_type else None,
        "company_id": company_id,
        "university_id": university_id,
        "min_ctc": min_ctc,
        "max_ctc": max_ctc,
        "location": location,
        "search": search,
    }
    with get_db_session() as db:
        result = job_service.list_jobs(db, viewer, filters, page, page_size)
    return JobListResponse(**result)


@router.post("", response_model=JobDetailResponse, status_code=201)
async def create_job(
    job: JobCreate,
    user: dict = Depends(require_roles(UserRole.university_admin, UserRole.super_admin))
):
    if user["role"] == UserRole.university_admin.value:
        university_id = user["university_id"]
    elif job.university_id is None:
        raise HTTPException(status_code=400, detail="university_id is required")
    else:
        university_id = job.university_id

    with get_db_session() as db:
        job_service.validate_company_for_university(db, job.company_id)

        result = db.execute(
            text("""
                INSERT INTO jobs (title, description, requirements, responsibilities, job_type, location_type,
                    location, ctc_range_min, ctc_range_max, ctc_breakup, is_internship, internship_duration,
                    internship_stipend, expected_hires, apply_by, min_cgpa, other_requirements, status,
                    company_id, university_id, created_by_id, updated_by_id)
                VALUES (:title, :description, :requirements, :responsibilities, :job_type, :location_type,
                    :location, :ctc_range_min, :ctc_range_max, :ctc_breakup, :is_internship, :internship_duration,
                    :internship_stipend, :expected_hires, :apply_by, :min_cgpa, :other_requirements, :status,
                    :company_id, :university_id, :user_id, :user_id)
                RETURNING job_id
            """),
            {
                **job.model_dump(exclude={"department_ids", "contact_person_ids", "interview_rounds"}),
                "job_type": job.job_type.value,
                "location_type": job.location_type.value,
                "status": job.status.value,
                "university_id": university_id,
                "user_id": user["user_id"],
            }
        )
        job_id = result.fetchone()[0]

        job_service.link_company_to_university(db, job.company_id, university_id)
        job_service.set_job_departments(db, job_id, university_id, job.department_ids)
        job_service.set_job_contacts(db, job_id, job.company_id, job.contact_person_ids)
        for round_data in job.interview_rounds:
            job_service.create_round(db, job_id, round_data.model_dump())

        log_activity(db, user["user_id"], "JOB_CREATED", {"job_id": job_id, "title": job.title})
        response = job_service.get_job_detail(db, job_id)

    return JobDetailResponse(**response)


@router.get("/{job_id}", response_model=JobDetailResponse)
async def get_job(job_id: int, user: dict = Depends(get_current_user)):
    """
    Students see non-draft jobs of their university, without other
    students' applications. Staff access follows their role.
    """
    with get_db_session() as db:
        if user["role"] == UserRole.student.value:
            student = await get_current_student(user)
            job = job_service.get_job_row(db, job_id)
            if not job or job["university_id"] != student["university_id"] or job["status"] == "DRAFT":
                raise HTTPException(status_code=404, detail="Job not found")

            response = job_service.get_job_detail(db, job_id, include_applications=False)
            own = list_applications(db, job_id=job_id, student_id=student["student_id"])
            response["applications"] = own
            response["has_applied"] = bool(own)
            response["is_eligible"] = job_service.is_eligible(
                db, response, student["department_id"], student["cgpa"]
            )
        else:
            load_job_for_view(db, user, job_id)
            response = job_service.get_job_detail(db, job_id)

    return JobDetailResponse(**response)


@router.put("/{job_id}", response_model=JobDetailResponse)
async def update_job(job_id: int, updates: JobUpdate, user: dict = Depends(get_current_user)):
    """
    Partial update.

    `interview_rounds` entries carry `_action` create/update/delete (no id
    means create). `contact_person_ids` replaces the set of POCs.
    """
    data = updates.model_dump(exclude_unset=True)
    department_ids = data.pop("department_ids", None)
    contact_ids = data.pop("contact_person_ids", None)
    round_changes = data.pop("interview_rounds", None)

    with get_db_session() as db:
        load_job_for_edit(db, user, job_id)
        current = job_service.get_job_row(db, job_id)

        ctc_min = data["ctc_range_min"] if "ctc_range_min" in data else current["ctc_range_min"]
        ctc_max = data["ctc_range_max"] if "ctc_range_max" in data else current["ctc_range_max"]
        if ctc_min is not None and ctc_max is not None and ctc_max < ctc_min:
            raise HTTPException(status_code=400, detail="Maximum CTC must be greater than or equal to Minimum CTC")

        if data.get("company_id") and data["company_id"] != current["company_id"]:
            job_service.validate_company_for_university(db, data["company_id"])
            job_service.link_company_to_university(db, data["company_id"], current["university_id"])
        if data.get("job_type") == JobType.internship:
            data["is_internship"] = True
        is_internship = data["is_internship"] if "is_internship" in data else current["is_internship"]
        duration = data["internship_duration"] if "internship_duration" in data else current["internship_duration"]
        if is_internship and duration is None:
            raise HTTPException(status_code=400, detail="Internship duration is required for internships")

        if data:
            set_clause = ", ".join(f"{field} = :{field}" for field in data)
            params = {k: (v.value if hasattr(v, "value") else v) for k, v in data.items()}
            db.execute(
                text(f"""
                    UPDATE jobs SET {set_clause}, updated_by_id = :user_id, updated_at = CURRENT_TIMESTAMP
                    WHERE job_id = :job_id
                """),
                {**params, "user_id": user["user_id"], "job_id": job_id}
            )

        if department_ids is not None:
            job_service.set_job_departments(db, job_id, current["university_id"], department_ids)
        if contact_ids is not None:
            job_service.set_job_contacts(db, job_id, data.get("company_id") or current["company_id"], contact_ids)
        if round_changes:
            job_service.apply_round_changes(db, job_id, round_changes)

        changed = list(data) + [
            name for name, value in (("department_ids", department_ids), ("contact_person_ids", contact_ids),
                                     ("interview_rounds", round_changes)) if value is not None
        ]
        log_activity(db, user["user_id"], "JOB_UPDATED", {"job_id": job_id, "fields": changed})
        response = job_service.get_job_detail(db, job_id)

    return JobDetailResponse(**response)


@router.delete("/{job_id}", response_model=MessageResponse)
async def delete_job(job_id: int, user: dict = Depends(get_current_user)):
    """Rounds, eligibility, contacts, assignments, applications, results and offers go with it."""
    with get_db_session() as db:
        job = load_job_for_delete(db, user, job_id)
        db.execute(text("DELETE FROM jobs WHERE job_id = :jid"), {"jid": job_id})
        log_activity(db, user["user_id"], "JOB_DELETED", {"job_id": job_id, "title": job["title"]})

    return MessageResponse(message="Job deleted successfully")


@router.post("/{job_id}/apply", response_model=ApplicationResponse, status_code=201)
async def apply_for_job(
    job_id: int,
    request: Optional[ApplyRequest] = Body(None),
    student: dict = Depends(get_current_student)
):
    """Apply with the stored resume. Job must be open, eligible and before its deadline."""
    with get_db_session() as db:
        application_id = apply_to_job(db, student, job_id, request.cover_letter if request else None)
        response = get_application(db, application_id)
    return ApplicationResponse(**response)


@router.get("/{job_id}/applications", response_model=List[ApplicationResponse])
async def list_job_applications(
    job_id: int,
    status: Optional[ApplicationStatus] = Query(None),
    user: dict = Depends(get_current_user)
):
    with get_db_session() as db:
        load_job_for_view(db, user, job_id)
        rows = list_applications(db, job_id=job_id, status=status.value if status else None)
    return [ApplicationResponse(**r) for r in rows]
