"""
Student Routes

University admin:
GET /students - List students with filters
POST /students - Create student (optionally with a login)
POST /students/import - Bulk import from CSV
GET /students/export - Export as CSV
GET /students/{student_id} - Student detail with applications
PUT /students/{student_id} - Update student
DELETE /students/{student_id} - Delete student

Student self-service:
GET /students/me - Own profile
PUT /students/me - Update phone and skills
POST /students/me/resume - Upload resume (PDF/DOCX/TXT)
"""

import logging
from fastapi import APIRouter, Depends, Query, UploadFile, File
from fastapi.responses import StreamingResponse
from typing import Optional

from placement_portal.db.database import get_db_session
from placement_portal.core.auth import get_current_student, get_university_admin
from placement_portal.services import student_service
from placement_portal.services.activity_service import log_activity
from placement_portal.services.application_service import list_applications
from placement_portal.utils.file_upload import read_resume, save_resume, remove_file
from placement_portal.schemas.schemas import (
    StudentCreate, StudentUpdate, StudentSelfUpdate, StudentResponse, StudentDetailResponse,
    StudentListResponse, StudentImportResponse, ResumeUploadResponse, MessageResponse, PlacementStatus
)

router = APIRouter(prefix="/students", tags=["Students"])
logger = logging.getLogger(__name__)


@router.get("", response_model=StudentListResponse)
async def list_students(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    department_id: Optional[int] = Query(None),
    year_of_graduation: Optional[int] = Query(None, description="Batch"),
    placement_status: Optional[PlacementStatus] = Query(None),
    min_cgpa: Optional[float] = Query(None, ge=0, le=10),
    search: Optional[str] = Query(None, description="Search in name, email, roll number"),
    admin: dict = Depends(get_university_admin)
):
    filters = {
        "department_id": department_id,
        "year_of_graduation": year_of_graduation,
        "placement_status": placement_status.value if placement_status else None,
        "min_cgpa": min_cgpa,
        "search": search,
    }
    with get_db_session() as db:
        result = student_service.list_students(db, admin["university_id"], filters, page, page_size)
    return StudentListResponse(**result)


@router.post("", response_model=StudentResponse, status_code=201)
async def create_student(student: StudentCreate, admin: dict = Depends(get_university_admin)):
    with get_db_session() as db:
        student_id = student_service.create_student(db, admin["university_id"], student)
        log_activity(db, admin["user_id"], "STUDENT_CREATED", {"student_id": student_id, "roll_number": student.roll_number})
        response = student_service.get_student(db, student_id)
    return StudentResponse(**response)


@router.post("/import", response_model=StudentImportResponse)
async def import_students(
    file: UploadFile = File(..., description="CSV with Name, Email, Roll Number, Department, Batch, CGPA"),
    admin: dict = Depends(get_university_admin)
):
    """Rows are validated one by one; bad rows are reported, good rows are saved."""
    content = await file.read()
    with get_db_session() as db:
        result = student_service.import_students(db, admin["university_id"], content)
        log_activity(db, admin["user_id"], "STUDENTS_IMPORTED", {"imported": result["imported"], "failed": result["failed"]})
    return StudentImportResponse(**result)


@router.get("/export")
async def export_students(admin: dict = Depends(get_university_admin)):
    with get_db_session() as db:
        csv_text = student_service.export_students_csv(db, admin["university_id"])

    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=students.csv"}
    )


@router.get("/me", response_model=StudentDetailResponse)
async def get_my_profile(student: dict = Depends(get_current_student)):
    with get_db_session() as db:
        response = student_service.get_student(db, student["student_id"])
        response["applications"] = list_applications(db, student_id=student["student_id"])
    return StudentDetailResponse(**response)


@router.put("/me", response_model=StudentResponse)
async def update_my_profile(updates: StudentSelfUpdate, student: dict = Depends(get_current_student)):
    """Students may change their phone number and skills only."""
    with get_db_session() as db:
        student_service.update_student(
            db, student["university_id"], student["student_id"], updates.model_dump(exclude_unset=True)
        )
        response = student_service.get_student(db, student["student_id"])
    return StudentResponse(**response)


@router.post("/me/resume", response_model=ResumeUploadResponse)
async def upload_resume(
    file: UploadFile = File(..., description="Resume file (PDF, DOCX, or TXT)"),
    student: dict = Depends(get_current_student)
):
    """Replaces any earlier resume. New applications reference the stored file."""
    resume = await read_resume(file)
    path = save_resume(resume, student["student_id"])

    try:
        with get_db_session() as db:
            previous = student_service.get_student_resume_path(db, student["student_id"])
            student_service.set_resume_path(db, student["student_id"], path)
    except Exception:
        remove_file(path)
        raise

    if previous and previous != path:
        remove_file(previous)

    return ResumeUploadResponse(
        success=True,
        message="Resume uploaded",
        filename=resume.filename,
        characters_extracted=len(resume.text)
    )


@router.get("/{student_id}", response_model=StudentDetailResponse)
async def get_student(student_id: int, admin: dict = Depends(get_university_admin)):
    with get_db_session() as db:
        response = student_service.get_student(db, student_id, admin["university_id"])
        response["applications"] = list_applications(db, student_id=student_id)
    return StudentDetailResponse(**response)


@router.put("/{student_id}", response_model=StudentResponse)
async def update_student(student_id: int, updates: StudentUpdate, admin: dict = Depends(get_university_admin)):
    data = updates.model_dump(exclude_unset=True)
    with get_db_session() as db:
        student_service.update_student(db, admin["university_id"], student_id, data)
        if data:
            log_activity(db, admin["user_id"], "STUDENT_UPDATED", {"student_id": student_id, "fields": list(data)})
        response = student_service.get_student(db, student_id)
    return StudentResponse(**response)


@router.delete("/{student_id}", response_model=MessageResponse)
async def delete_student(student_id: int, admin: dict = Depends(get_university_admin)):
    with get_db_session() as db:
        student_service.delete_student(db, admin["university_id"], student_id)
        log_activity(db, admin["user_id"], "STUDENT_DELETED", {"student_id": student_id})
    return MessageResponse(message="Student deleted")
