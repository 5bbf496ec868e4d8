"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from typing import Optional, List, Any, ClassVar, Dict, Tuple
from datetime import date, datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    super_admin = "SUPER_ADMIN"
    university_admin = "UNIVERSITY_ADMIN"
    sub_user = "SUB_USER"
    student = "STUDENT"


class JobType(str, Enum):
    full_time = "FULL_TIME"
    part_time = "PART_TIME"
    internship = "INTERNSHIP"
    contract = "CONTRACT"


class LocationType(str, Enum):
    onsite = "ONSITE"
    remote = "REMOTE"
    hybrid = "HYBRID"


class JobStatus(str, Enum):
    draft = "DRAFT"
    open = "OPEN"
    in_progress = "IN_PROGRESS"
    completed = "COMPLETED"
    cancelled = "CANCELLED"


class RoundStatus(str, Enum):
    scheduled = "SCHEDULED"
    in_progress = "IN_PROGRESS"
    completed = "COMPLETED"
    cancelled = "CANCELLED"


class ApplicationStatus(str, Enum):
    applied = "APPLIED"
    shortlisted = "SHORTLISTED"
    interview = "INTERVIEW"
    offered = "OFFERED"
    accepted = "ACCEPTED"
    rejected = "REJECTED"
    withdrawn = "WITHDRAWN"


class ResultStatus(str, Enum):
    pending = "PENDING"
    passed = "PASS"
    failed = "FAIL"
    on_hold = "ON_HOLD"


class OfferStatus(str, Enum):
    pending = "PENDING"
    accepted = "ACCEPTED"
    rejected = "REJECTED"


class PlacementStatus(str, Enum):
    not_applied = "NOT_APPLIED"
    applied = "APPLIED"
    interview_process = "INTERVIEW_PROCESS"
    offered = "OFFERED"
    placed = "PLACED"
    rejected = "REJECTED"


class RoundAction(str, Enum):
    create = "create"
    update = "update"
    delete = "delete"


class PartialUpdate(BaseModel):
    """
    Base for partial updates.

    Fields named in `not_nullable` may be left out, but an explicit null is a
    validation error since the column can't hold it.
    """
    not_nullable: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data):
        if isinstance(data, dict):
            nulls = [f for f in cls.not_nullable if f in data and data[f] is None]
            if nulls:
                raise ValueError(f"{', '.join(nulls)} cannot be null")
        return data


# ============================================================
# AUTH SCHEMAS
# ============================================================

class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    role: Optional[UserRole] = None

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: str
    name: str
    university_id: Optional[int] = None

class UserResponse(BaseModel):
    user_id: int
    email: str
    name: str
    role: str
    university_id: Optional[int] = None
    phone: Optional[str] = None
    designation: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ForgotPasswordResponse(BaseModel):
    message: str
    reset_token: Optional[str] = None

class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(..., min_length=8)

class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


# ============================================================
# UNIVERSITY SCHEMAS
# ============================================================

class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: Optional[str] = Field(None, max_length=20)

class DepartmentResponse(BaseModel):
    department_id: int
    university_id: int
    name: str
    code: Optional[str] = None

class UniversityCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    code: str = Field(..., min_length=2, max_length=20)
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    departments: List[DepartmentCreate] = []

class UniversityUpdate(PartialUpdate):
    not_nullable = ("name", "code", "is_active")

    name: Optional[str] = Field(None, min_length=2, max_length=200)
    code: Optional[str] = Field(None, min_length=2, max_length=20)
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    is_active: Optional[bool] = None

class UniversityResponse(BaseModel):
    university_id: int
    name: str
    code: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    is_active: bool
    total_students: int = 0
    total_placements: int = 0
    total_companies: int = 0
    departments: List[DepartmentResponse] = []
    created_at: datetime


# ============================================================
# USER / SUB-USER SCHEMAS
# ============================================================

class StaffUserCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=150)
    email: EmailStr
    password: str = Field(..., min_length=8)
    phone: Optional[str] = None
    designation: Optional[str] = None

class SubUserUpdate(PartialUpdate):
    not_nullable = ("name", "is_active")

    name: Optional[str] = Field(None, min_length=2, max_length=150)
    phone: Optional[str] = None
    designation: Optional[str] = None
    is_active: Optional[bool] = None

class SubUserResponse(BaseModel):
    user_id: int
    name: str
    email: str
    phone: Optional[str] = None
    designation: Optional[str] = None
    university_id: Optional[int] = None
    is_active: bool
    assigned_jobs: int = 0
    last_login: Optional[datetime] = None
    created_at: datetime

class TemporaryPasswordResponse(BaseModel):
    message: str
    temporary_password: str

class JobAssignment(BaseModel):
    job_id: int
    can_edit_job_details: bool = False
    can_manage_students: bool = True
    can_schedule_interviews: bool = True

class AssignedJobResponse(BaseModel):
    job_id: int
    title: str
    company_name: str
    status: str
    can_edit_job_details: bool
    can_manage_students: bool
    can_schedule_interviews: bool


# ============================================================
# STUDENT SCHEMAS
# ============================================================

class StudentCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    roll_number: str = Field(..., min_length=1, max_length=50)
    department_id: Optional[int] = None
    year_of_graduation: int = Field(..., ge=1950, le=2100)
    cgpa: float = Field(..., ge=0, le=10)
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    skills: List[str] = []
    password: Optional[str] = Field(None, min_length=8, description="Creates a student login when set")

class StudentUpdate(PartialUpdate):
    not_nullable = ("first_name", "last_name", "email", "roll_number", "year_of_graduation", "cgpa", "is_active")

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    roll_number: Optional[str] = Field(None, min_length=1, max_length=50)
    department_id: Optional[int] = None
    year_of_graduation: Optional[int] = Field(None, ge=1950, le=2100)
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    skills: Optional[List[str]] = None
    is_active: Optional[bool] = None

class StudentSelfUpdate(BaseModel):
    phone: Optional[str] = None
    skills: Optional[List[str]] = None

class StudentResponse(BaseModel):
    student_id: int
    user_id: Optional[int] = None
    university_id: int
    department_id: Optional[int] = None
    department: Optional[str] = None
    name: str
    first_name: str
    last_name: str
    email: str
    roll_number: str
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    year_of_graduation: int
    cgpa: float
    skills: List[str] = []
    resume_uploaded: bool = False
    is_active: bool
    placement_status: PlacementStatus = PlacementStatus.not_applied
    highest_package: Optional[float] = None
    created_at: datetime

class StudentListResponse(BaseModel):
    students: List[StudentResponse]
    total: int
    page: int
    page_size: int

class ImportRowError(BaseModel):
    row: int
    reason: str

class StudentImportResponse(BaseModel):
    imported: int
    failed: int
    errors: List[ImportRowError] = []

class ResumeUploadResponse(BaseModel):
    success: bool
    message: str
    filename: str
    characters_extracted: int


# ============================================================
# COMPANY SCHEMAS
# ============================================================

class ContactCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    designation: Optional[str] = None
    is_primary: bool = False

class ContactUpdate(PartialUpdate):
    not_nullable = ("name", "is_primary")

    name: Optional[str] = Field(None, min_length=2, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    designation: Optional[str] = None
    is_primary: Optional[bool] = None

class ContactResponse(BaseModel):
    contact_id: int
    company_id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    designation: Optional[str] = None
    is_primary: bool = False

class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    industry: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    university_id: Optional[int] = Field(None, description="Super admin only: link to this university")
    contacts: List[ContactCreate] = []

class CompanyUpdate(PartialUpdate):
    not_nullable = ("name", "is_active")

    name: Optional[str] = Field(None, min_length=2, max_length=200)
    industry: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    is_active: Optional[bool] = None

class CompanyParticipation(BaseModel):
    year: str
    university_id: int
    jobs_posted: int
    students_hired: int
    highest_package: float
    average_package: float

class CompanyResponse(BaseModel):
    company_id: int
    name: str
    industry: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    is_active: bool
    jobs_posted: int = 0
    students_hired: int = 0
    created_at: datetime

class CompanyDetailResponse(CompanyResponse):
    contacts: List[ContactResponse] = []
    participation_history: List[CompanyParticipation] = []


# ============================================================
# JOB & INTERVIEW ROUND SCHEMAS
# ============================================================

class RoundCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Round name is required")
    description: Optional[str] = None
    sequence: int = Field(..., ge=1)
    status: RoundStatus = RoundStatus.scheduled
    scheduled_at: Optional[datetime] = None
    location: Optional[str] = None
    is_online: bool = False
    meeting_link: Optional[str] = None

class RoundUpsert(RoundCreate, PartialUpdate):
    """Round entry in a bulk replace; rounds without an id are created."""
    model_config = ConfigDict(populate_by_name=True)
    not_nullable = ("status", "is_online")

    round_id: Optional[int] = Field(None, alias="id")
    status: Optional[RoundStatus] = None

class RoundChange(RoundUpsert):
    """Round entry in a job update, with an explicit action. Missing id means create."""
    not_nullable = ("name", "sequence", "status", "is_online")

    name: Optional[str] = Field(None, min_length=1)
    sequence: Optional[int] = Field(None, ge=1)
    is_online: Optional[bool] = None
    action: Optional[RoundAction] = Field(None, alias="_action")

    @model_validator(mode="after")
    def check_action(self):
        if self.action == RoundAction.create or self.round_id is None:
            if self.action == RoundAction.delete:
                raise ValueError("Round id is required to delete a round")
            if not self.name or self.sequence is None:
                raise ValueError("Round name and sequence are required")
        return self

class RoundUpdate(PartialUpdate):
    not_nullable = ("name", "sequence", "status", "is_online")

    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    sequence: Optional[int] = Field(None, ge=1)
    status: Optional[RoundStatus] = None
    scheduled_at: Optional[datetime] = None
    location: Optional[str] = None
    is_online: Optional[bool] = None
    meeting_link: Optional[str] = None

class RoundResponse(BaseModel):
    round_id: int
    job_id: int
    name: str
    description: Optional[str] = None
    sequence: int
    status: str
    scheduled_at: Optional[datetime] = None
    location: Optional[str] = None
    is_online: bool = False
    meeting_link: Optional[str] = None

class RoundsUpdateResponse(BaseModel):
    message: str
    rounds: List[RoundResponse]

class RoundDetailResponse(BaseModel):
    message: str
    round: RoundResponse


def _check_ctc_range(ctc_min: Optional[float], ctc_max: Optional[float]) -> None:
    if ctc_min is not None and ctc_max is not None and ctc_max < ctc_min:
        raise ValueError("Maximum CTC must be greater than or equal to Minimum CTC")


def _check_unique_sequences(rounds) -> None:
    sequences = [r.sequence for r in rounds]
    if len(sequences) != len(set(sequences)):
        raise ValueError("Interview round sequences must be unique")


class JobCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    company_id: int
    university_id: Optional[int] = Field(None, description="Required when a super admin creates the job")
    description: Optional[str] = None
    requirements: Optional[str] = None
    responsibilities: Optional[str] = None
    job_type: JobType = JobType.full_time
    location_type: LocationType = LocationType.onsite
    location: Optional[str] = None
    ctc_range_min: Optional[float] = Field(None, ge=0)
    ctc_range_max: Optional[float] = Field(None, ge=0)
    ctc_breakup: Optional[str] = None
    is_internship: bool = False
    internship_duration: Optional[int] = Field(None, ge=1, description="Months")
    internship_stipend: Optional[float] = Field(None, ge=0)
    expected_hires: int = Field(1, ge=1)
    apply_by: Optional[date] = None
    status: JobStatus = JobStatus.draft
    min_cgpa: float = Field(0, ge=0, le=10)
    other_requirements: Optional[str] = None
    department_ids: List[int] = []
    contact_person_ids: List[int] = []
    interview_rounds: List[RoundCreate] = []

    @model_validator(mode="after")
    def check_job(self):
        _check_ctc_range(self.ctc_range_min, self.ctc_range_max)
        if self.job_type == JobType.internship:
            self.is_internship = True
        if self.is_internship and self.internship_duration is None:
            raise ValueError("Internship duration is required for internships")
        _check_unique_sequences(self.interview_rounds)
        return self


class JobUpdate(PartialUpdate):
    not_nullable = (
        "title", "company_id", "job_type", "location_type", "is_internship",
        "expected_hires", "status", "min_cgpa",
    )

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    company_id: Optional[int] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    responsibilities: Optional[str] = None
    job_type: Optional[JobType] = None
    location_type: Optional[LocationType] = None
    location: Optional[str] = None
    ctc_range_min: Optional[float] = Field(None, ge=0)
    ctc_range_max: Optional[float] = Field(None, ge=0)
    ctc_breakup: Optional[str] = None
    is_internship: Optional[bool] = None
    internship_duration: Optional[int] = Field(None, ge=1)
    internship_stipend: Optional[float] = Field(None, ge=0)
    expected_hires: Optional[int] = Field(None, ge=1)
    apply_by: Optional[date] = None
    status: Optional[JobStatus] = None
    min_cgpa: Optional[float] = Field(None, ge=0, le=10)
    other_requirements: Optional[str] = None
    department_ids: Optional[List[int]] = None
    contact_person_ids: Optional[List[int]] = None
    interview_rounds: Optional[List[RoundChange]] = None

    @model_validator(mode="after")
    def check_job(self):
        _check_ctc_range(self.ctc_range_min, self.ctc_range_max)
        if self.interview_rounds:
            _check_unique_sequences([
                r for r in self.interview_rounds
                if r.action != RoundAction.delete and r.sequence is not None
            ])
        return self


class UserSummary(BaseModel):
    user_id: int
    name: str
    email: str

class JobResponse(BaseModel):
    job_id: int
    title: str
    company_id: int
    company_name: str
    university_id: int
    university_name: str
    job_type: str
    location_type: str
    location: Optional[str] = None
    ctc_range_min: Optional[float] = None
    ctc_range_max: Optional[float] = None
    is_internship: bool = False
    internship_duration: Optional[int] = None
    internship_stipend: Optional[float] = None
    expected_hires: int
    apply_by: Optional[date] = None
    status: str
    min_cgpa: float = 0
    application_count: int = 0
    is_eligible: Optional[bool] = None
    has_applied: Optional[bool] = None
    created_at: datetime

class JobListResponse(BaseModel):
    jobs: List[JobResponse]
    total: int
    page: int
    page_size: int


# ============================================================
# APPLICATION SCHEMAS
# ============================================================

class ApplyRequest(BaseModel):
    cover_letter: Optional[str] = None

class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus
    rejection_reason: Optional[str] = None

class InterviewResultUpdate(BaseModel):
    scheduled_at: Optional[datetime] = None
    status: Optional[ResultStatus] = None
    feedback: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)

    @model_validator(mode="after")
    def check_not_empty(self):
        if all(v is None for v in (self.scheduled_at, self.status, self.feedback, self.rating)):
            raise ValueError("Provide a schedule or feedback")
        return self

    @property
    def has_feedback(self) -> bool:
        return self.status is not None or self.feedback is not None or self.rating is not None

class InterviewResultResponse(BaseModel):
    result_id: int
    application_id: int
    round_id: int
    round_name: str
    sequence: int
    status: str
    scheduled_at: Optional[datetime] = None
    feedback: Optional[str] = None
    rating: Optional[int] = None
    interviewer_id: Optional[int] = None
    interviewer_name: Optional[str] = None

class OfferCreate(BaseModel):
    ctc: float = Field(..., gt=0)
    offer_date: Optional[date] = None
    joining_date: Optional[date] = None
    offer_letter_url: Optional[str] = None

class OfferRespond(BaseModel):
    accept: bool

class OfferResponse(BaseModel):
    offer_id: int
    application_id: int
    ctc: float
    offer_date: date
    joining_date: Optional[date] = None
    offer_letter_url: Optional[str] = None
    status: str

class ApplicationResponse(BaseModel):
    application_id: int
    job_id: int
    job_title: str
    company_name: str
    student_id: int
    student_name: str
    roll_number: Optional[str] = None
    department: Optional[str] = None
    status: str
    cover_letter: Optional[str] = None
    rejection_reason: Optional[str] = None
    applied_at: datetime
    updated_at: datetime
    interviews: List[InterviewResultResponse] = []
    offer: Optional[OfferResponse] = None


class JobDetailResponse(JobResponse):
    description: Optional[str] = None
    requirements: Optional[str] = None
    responsibilities: Optional[str] = None
    ctc_breakup: Optional[str] = None
    other_requirements: Optional[str] = None
    company_industry: Optional[str] = None
    company_website: Optional[str] = None
    created_by: Optional[UserSummary] = None
    updated_by: Optional[UserSummary] = None
    updated_at: Optional[datetime] = None
    interview_rounds: List[RoundResponse] = []
    contact_persons: List[ContactResponse] = []
    eligible_departments: List[DepartmentResponse] = []
    applications: List[ApplicationResponse] = []


class StudentDetailResponse(StudentResponse):
    applications: List[ApplicationResponse] = []


# ============================================================
# ACTIVITY LOG SCHEMAS
# ============================================================

class ActivityLogResponse(BaseModel):
    log_id: int
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    action: str
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

class ActivityLogListResponse(BaseModel):
    logs: List[ActivityLogResponse]
    total: int
    page: int
    page_size: int


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True
