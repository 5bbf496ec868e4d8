"""
Relational schema for the placement portal.

Tables are declared with SQLAlchemy Core so the same definitions create the
schema on PostgreSQL (production) and SQLite (tests). Queries elsewhere are
plain SQL through `text()`; this module only owns the DDL.

Uniqueness and foreign keys live here, not in application code.
"""

from sqlalchemy import (
    MetaData, Table, Column, Integer, String, Text, Boolean, Numeric,
    Date, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, func
)

metadata = MetaData()


def _timestamps():
    return [
        Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
        Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    ]


universities = Table(
    "universities", metadata,
    Column("university_id", Integer, primary_key=True),
    Column("name", String(200), nullable=False),
    Column("code", String(20), nullable=False, unique=True),
    Column("city", String(100)),
    Column("state", String(100)),
    Column("country", String(100)),
    Column("address", Text),
    Column("website", String(255)),
    Column("contact_email", String(255)),
    Column("contact_phone", String(30)),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    *_timestamps(),
)

departments = Table(
    "departments", metadata,
    Column("department_id", Integer, primary_key=True),
    Column("university_id", Integer, ForeignKey("universities.university_id", ondelete="CASCADE"), nullable=False),
    Column("name", String(100), nullable=False),
    Column("code", String(20)),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    UniqueConstraint("university_id", "name", name="uq_department_university_name"),
)

users = Table(
    "users", metadata,
    Column("user_id", Integer, primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(150), nullable=False),
    Column("password_hash", String(255), nullable=False),
    Column("role", String(20), nullable=False),
    Column("university_id", Integer, ForeignKey("universities.university_id", ondelete="CASCADE")),
    Column("phone", String(30)),
    Column("designation", String(100)),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("last_login", DateTime),
    *_timestamps(),
    CheckConstraint(
        "role IN ('SUPER_ADMIN', 'UNIVERSITY_ADMIN', 'SUB_USER', 'STUDENT')",
        name="ck_user_role",
    ),
)

students = Table(
    "students", metadata,
    Column("student_id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.user_id", ondelete="CASCADE"), unique=True),
    Column("university_id", Integer, ForeignKey("universities.university_id", ondelete="CASCADE"), nullable=False),
    Column("department_id", Integer, ForeignKey("departments.department_id", ondelete="SET NULL")),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("email", String(255), nullable=False),
    Column("roll_number", String(50), nullable=False),
    Column("phone", String(30)),
    Column("gender", String(20)),
    Column("date_of_birth", Date),
    Column("year_of_graduation", Integer, nullable=False),
    Column("cgpa", Numeric(4, 2), nullable=False),
    Column("skills", Text),
    Column("resume_path", String(500)),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    *_timestamps(),
    UniqueConstraint("university_id", "email", name="uq_student_university_email"),
    UniqueConstraint("university_id", "roll_number", name="uq_student_university_roll"),
)

companies = Table(
    "companies", metadata,
    Column("company_id", Integer, primary_key=True),
    Column("name", String(200), nullable=False),
    Column("industry", String(100)),
    Column("description", Text),
    Column("website", String(255)),
    Column("address", Text),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    *_timestamps(),
)

company_universities = Table(
    "company_universities", metadata,
    Column("id", Integer, primary_key=True),
    Column("company_id", Integer, ForeignKey("companies.company_id", ondelete="CASCADE"), nullable=False),
    Column("university_id", Integer, ForeignKey("universities.university_id", ondelete="CASCADE"), nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    UniqueConstraint("company_id", "university_id", name="uq_company_university"),
)

company_contacts = Table(
    "company_contacts", metadata,
    Column("contact_id", Integer, primary_key=True),
    Column("company_id", Integer, ForeignKey("companies.company_id", ondelete="CASCADE"), nullable=False),
    Column("name", String(150), nullable=False),
    Column("email", String(255)),
    Column("phone", String(30)),
    Column("designation", String(100)),
    Column("is_primary", Boolean, nullable=False, server_default="0"),
)

jobs = Table(
    "jobs", metadata,
    Column("job_id", Integer, primary_key=True),
    Column("title", String(200), nullable=False),
    Column("description", Text),
    Column("requirements", Text),
    Column("responsibilities", Text),
    Column("job_type", String(20), nullable=False, server_default="FULL_TIME"),
    Column("location_type", String(20), nullable=False, server_default="ONSITE"),
    Column("location", String(200)),
    Column("ctc_range_min", Numeric(10, 2)),
    Column("ctc_range_max", Numeric(10, 2)),
    Column("ctc_breakup", Text),
    Column("is_internship", Boolean, nullable=False, server_default="0"),
    Column("internship_duration", Integer),
    Column("internship_stipend", Numeric(10, 2)),
    Column("expected_hires", Integer, nullable=False, server_default="1"),
    Column("apply_by", Date),
    Column("min_cgpa", Numeric(4, 2), nullable=False, server_default="0"),
    Column("other_requirements", Text),
    Column("status", String(20), nullable=False, server_default="DRAFT"),
    Column("company_id", Integer, ForeignKey("companies.company_id", ondelete="CASCADE"), nullable=False),
    Column("university_id", Integer, ForeignKey("universities.university_id", ondelete="CASCADE"), nullable=False),
    Column("created_by_id", Integer, ForeignKey("users.user_id", ondelete="SET NULL")),
    Column("updated_by_id", Integer, ForeignKey("users.user_id", ondelete="SET NULL")),
    *_timestamps(),
)

job_departments = Table(
    "job_departments", metadata,
    Column("id", Integer, primary_key=True),
    Column("job_id", Integer, ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False),
    Column("department_id", Integer, ForeignKey("departments.department_id", ondelete="CASCADE"), nullable=False),
    UniqueConstraint("job_id", "department_id", name="uq_job_department"),
)

job_contacts = Table(
    "job_contacts", metadata,
    Column("id", Integer, primary_key=True),
    Column("job_id", Integer, ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False),
    Column("contact_person_id", Integer, ForeignKey("company_contacts.contact_id", ondelete="CASCADE"), nullable=False),
    UniqueConstraint("job_id", "contact_person_id", name="uq_job_contact"),
)

sub_user_jobs = Table(
    "sub_user_jobs", metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False),
    Column("job_id", Integer, ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False),
    Column("can_edit_job_details", Boolean, nullable=False, server_default="0"),
    Column("can_manage_students", Boolean, nullable=False, server_default="1"),
    Column("can_schedule_interviews", Boolean, nullable=False, server_default="1"),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    UniqueConstraint("user_id", "job_id", name="uq_sub_user_job"),
)

interview_rounds = Table(
    "interview_rounds", metadata,
    Column("round_id", Integer, primary_key=True),
    Column("job_id", Integer, ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False),
    Column("name", String(150), nullable=False),
    Column("description", Text),
    Column("sequence", Integer, nullable=False),
    Column("status", String(20), nullable=False, server_default="SCHEDULED"),
    Column("scheduled_at", DateTime),
    Column("location", String(200)),
    Column("is_online", Boolean, nullable=False, server_default="0"),
    Column("meeting_link", String(500)),
    *_timestamps(),
)

applications = Table(
    "applications", metadata,
    Column("application_id", Integer, primary_key=True),
    Column("job_id", Integer, ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False),
    Column("student_id", Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False),
    Column("status", String(20), nullable=False, server_default="APPLIED"),
    Column("cover_letter", Text),
    Column("resume_path", String(500)),
    Column("rejection_reason", Text),
    Column("applied_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    UniqueConstraint("job_id", "student_id", name="uq_application_job_student"),
)

interview_results = Table(
    "interview_results", metadata,
    Column("result_id", Integer, primary_key=True),
    Column("application_id", Integer, ForeignKey("applications.application_id", ondelete="CASCADE"), nullable=False),
    Column("interview_round_id", Integer, ForeignKey("interview_rounds.round_id", ondelete="CASCADE"), nullable=False),
    Column("status", String(20), nullable=False, server_default="PENDING"),
    Column("scheduled_at", DateTime),
    Column("feedback", Text),
    Column("rating", Integer),
    Column("interviewer_id", Integer, ForeignKey("users.user_id", ondelete="SET NULL")),
    *_timestamps(),
    UniqueConstraint("application_id", "interview_round_id", name="uq_result_application_round"),
    CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_result_rating"),
)

offers = Table(
    "offers", metadata,
    Column("offer_id", Integer, primary_key=True),
    Column("application_id", Integer, ForeignKey("applications.application_id", ondelete="CASCADE"),
           nullable=False, unique=True),
    Column("ctc", Numeric(10, 2), nullable=False),
    Column("offer_date", Date, nullable=False),
    Column("joining_date", Date),
    Column("offer_letter_url", String(500)),
    Column("status", String(20), nullable=False, server_default="PENDING"),
    *_timestamps(),
)

activity_logs = Table(
    "activity_logs", metadata,
    Column("log_id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.user_id", ondelete="SET NULL")),
    Column("action", String(50), nullable=False),
    Column("details", Text),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
)


def create_schema(engine) -> None:
    """Create all tables that don't exist yet."""
    metadata.create_all(engine)


def drop_schema(engine) -> None:
    metadata.drop_all(engine)
