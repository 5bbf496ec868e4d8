# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# - Points the app at a throwaway SQLite database before any imports
# - Recreates the schema for every test
# - Provides tenants, users, tokens, a company, a job and a student
# =============================================================================

import os
import tempfile

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# placement_portal.core.config caches settings on first import

_TMP_DIR = tempfile.mkdtemp(prefix="placement-portal-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["DEBUG"] = "true"
os.environ["AUTO_CREATE_SCHEMA"] = "false"

import pytest
from fastapi.testclient import TestClient

from placement_portal.db import engine
from placement_portal.db.schema import create_schema, drop_schema
from placement_portal.main import app
from tests import factories


@pytest.fixture(autouse=True)
def fresh_schema():
    drop_schema(engine)
    create_schema(engine)
    yield


@pytest.fixture
def client():
    return TestClient(app)


# =============================================================================
# Tenants and users
# =============================================================================

@pytest.fixture
def university():
    return factories.create_university("Test University", "TU")


@pytest.fixture
def other_university():
    return factories.create_university("Other University", "OU")


@pytest.fixture
def super_admin_headers():
    user_id = factories.create_user("super@example.com", "SUPER_ADMIN")
    return factories.auth_headers(user_id, "SUPER_ADMIN")


@pytest.fixture
def admin(university):
    return factories.create_user("admin@tu.edu", "UNIVERSITY_ADMIN", university["university_id"], name="Uni Admin")


@pytest.fixture
def admin_headers(admin):
    return factories.auth_headers(admin, "UNIVERSITY_ADMIN")


@pytest.fixture
def other_admin_headers(other_university):
    user_id = factories.create_user("admin@ou.edu", "UNIVERSITY_ADMIN", other_university["university_id"])
    return factories.auth_headers(user_id, "UNIVERSITY_ADMIN")


@pytest.fixture
def sub_user(university):
    return factories.create_user("recruiter@tu.edu", "SUB_USER", university["university_id"], name="Recruiter")


@pytest.fixture
def sub_user_headers(sub_user):
    return factories.auth_headers(sub_user, "SUB_USER")


# =============================================================================
# Placement data
# =============================================================================

@pytest.fixture
def company(university):
    company_id = factories.create_company("Acme Corp", university["university_id"])
    contacts = [
        factories.create_contact(company_id, "John Doe", is_primary=True),
        factories.create_contact(company_id, "Jane Smith"),
    ]
    return {"company_id": company_id, "contact_ids": contacts}


@pytest.fixture
def job(university, company, admin):
    job_id = factories.create_job(university["university_id"], company["company_id"], created_by=admin)
    rounds = [
        factories.create_round(job_id, "Aptitude Test", 1),
        factories.create_round(job_id, "Technical Interview", 2),
    ]
    return {"job_id": job_id, "round_ids": rounds}


@pytest.fixture
def student(university):
    user_id = factories.create_user("rahul@student.tu.edu", "STUDENT", university["university_id"], name="Rahul Sharma")
    student_id = factories.create_student(
        university["university_id"], university["departments"]["CSE"],
        "Rahul", "Sharma", "rahul@student.tu.edu", "CS2001", cgpa=8.5, user_id=user_id
    )
    return {"student_id": student_id, "user_id": user_id, "headers": factories.auth_headers(user_id, "STUDENT")}
