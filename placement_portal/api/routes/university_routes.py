"""
University Routes

GET /universities - List universities (super admin: all, university admin: own)
POST /universities - Create university with departments (super admin)
GET /universities/{university_id} - Get university
PUT /universities/{university_id} - Update university
DELETE /universities/{university_id} - Delete university (super admin)
POST /universities/{university_id}/admins - Create a university admin (super admin)
GET /universities/{university_id}/departments - List departments
POST /universities/{university_id}/departments - Add department
DELETE /universities/{university_id}/departments/{department_id} - Remove department
"""

import logging
from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy import text
from typing import List, Optional

from placement_portal.db.database import get_db_session, fetch_all, fetch_one
from placement_portal.core.auth import get_current_user, require_roles, hash_password
from placement_portal.services.access_service import require_university_access
from placement_portal.services.activity_service import log_activity
from placement_portal.schemas.schemas import (
    UniversityCreate, UniversityUpdate, UniversityResponse, DepartmentCreate, DepartmentResponse,
    StaffUserCreate, UserResponse, MessageResponse, UserRole
)

router = APIRouter(prefix="/universities", tags=["Universities"])
logger = logging.getLogger(__name__)

UNIVERSITY_SELECT = """
    SELECT un.university_id, un.name, un.code, un.city, un.state, un.country, un.address,
           un.website, un.contact_email, un.contact_phone, un.is_active, un.created_at,
           (SELECT COUNT(*) FROM students s WHERE s.university_id = un.university_id) AS total_students,
           (SELECT COUNT(*) FROM applications a JOIN jobs j ON a.job_id = j.job_id
            WHERE j.university_id = un.university_id AND a.status = 'ACCEPTED') AS total_placements,
           (SELECT COUNT(*) FROM company_universities cu WHERE cu.university_id = un.university_id) AS total_companies
    FROM universities un
"""


def _departments(db, university_id: int) -> List[dict]:
    return fetch_all(
        db,
        "SELECT department_id, university_id, name, code FROM departments WHERE university_id = :uni ORDER BY name",
        {"uni": university_id}
    )


def _get_university(db, university_id: int) -> dict:
    row = fetch_one(db, UNIVERSITY_SELECT + " WHERE un.university_id = :uni", {"uni": university_id})
    if not row:
        raise HTTPException(status_code=404, detail="University not found")
    row["departments"] = _departments(db, university_id)
    return row


@router.get("", response_model=List[UniversityResponse])
async def list_universities(
    search: Optional[str] = Query(None, description="Search in name, code, city"),
    is_active: Optional[bool] = Query(None),
    user: dict = Depends(require_roles(UserRole.super_admin, UserRole.university_admin))
):
    sql = UNIVERSITY_SELECT + " WHERE 1 = 1"
    params = {}

    if user["role"] == UserRole.university_admin.value:
        sql += " AND un.university_id = :uni"
        params["uni"] = user["university_id"]
    if search:
        sql += """ AND (LOWER(un.name) LIKE LOWER(:search) OR LOWER(un.code) LIKE LOWER(:search)
                   OR LOWER(un.city) LIKE LOWER(:search))"""
        params["search"] = f"%{search}%"
    if is_active is not None:
        sql += " AND un.is_active = :active"
        params["active"] = is_active
    sql += " ORDER BY un.name"

    with get_db_session() as db:
        rows = fetch_all(db, sql, params)
        for row in rows:
            row["departments"] = _departments(db, row["university_id"])

    return [UniversityResponse(**r) for r in rows]


@router.post("", response_model=UniversityResponse, status_code=201)
async def create_university(
    university: UniversityCreate,
    user: dict = Depends(require_roles(UserRole.super_admin))
):
    """Create a university and its departments."""
    with get_db_session() as db:
        if fetch_one(db, "SELECT university_id FROM universities WHERE LOWER(code) = LOWER(:code)",
                     {"code": university.code}):
            raise HTTPException(status_code=409, detail="University code already exists")

        result = db.execute(
            text("""
                INSERT INTO universities (name, code, city, state, country, address, website,
                    contact_email, contact_phone)
                VALUES (:name, :code, :city, :state, :country, :address, :website,
                    :contact_email, :contact_phone)
                RETURNING university_id
            """),
            university.model_dump(exclude={"departments"})
        )
        university_id = result.fetchone()[0]

        for dept in university.departments:
            db.execute(
                text("INSERT INTO departments (university_id, name, code) VALUES (:uni, :name, :code)"),
                {"uni": university_id, "name": dept.name, "code": dept.code}
            )

        log_activity(db, user["user_id"], "UNIVERSITY_CREATED", {"university_id": university_id, "name": university.name})
        response = _get_university(db, university_id)

    return UniversityResponse(**response)


@router.get("/{university_id}", response_model=UniversityResponse)
async def get_university(university_id: int, user: dict = Depends(get_current_user)):
    require_university_access(user, university_id)
    with get_db_session() as db:
        response = _get_university(db, university_id)
    return UniversityResponse(**response)


@router.put("/{university_id}", response_model=UniversityResponse)
async def update_university(
    university_id: int,
    updates: UniversityUpdate,
    user: dict = Depends(require_roles(UserRole.super_admin, UserRole.university_admin))
):
    require_university_access(user, university_id)
    data = updates.model_dump(exclude_unset=True)
    if "is_active" in data and user["role"] != UserRole.super_admin.value:
        raise HTTPException(status_code=403, detail="Only super admins can activate or deactivate universities")

    with get_db_session() as db:
        _get_university(db, university_id)

        if data.get("code") and fetch_one(
            db,
            "SELECT university_id FROM universities WHERE LOWER(code) = LOWER(:code) AND university_id <> :uni",
            {"code": data["code"], "uni": university_id}
        ):
            raise HTTPException(status_code=409, detail="University code already exists")

        if data:
            set_clause = ", ".join(f"{field} = :{field}" for field in data)
            db.execute(
                text(f"UPDATE universities SET {set_clause}, updated_at = CURRENT_TIMESTAMP WHERE university_id = :uni"),
                {**data, "uni": university_id}
            )
            log_activity(db, user["user_id"], "UNIVERSITY_UPDATED", {"university_id": university_id, "fields": list(data)})

        response = _get_university(db, university_id)

    return UniversityResponse(**response)


@router.delete("/{university_id}", response_model=MessageResponse)
async def delete_university(university_id: int, user: dict = Depends(require_roles(UserRole.super_admin))):
    """Delete a university and everything that belongs to it."""
    with get_db_session() as db:
        university = _get_university(db, university_id)
        db.execute(text("DELETE FROM universities WHERE university_id = :uni"), {"uni": university_id})
        log_activity(db, user["user_id"], "UNIVERSITY_DELETED", {"university_id": university_id, "name": university["name"]})

    return MessageResponse(message="University deleted")


@router.post("/{university_id}/admins", response_model=UserResponse, status_code=201)
async def create_university_admin(
    university_id: int,
    admin: StaffUserCreate,
    user: dict = Depends(require_roles(UserRole.super_admin))
):
    with get_db_session() as db:
        _get_university(db, university_id)

        if fetch_one(db, "SELECT user_id FROM users WHERE LOWER(email) = LOWER(:email)", {"email": admin.email}):
            raise HTTPException(status_code=409, detail="Email already registered")

        result = db.execute(
            text("""
                INSERT INTO users (email, name, password_hash, role, university_id, phone, designation)
                VALUES (:email, :name, :password_hash, 'UNIVERSITY_ADMIN', :uni, :phone, :designation)
                RETURNING user_id
            """),
            {
                "email": admin.email, "name": admin.name, "password_hash": hash_password(admin.password),
                "uni": university_id, "phone": admin.phone, "designation": admin.designation
            }
        )
        user_id = result.fetchone()[0]
        log_activity(db, user["user_id"], "UNIVERSITY_ADMIN_CREATED", {"university_id": university_id, "user_id": user_id})

        row = fetch_one(
            db,
            """
            SELECT user_id, email, name, role, university_id, phone, designation, is_active, last_login, created_at
            FROM users WHERE user_id = :id
            """,
            {"id": user_id}
        )

    return UserResponse(**row)


@router.get("/{university_id}/departments", response_model=List[DepartmentResponse])
async def list_departments(university_id: int, user: dict = Depends(get_current_user)):
    """Any member of the university can read its departments."""
    if user["role"] in (UserRole.sub_user.value, UserRole.student.value):
        if user["university_id"] != university_id:
            raise HTTPException(status_code=404, detail="University not found")
    else:
        require_university_access(user, university_id)

    with get_db_session() as db:
        _get_university(db, university_id)
        rows = _departments(db, university_id)
    return [DepartmentResponse(**r) for r in rows]


@router.post("/{university_id}/departments", response_model=DepartmentResponse, status_code=201)
async def add_department(
    university_id: int,
    department: DepartmentCreate,
    user: dict = Depends(require_roles(UserRole.super_admin, UserRole.university_admin))
):
    require_university_access(user, university_id)
    with get_db_session() as db:
        _get_university(db, university_id)

        if fetch_one(
            db,
            "SELECT department_id FROM departments WHERE university_id = :uni AND LOWER(name) = LOWER(:name)",
            {"uni": university_id, "name": department.name}
        ):
            raise HTTPException(status_code=409, detail="Department already exists")

        result = db.execute(
            text("""
                INSERT INTO departments (university_id, name, code) VALUES (:uni, :name, :code)
                RETURNING department_id
            """),
            {"uni": university_id, "name": department.name, "code": department.code}
        )
        department_id = result.fetchone()[0]

    return DepartmentResponse(department_id=department_id, university_id=university_id, **department.model_dump())


@router.delete("/{university_id}/departments/{department_id}", response_model=MessageResponse)
async def delete_department(
    university_id: int,
    department_id: int,
    user: dict = Depends(require_roles(UserRole.super_admin, UserRole.university_admin))
):
    require_university_access(user, university_id)
    with get_db_session() as db:
        dept = fetch_one(
            db,
            "SELECT department_id FROM departments WHERE department_id = :did AND university_id = :uni",
            {"did": department_id, "uni": university_id}
        )
        if not dept:
            raise HTTPException(status_code=404, detail="Department not found")

        students = fetch_one(db, "SELECT COUNT(*) AS n FROM students WHERE department_id = :did", {"did": department_id})
        if students["n"]:
            raise HTTPException(status_code=409, detail="Department still has students")

        db.execute(text("DELETE FROM departments WHERE department_id = :did"), {"did": department_id})

    return MessageResponse(message="Department deleted")
