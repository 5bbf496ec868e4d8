"""
Student records: CRUD, derived placement status, CSV import/export.

Placement status and highest package are derived from applications and
offers on every read; nothing is stored.
"""

import io
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.orm import Session

from placement_portal.core.auth import hash_password
from placement_portal.core.exceptions import ConflictError, NotFoundError, PortalError
from placement_portal.db.database import fetch_all, fetch_one
from placement_portal.schemas.schemas import StudentCreate

logger = logging.getLogger(__name__)

IMPORT_REQUIRED_COLUMNS = ["Name", "Email", "Roll Number", "Department", "Batch", "CGPA"]
IMPORT_OPTIONAL_COLUMNS = ["Phone", "Gender", "Date of Birth"]
EXPORT_COLUMNS = ["Name", "Email", "Roll Number", "Department", "Batch", "CGPA", "Placement Status"]

STUDENT_SELECT = """
    SELECT s.student_id, s.user_id, s.university_id, s.department_id, d.name AS department,
           s.first_name, s.last_name, s.email, s.roll_number, s.phone, s.gender,
           s.date_of_birth, s.year_of_graduation, s.cgpa, s.skills, s.resume_path,
           s.is_active, s.created_at
    FROM students s
    LEFT JOIN departments d ON s.department_id = d.department_id
"""

STUDENT_UPDATABLE_FIELDS = [
    "first_name", "last_name", "email", "roll_number", "department_id", "year_of_graduation",
    "cgpa", "phone", "gender", "date_of_birth", "is_active",
]


def split_skills(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [s.strip() for s in value.split(",") if s.strip()]


def join_skills(skills: Optional[Iterable[str]]) -> str:
    return ", ".join(s.strip() for s in skills or [] if s.strip())


def derive_placement_status(statuses: List[str]) -> str:
    """Best outcome across a student's applications."""
    if "ACCEPTED" in statuses:
        return "PLACED"
    if "OFFERED" in statuses:
        return "OFFERED"
    if "SHORTLISTED" in statuses or "INTERVIEW" in statuses:
        return "INTERVIEW_PROCESS"
    if "APPLIED" in statuses:
        return "APPLIED"
    if statuses:
        return "REJECTED"
    return "NOT_APPLIED"


def placement_summaries(db: Session, university_id: Optional[int] = None,
                        student_id: Optional[int] = None) -> Dict[int, Tuple[str, Optional[float]]]:
    """student_id -> (placement status, highest accepted CTC)."""
    sql = """
        SELECT a.student_id, a.status, o.ctc, o.status AS offer_status
        FROM applications a
        JOIN students s ON a.student_id = s.student_id
        LEFT JOIN offers o ON o.application_id = a.application_id
        WHERE 1 = 1
    """
    params = {}
    if university_id is not None:
        sql += " AND s.university_id = :uni"
        params["uni"] = university_id
    if student_id is not None:
        sql += " AND a.student_id = :sid"
        params["sid"] = student_id

    statuses: Dict[int, List[str]] = {}
    highest: Dict[int, float] = {}
    for r in fetch_all(db, sql, params):
        statuses.setdefault(r["student_id"], []).append(r["status"])
        if r["offer_status"] == "ACCEPTED" and r["ctc"] is not None:
            highest[r["student_id"]] = max(highest.get(r["student_id"], 0.0), float(r["ctc"]))

    return {sid: (derive_placement_status(s), highest.get(sid)) for sid, s in statuses.items()}


def _to_response(row: dict, summary: Optional[Tuple[str, Optional[float]]]) -> dict:
    row["name"] = f"{row['first_name']} {row['last_name']}"
    row["cgpa"] = float(row["cgpa"])
    row["skills"] = split_skills(row["skills"])
    row["resume_uploaded"] = bool(row.pop("resume_path"))
    row["is_active"] = bool(row["is_active"])
    row["placement_status"], row["highest_package"] = summary or ("NOT_APPLIED", None)
    return row


def list_students(db: Session, university_id: int, filters: dict, page: int = 1, page_size: int = 20) -> dict:
    """Filters: department_id, year_of_graduation, min_cgpa, search, placement_status."""
    sql = STUDENT_SELECT + " WHERE s.university_id = :uni"
    params = {"uni": university_id}

    if filters.get("department_id"):
        sql += " AND s.department_id = :dept"
        params["dept"] = filters["department_id"]
    if filters.get("year_of_graduation"):
        sql += " AND s.year_of_graduation = :year"
        params["year"] = filters["year_of_graduation"]
    if filters.get("min_cgpa") is not None:
        sql += " AND s.cgpa >= :min_cgpa"
        params["min_cgpa"] = filters["min_cgpa"]
    if filters.get("search"):
        sql += """ AND (LOWER(s.first_name || ' ' || s.last_name) LIKE LOWER(:search)
                   OR LOWER(s.email) LIKE LOWER(:search) OR LOWER(s.roll_number) LIKE LOWER(:search))"""
        params["search"] = f"%{filters['search']}%"
    sql += " ORDER BY s.first_name, s.last_name, s.student_id"

    summaries = placement_summaries(db, university_id=university_id)
    students = [_to_response(r, summaries.get(r["student_id"])) for r in fetch_all(db, sql, params)]

    # Placement status is derived, so it's filtered after the query
    wanted = filters.get("placement_status")
    if wanted:
        students = [s for s in students if s["placement_status"] == wanted]

    start = (page - 1) * page_size
    return {
        "students": students[start:start + page_size],
        "total": len(students),
        "page": page,
        "page_size": page_size,
    }


def get_student(db: Session, student_id: int, university_id: Optional[int] = None) -> dict:
    sql = STUDENT_SELECT + " WHERE s.student_id = :sid"
    params = {"sid": student_id}
    if university_id is not None:
        sql += " AND s.university_id = :uni"
        params["uni"] = university_id
    row = fetch_one(db, sql, params)
    if not row:
        raise NotFoundError("Student not found")
    summary = placement_summaries(db, student_id=student_id).get(student_id)
    return _to_response(row, summary)


def _check_department(db: Session, university_id: int, department_id: Optional[int]) -> None:
    if department_id is None:
        return
    if not fetch_one(
        db,
        "SELECT department_id FROM departments WHERE department_id = :did AND university_id = :uni",
        {"did": department_id, "uni": university_id},
    ):
        raise NotFoundError("Department not found")


def _check_duplicates(db: Session, university_id: int, email: Optional[str], roll_number: Optional[str],
                      exclude_student_id: Optional[int] = None) -> None:
    exclude = " AND student_id <> :sid" if exclude_student_id else ""
    params = {"uni": university_id, "sid": exclude_student_id}
    if email and fetch_one(
        db,
        "SELECT student_id FROM students WHERE university_id = :uni AND LOWER(email) = LOWER(:email)" + exclude,
        {**params, "email": email},
    ):
        raise ConflictError("A student with this email already exists")
    if roll_number and fetch_one(
        db,
        "SELECT student_id FROM students WHERE university_id = :uni AND roll_number = :roll" + exclude,
        {**params, "roll": roll_number},
    ):
        raise ConflictError("A student with this roll number already exists")


def create_student(db: Session, university_id: int, data: StudentCreate) -> int:
    """Insert a student; with a password a STUDENT login is created as well."""
    _check_department(db, university_id, data.department_id)
    _check_duplicates(db, university_id, data.email, data.roll_number)

    user_id = None
    if data.password:
        if fetch_one(db, "SELECT user_id FROM users WHERE LOWER(email) = LOWER(:email)", {"email": data.email}):
            raise ConflictError("Email already registered")
        result = db.execute(
            text("""
                INSERT INTO users (email, name, password_hash, role, university_id, phone)
                VALUES (:email, :name, :password_hash, 'STUDENT', :uni, :phone)
                RETURNING user_id
            """),
            {
                "email": data.email,
                "name": f"{data.first_name} {data.last_name}",
                "password_hash": hash_password(data.password),
                "uni": university_id,
                "phone": data.phone,
            }
        )
        user_id = result.fetchone()[0]

    result = db.execute(
        text("""
            INSERT INTO students (user_id, university_id, department_id, first_name, last_name, email,
                roll_number, phone, gender, date_of_birth, year_of_graduation, cgpa, skills)
            VALUES (:user_id, :uni, :department_id, :first_name, :last_name, :email,
                :roll_number, :phone, :gender, :date_of_birth, :year_of_graduation, :cgpa, :skills)
            RETURNING student_id
        """),
        {
            "user_id": user_id,
            "uni": university_id,
            "department_id": data.department_id,
            "first_name": data.first_name,
            "last_name": data.last_name,
            "email": data.email,
            "roll_number": data.roll_number,
            "phone": data.phone,
            "gender": data.gender,
            "date_of_birth": data.date_of_birth,
            "year_of_graduation": data.year_of_graduation,
            "cgpa": data.cgpa,
            "skills": join_skills(data.skills),
        }
    )
    student_id = result.fetchone()[0]
    logger.info(f"Created student {student_id} ({data.roll_number}) in university {university_id}")
    return student_id


def update_student(db: Session, university_id: int, student_id: int, data: dict) -> None:
    """Partial update; `data` holds only the fields that were sent."""
    current = get_student(db, student_id, university_id)
    if "department_id" in data:
        _check_department(db, university_id, data["department_id"])
    _check_duplicates(db, university_id, data.get("email"), data.get("roll_number"), exclude_student_id=student_id)

    updates = []
    params = {"sid": student_id}
    for field in STUDENT_UPDATABLE_FIELDS:
        if field in data:
            updates.append(f"{field} = :{field}")
            params[field] = data[field]
    if data.get("skills") is not None:
        updates.append("skills = :skills")
        params["skills"] = join_skills(data["skills"])

    if not updates:
        return
    db.execute(
        text(f"UPDATE students SET {', '.join(updates)}, updated_at = CURRENT_TIMESTAMP WHERE student_id = :sid"),
        params
    )

    # Keep the login in step with the record
    if current["user_id"] and ({"first_name", "last_name", "email", "phone", "is_active"} & data.keys()):
        db.execute(
            text("""
                UPDATE users SET
                    name = :name,
                    email = COALESCE(:email, email),
                    phone = COALESCE(:phone, phone),
                    is_active = COALESCE(:is_active, is_active),
                    updated_at = CURRENT_TIMESTAMP
                WHERE user_id = :uid
            """),
            {
                "name": f"{data.get('first_name') or current['first_name']} {data.get('last_name') or current['last_name']}",
                "email": data.get("email"),
                "phone": data.get("phone"),
                "is_active": data.get("is_active"),
                "uid": current["user_id"],
            }
        )


def get_student_resume_path(db: Session, student_id: int) -> Optional[str]:
    row = fetch_one(db, "SELECT resume_path FROM students WHERE student_id = :sid", {"sid": student_id})
    return row["resume_path"] if row else None


def set_resume_path(db: Session, student_id: int, path: str) -> None:
    db.execute(
        text("UPDATE students SET resume_path = :path, updated_at = CURRENT_TIMESTAMP WHERE student_id = :sid"),
        {"path": path, "sid": student_id}
    )
    logger.info(f"Resume updated for student {student_id}")


def delete_student(db: Session, university_id: int, student_id: int) -> None:
    student = get_student(db, student_id, university_id)
    db.execute(text("DELETE FROM students WHERE student_id = :sid"), {"sid": student_id})
    if student["user_id"]:
        db.execute(text("DELETE FROM users WHERE user_id = :uid"), {"uid": student["user_id"]})
    logger.info(f"Deleted student {student_id} from university {university_id}")


# ============================================================
# CSV IMPORT / EXPORT
# ============================================================

def _department_lookup(db: Session, university_id: int) -> Dict[str, int]:
    """Lower-cased department name and code -> id."""
    lookup = {}
    for d in fetch_all(db, "SELECT department_id, name, code FROM departments WHERE university_id = :uni",
                       {"uni": university_id}):
        lookup[d["name"].strip().lower()] = d["department_id"]
        if d["code"]:
            lookup[d["code"].strip().lower()] = d["department_id"]
    return lookup


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err["loc"])
    return f"{field}: {err['msg']}" if field else err["msg"]


def import_students(db: Session, university_id: int, content: bytes) -> dict:
    """
    Import students from CSV.

    Each row is validated on its own; valid rows are inserted and the rest
    are reported with their line number (header is line 1).
    """
    try:
        df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise PortalError(f"Could not parse CSV file: {e}", code="INVALID_CSV")

    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in IMPORT_REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise PortalError(f"Missing required columns: {', '.join(missing)}", code="INVALID_CSV")

    departments = _department_lookup(db, university_id)
    seen_emails, seen_rolls = set(), set()
    imported = 0
    errors = []

    for index, row in df.iterrows():
        line = index + 2
        values = {k: str(v).strip() for k, v in row.items()}

        name_parts = values["Name"].split(None, 1)
        if len(name_parts) < 2:
            errors.append({"row": line, "reason": "Name must contain a first and last name"})
            continue

        if not values["Department"]:
            errors.append({"row": line, "reason": "Department is required"})
            continue
        department_id = departments.get(values["Department"].lower())
        if department_id is None:
            errors.append({"row": line, "reason": f"Unknown department '{values['Department']}'"})
            continue

        try:
            student = StudentCreate(
                first_name=name_parts[0],
                last_name=name_parts[1],
                email=values["Email"],
                roll_number=values["Roll Number"],
                department_id=department_id,
                year_of_graduation=values["Batch"],
                cgpa=values["CGPA"],
                phone=values.get("Phone") or None,
                gender=values.get("Gender") or None,
                date_of_birth=values.get("Date of Birth") or None,
            )
        except ValidationError as e:
            errors.append({"row": line, "reason": _first_error(e)})
            continue

        email_key = student.email.lower()
        if email_key in seen_emails or student.roll_number in seen_rolls:
            errors.append({"row": line, "reason": "Duplicate email or roll number in file"})
            continue
        try:
            _check_duplicates(db, university_id, student.email, student.roll_number)
        except ConflictError as e:
            errors.append({"row": line, "reason": e.message})
            continue

        create_student(db, university_id, student)
        seen_emails.add(email_key)
        seen_rolls.add(student.roll_number)
        imported += 1

    logger.info(f"Imported {imported} students into university {university_id}; {len(errors)} rows failed")
    return {"imported": imported, "failed": len(errors), "errors": errors}


def export_students_csv(db: Session, university_id: int) -> str:
    students = list_students(db, university_id, {}, page=1, page_size=1_000_000)["students"]
    df = pd.DataFrame(
        [
            [s["name"], s["email"], s["roll_number"], s["department"] or "", s["year_of_graduation"],
             s["cgpa"], s["placement_status"]]
            for s in students
        ],
        columns=EXPORT_COLUMNS,
    )
    return df.to_csv(index=False)
