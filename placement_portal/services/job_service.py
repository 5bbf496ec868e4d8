"""
Job queries and persistence helpers shared by the job, round, application
and page routes.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from placement_portal.core.exceptions import ConflictError, NotFoundError
from placement_portal.db.database import fetch_all, fetch_one
from placement_portal.services.application_service import list_applications

logger = logging.getLogger(__name__)

JOB_COLUMNS = """
    j.job_id, j.title, j.company_id, c.name AS company_name, j.university_id,
    un.name AS university_name, j.job_type, j.location_type, j.location,
    j.ctc_range_min, j.ctc_range_max, j.is_internship, j.internship_duration,
    j.internship_stipend, j.expected_hires, j.apply_by, j.status, j.min_cgpa,
    j.created_at,
    (SELECT COUNT(*) FROM applications a WHERE a.job_id = j.job_id) AS application_count
"""

JOB_FROM = """
    FROM jobs j
    JOIN companies c ON j.company_id = c.company_id
    JOIN universities un ON j.university_id = un.university_id
"""

ROUND_COLUMNS = """
    round_id, job_id, name, description, sequence, status, scheduled_at,
    location, is_online, meeting_link
"""

ROUND_FIELDS = ["name", "description", "sequence", "status", "scheduled_at", "location", "is_online", "meeting_link"]


def _float(value) -> Optional[float]:
    return float(value) if value is not None else None


def normalize_job(r: dict) -> dict:
    """Numeric columns come back as Decimal on PostgreSQL."""
    for key in ("ctc_range_min", "ctc_range_max", "internship_stipend", "min_cgpa"):
        if key in r:
            r[key] = _float(r[key])
    for key in ("is_internship", "is_online"):
        if key in r and r[key] is not None:
            r[key] = bool(r[key])
    return r


def list_jobs(
    db: Session,
    user: dict,
    filters: dict,
    page: int = 1,
    page_size: int = 10,
) -> dict:
    """
    Role-scoped job listing.

    `user` may carry `student_id`, `department_id` and `cgpa` for students,
    in which case rows get `is_eligible` / `has_applied` flags.
    """
    where = " WHERE 1 = 1"
    params = {}
    role = user["role"]

    if role == "SUPER_ADMIN":
        if filters.get("university_id"):
            where += " AND j.university_id = :uni"
            params["uni"] = filters["university_id"]
    elif role == "UNIVERSITY_ADMIN":
        where += " AND j.university_id = :uni"
        params["uni"] = user["university_id"]
    elif role == "SUB_USER":
        where += " AND j.job_id IN (SELECT job_id FROM sub_user_jobs WHERE user_id = :uid)"
        params["uid"] = user["user_id"]
    else:
        where += " AND j.university_id = :uni AND j.status = 'OPEN'"
        params["uni"] = user["university_id"]

    if filters.get("status") and role != "STUDENT":
        where += " AND j.status = :status"
        params["status"] = filters["status"]
    if filters.get("job_type"):
        where += " AND j.job_type = :job_type"
        params["job_type"] = filters["job_type"]
    if filters.get("company_id"):
        where += " AND j.company_id = :company_id"
        params["company_id"] = filters["company_id"]
    if filters.get("min_ctc") is not None:
        where += " AND j.ctc_range_max >= :min_ctc"
        params["min_ctc"] = filters["min_ctc"]
    if filters.get("max_ctc") is not None:
        where += " AND j.ctc_range_min <= :max_ctc"
        params["max_ctc"] = filters["max_ctc"]
    if filters.get("location"):
        where += " AND LOWER(j.location) LIKE LOWER(:location)"
        params["location"] = f"%{filters['location']}%"
    if filters.get("search"):
        where += " AND (LOWER(j.title) LIKE LOWER(:search) OR LOWER(c.name) LIKE LOWER(:search))"
        params["search"] = f"%{filters['search']}%"

    total = fetch_one(db, "SELECT COUNT(*) AS n" + JOB_FROM + where, params)["n"]

    rows = fetch_all(
        db,
        "SELECT " + JOB_COLUMNS + JOB_FROM + where
        + " ORDER BY j.created_at DESC, j.job_id DESC LIMIT :limit OFFSET :offset",
        {**params, "limit": page_size, "offset": (page - 1) * page_size},
    )
    jobs = [normalize_job(r) for r in rows]

    if role == "STUDENT" and jobs:
        applied = {
            r["job_id"] for r in fetch_all(
                db, "SELECT job_id FROM applications WHERE student_id = :sid", {"sid": user["student_id"]}
            )
        }
        for job in jobs:
            job["has_applied"] = job["job_id"] in applied
            job["is_eligible"] = is_eligible(db, job, user.get("department_id"), user.get("cgpa"))

    return {"jobs": jobs, "total": total, "page": page, "page_size": page_size}


def get_job_row(db: Session, job_id: int) -> Optional[dict]:
    row = fetch_one(
        db,
        "SELECT " + JOB_COLUMNS + """,
            j.description, j.requirements, j.responsibilities, j.ctc_breakup,
            j.other_requirements, j.updated_at, j.created_by_id, j.updated_by_id,
            c.industry AS company_industry, c.website AS company_website
        """ + JOB_FROM + " WHERE j.job_id = :jid",
        {"jid": job_id},
    )
    return normalize_job(row) if row else None


def _user_summary(db: Session, user_id: Optional[int]) -> Optional[dict]:
    if not user_id:
        return None
    return fetch_one(db, "SELECT user_id, name, email FROM users WHERE user_id = :id", {"id": user_id})


def get_rounds(db: Session, job_id: int) -> List[dict]:
    rows = fetch_all(
        db,
        "SELECT " + ROUND_COLUMNS + " FROM interview_rounds WHERE job_id = :jid ORDER BY sequence, round_id",
        {"jid": job_id},
    )
    return [normalize_job(r) for r in rows]


def get_round(db: Session, job_id: int, round_id: int) -> dict:
    row = fetch_one(
        db,
        "SELECT " + ROUND_COLUMNS + " FROM interview_rounds WHERE round_id = :rid AND job_id = :jid",
        {"rid": round_id, "jid": job_id},
    )
    if not row:
        raise NotFoundError("Interview round not found for this job")
    return normalize_job(row)


def get_contact_persons(db: Session, job_id: int) -> List[dict]:
    rows = fetch_all(
        db,
        """
        SELECT cc.contact_id, cc.company_id, cc.name, cc.email, cc.phone, cc.designation, cc.is_primary
        FROM job_contacts jc JOIN company_contacts cc ON jc.contact_person_id = cc.contact_id
        WHERE jc.job_id = :jid ORDER BY cc.is_primary DESC, cc.name
        """,
        {"jid": job_id},
    )
    for r in rows:
        r["is_primary"] = bool(r["is_primary"])
    return rows


def get_eligible_departments(db: Session, job_id: int) -> List[dict]:
    return fetch_all(
        db,
        """
        SELECT d.department_id, d.university_id, d.name, d.code
        FROM job_departments jd JOIN departments d ON jd.department_id = d.department_id
        WHERE jd.job_id = :jid ORDER BY d.name
        """,
        {"jid": job_id},
    )


def get_job_detail(db: Session, job_id: int, include_applications: bool = True) -> dict:
    """Job with company, university, creator/updater, rounds, POCs, eligibility and applications."""
    job = get_job_row(db, job_id)
    if not job:
        raise NotFoundError("Job not found")

    job["created_by"] = _user_summary(db, job.pop("created_by_id"))
    job["updated_by"] = _user_summary(db, job.pop("updated_by_id"))
    job["interview_rounds"] = get_rounds(db, job_id)
    job["contact_persons"] = get_contact_persons(db, job_id)
    job["eligible_departments"] = get_eligible_departments(db, job_id)
    job["applications"] = list_applications(db, job_id=job_id) if include_applications else []
    return job


def is_eligible(db: Session, job: dict, department_id: Optional[int], cgpa: Optional[float]) -> bool:
    """Department must be listed (when the job lists any) and CGPA must meet the minimum."""
    if cgpa is None or float(cgpa) < float(job.get("min_cgpa") or 0):
        return False
    departments = {d["department_id"] for d in get_eligible_departments(db, job["job_id"])}
    if departments and department_id not in departments:
        return False
    return True


def validate_company_for_university(db: Session, company_id: int) -> dict:
    company = fetch_one(
        db, "SELECT company_id, name FROM companies WHERE company_id = :cid", {"cid": company_id}
    )
    if not company:
        raise NotFoundError("Company not found")
    return company


def link_company_to_university(db: Session, company_id: int, university_id: int) -> None:
    db.execute(
        text("""
            INSERT INTO company_universities (company_id, university_id)
            VALUES (:cid, :uni) ON CONFLICT DO NOTHING
        """),
        {"cid": company_id, "uni": university_id}
    )


def set_job_departments(db: Session, job_id: int, university_id: int, department_ids: Iterable[int]) -> None:
    """Replace the eligibility list; departments must belong to the job's university."""
    department_ids = list(dict.fromkeys(department_ids))
    if department_ids:
        known = {
            r["department_id"] for r in fetch_all(
                db, "SELECT department_id FROM departments WHERE university_id = :uni", {"uni": university_id}
            )
        }
        unknown = [d for d in department_ids if d not in known]
        if unknown:
            raise NotFoundError("Department not found", details={"department_ids": unknown})

    db.execute(text("DELETE FROM job_departments WHERE job_id = :jid"), {"jid": job_id})
    for dept_id in department_ids:
        db.execute(
            text("INSERT INTO job_departments (job_id, department_id) VALUES (:jid, :did)"),
            {"jid": job_id, "did": dept_id}
        )


def set_job_contacts(db: Session, job_id: int, company_id: int, contact_ids: Iterable[int]) -> None:
    """
    Replace the job's points of contact.

    Contacts not in the new list are removed, new ones are added, the rest
    are left untouched. Every contact must belong to the job's company.
    """
    contact_ids = list(dict.fromkeys(contact_ids))
    if contact_ids:
        known = {
            r["contact_id"] for r in fetch_all(
                db, "SELECT contact_id FROM company_contacts WHERE company_id = :cid", {"cid": company_id}
            )
        }
        unknown = [c for c in contact_ids if c not in known]
        if unknown:
            raise NotFoundError("Contact person not found for this company", details={"contact_ids": unknown})

    existing = {
        r["contact_person_id"] for r in fetch_all(
            db, "SELECT contact_person_id FROM job_contacts WHERE job_id = :jid", {"jid": job_id}
        )
    }
    for contact_id in existing - set(contact_ids):
        db.execute(
            text("DELETE FROM job_contacts WHERE job_id = :jid AND contact_person_id = :cid"),
            {"jid": job_id, "cid": contact_id}
        )
    for contact_id in contact_ids:
        if contact_id not in existing:
            db.execute(
                text("INSERT INTO job_contacts (job_id, contact_person_id) VALUES (:jid, :cid)"),
                {"jid": job_id, "cid": contact_id}
            )


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


def ensure_sequence_free(db: Session, job_id: int, sequence: int, exclude_round_id: Optional[int] = None) -> None:
    sql = "SELECT round_id FROM interview_rounds WHERE job_id = :jid AND sequence = :seq"
    params = {"jid": job_id, "seq": sequence}
    if exclude_round_id is not None:
        sql += " AND round_id <> :rid"
        params["rid"] = exclude_round_id
    if fetch_one(db, sql, params):
        raise ConflictError(f"Another round already uses sequence {sequence}")


def create_round(db: Session, job_id: int, data: dict) -> int:
    result = db.execute(
        text("""
            INSERT INTO interview_rounds (job_id, name, description, sequence, status, scheduled_at,
                location, is_online, meeting_link)
            VALUES (:jid, :name, :description, :sequence, :status, :scheduled_at,
                :location, :is_online, :meeting_link)
            RETURNING round_id
        """),
        {
            "jid": job_id,
            "name": data["name"],
            "description": data.get("description") or "",
            "sequence": data["sequence"],
            "status": _enum_value(data.get("status")) or "SCHEDULED",
            "scheduled_at": data.get("scheduled_at"),
            "location": data.get("location"),
            "is_online": bool(data.get("is_online")),
            "meeting_link": data.get("meeting_link"),
        }
    )
    return result.fetchone()[0]


def update_round(db: Session, round_id: int, data: dict) -> None:
    """Apply the fields present in `data` to a round; None clears nullable ones."""
    updates = []
    params = {"rid": round_id}
    for field in ROUND_FIELDS:
        if field in data:
            updates.append(f"{field} = :{field}")
            params[field] = _enum_value(data[field])
    if updates:
        db.execute(
            text(f"UPDATE interview_rounds SET {', '.join(updates)}, updated_at = CURRENT_TIMESTAMP WHERE round_id = :rid"),
            params
        )


def delete_round(db: Session, round_id: int) -> None:
    db.execute(text("DELETE FROM interview_rounds WHERE round_id = :rid"), {"rid": round_id})


def replace_rounds(db: Session, job_id: int, rounds: List[dict]) -> None:
    """
    Bulk replace a job's rounds.

    Rounds without an id are created, rounds whose id belongs to the job are
    updated, stored rounds missing from the payload are deleted. Ids that
    don't belong to the job are ignored.
    """
    existing_ids = {r["round_id"] for r in fetch_all(
        db, "SELECT round_id FROM interview_rounds WHERE job_id = :jid", {"jid": job_id}
    )}
    kept_ids = {r["round_id"] for r in rounds if r.get("round_id")}

    for round_id in existing_ids - kept_ids:
        delete_round(db, round_id)

    for data in rounds:
        round_id = data.get("round_id")
        if not round_id:
            create_round(db, job_id, data)
        elif round_id in existing_ids:
            update_round(db, round_id, data)


def apply_round_changes(db: Session, job_id: int, changes: List[dict]) -> None:
    """Per-round create/update/delete actions sent with a job update."""
    existing_ids = {r["round_id"] for r in fetch_all(
        db, "SELECT round_id FROM interview_rounds WHERE job_id = :jid", {"jid": job_id}
    )}
    for change in changes:
        action = _enum_value(change.get("action"))
        round_id = change.get("round_id")
        if action == "create" or not round_id:
            ensure_sequence_free(db, job_id, change["sequence"])
            create_round(db, job_id, change)
        elif round_id not in existing_ids:
            raise NotFoundError("Interview round not found for this job", details={"round_id": round_id})
        elif action == "delete":
            delete_round(db, round_id)
        else:
            if change.get("sequence") is not None:
                ensure_sequence_free(db, job_id, change["sequence"], exclude_round_id=round_id)
            update_round(db, round_id, change)
