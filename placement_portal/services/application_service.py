"""
Applications, interview results and offers.

Status changes are plain field updates driven by user actions; no
transition table is enforced.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.orm import Session

from placement_portal.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, PortalError
from placement_portal.db.database import fetch_all, fetch_one, rows_to_dicts
from placement_portal.utils.formatting import as_date

logger = logging.getLogger(__name__)

CLOSED_STATUSES = ("ACCEPTED", "REJECTED", "WITHDRAWN")
# Statuses that move to INTERVIEW once feedback is recorded
PRE_INTERVIEW_STATUSES = ("APPLIED", "SHORTLISTED")

APPLICATION_SELECT = """
    SELECT a.application_id, a.job_id, j.title AS job_title, c.name AS company_name,
           a.student_id, s.first_name || ' ' || s.last_name AS student_name,
           s.roll_number, d.name AS department, a.status, a.cover_letter,
           a.rejection_reason, a.applied_at, a.updated_at
    FROM applications a
    JOIN jobs j ON a.job_id = j.job_id
    JOIN companies c ON j.company_id = c.company_id
    JOIN students s ON a.student_id = s.student_id
    LEFT JOIN departments d ON s.department_id = d.department_id
"""


def _offer_dict(row: Optional[dict]) -> Optional[dict]:
    if row:
        row["ctc"] = float(row["ctc"])
    return row


def _rows_for_applications(db: Session, sql: str, application_ids: List[int]) -> List[dict]:
    statement = text(sql).bindparams(bindparam("ids", expanding=True))
    return rows_to_dicts(db.execute(statement, {"ids": list(application_ids)}))


def get_interviews(db: Session, application_ids: List[int]) -> dict:
    """Interview results keyed by application id."""
    by_app = {aid: [] for aid in application_ids}
    if not application_ids:
        return by_app
    rows = _rows_for_applications(
        db,
        """
        SELECT r.result_id, r.application_id, r.interview_round_id AS round_id,
               ir.name AS round_name, ir.sequence, r.status, r.scheduled_at,
               r.feedback, r.rating, r.interviewer_id, u.name AS interviewer_name
        FROM interview_results r
        JOIN interview_rounds ir ON r.interview_round_id = ir.round_id
        LEFT JOIN users u ON r.interviewer_id = u.user_id
        WHERE r.application_id IN :ids
        ORDER BY ir.sequence
        """,
        application_ids,
    )
    for r in rows:
        by_app[r["application_id"]].append(r)
    return by_app


def get_offers(db: Session, application_ids: List[int]) -> dict:
    if not application_ids:
        return {}
    rows = _rows_for_applications(
        db,
        """
        SELECT offer_id, application_id, ctc, offer_date, joining_date, offer_letter_url, status
        FROM offers WHERE application_id IN :ids
        """,
        application_ids,
    )
    return {r["application_id"]: _offer_dict(r) for r in rows}


def list_applications(
    db: Session,
    job_id: Optional[int] = None,
    student_id: Optional[int] = None,
    status: Optional[str] = None,
) -> List[dict]:
    """Applications with their interview results and offer, newest first."""
    sql = APPLICATION_SELECT + " WHERE 1 = 1"
    params = {}
    if job_id is not None:
        sql += " AND a.job_id = :jid"
        params["jid"] = job_id
    if student_id is not None:
        sql += " AND a.student_id = :sid"
        params["sid"] = student_id
    if status:
        sql += " AND a.status = :status"
        params["status"] = status
    sql += " ORDER BY a.applied_at DESC, a.application_id DESC"

    apps = fetch_all(db, sql, params)
    ids = [a["application_id"] for a in apps]
    interviews = get_interviews(db, ids)
    offers = get_offers(db, ids)
    for a in apps:
        a["interviews"] = interviews.get(a["application_id"], [])
        a["offer"] = offers.get(a["application_id"])
    return apps


def get_application(db: Session, application_id: int) -> dict:
    apps = fetch_all(db, APPLICATION_SELECT + " WHERE a.application_id = :aid", {"aid": application_id})
    if not apps:
        raise NotFoundError("Application not found")
    app = apps[0]
    app["interviews"] = get_interviews(db, [application_id])[application_id]
    app["offer"] = get_offers(db, [application_id]).get(application_id)
    return app


def apply_to_job(db: Session, student: dict, job_id: int, cover_letter: Optional[str] = None) -> int:
    """
    Student applies to a job.

    The job must be OPEN, belong to the student's university, still accept
    applications and the student must be eligible.
    """
    from placement_portal.services.job_service import is_eligible

    job = fetch_one(
        db,
        "SELECT job_id, title, university_id, status, apply_by, min_cgpa FROM jobs WHERE job_id = :jid",
        {"jid": job_id},
    )
    if not job or job["university_id"] != student["university_id"]:
        raise NotFoundError("Job not found")
    if job["status"] != "OPEN":
        raise PortalError("Job is not open for applications", code="JOB_CLOSED")
    apply_by = as_date(job["apply_by"])
    if apply_by and apply_by < date.today():
        raise PortalError("Application deadline has passed", code="DEADLINE_PASSED")
    if not is_eligible(db, job, student.get("department_id"), student.get("cgpa")):
        raise PermissionDeniedError("You are not eligible for this job")

    if fetch_one(
        db,
        "SELECT application_id FROM applications WHERE job_id = :jid AND student_id = :sid",
        {"jid": job_id, "sid": student["student_id"]},
    ):
        raise ConflictError("Already applied to this job")

    resume = fetch_one(db, "SELECT resume_path FROM students WHERE student_id = :sid", {"sid": student["student_id"]})
    result = db.execute(
        text("""
            INSERT INTO applications (job_id, student_id, status, cover_letter, resume_path)
            VALUES (:jid, :sid, 'APPLIED', :cover, :resume)
            RETURNING application_id
        """),
        {"jid": job_id, "sid": student["student_id"], "cover": cover_letter, "resume": resume["resume_path"]}
    )
    application_id = result.fetchone()[0]
    logger.info(f"Student {student['student_id']} applied to job {job_id} (application {application_id})")
    return application_id


def set_status(db: Session, application_id: int, status: str, rejection_reason: Optional[str] = None) -> None:
    db.execute(
        text("""
            UPDATE applications
            SET status = :status,
                rejection_reason = CASE WHEN :status = 'REJECTED' THEN :reason ELSE rejection_reason END,
                updated_at = CURRENT_TIMESTAMP
            WHERE application_id = :aid
        """),
        {"status": status, "reason": rejection_reason, "aid": application_id}
    )
    # A closed-out application can't keep an offer open
    if status in ("REJECTED", "WITHDRAWN"):
        db.execute(
            text("""
                UPDATE offers SET status = 'REJECTED', updated_at = CURRENT_TIMESTAMP
                WHERE application_id = :aid AND status = 'PENDING'
            """),
            {"aid": application_id}
        )


def withdraw(db: Session, student: dict, application_id: int) -> None:
    app = fetch_one(
        db,
        "SELECT application_id, status FROM applications WHERE application_id = :aid AND student_id = :sid",
        {"aid": application_id, "sid": student["student_id"]},
    )
    if not app:
        raise NotFoundError("Application not found")
    if app["status"] in CLOSED_STATUSES:
        raise PortalError(f"Cannot withdraw an application in {app['status']} status", code="INVALID_STATUS")
    set_status(db, application_id, "WITHDRAWN")


def upsert_interview_result(
    db: Session,
    application: dict,
    round_id: int,
    data: dict,
    interviewer_id: int,
) -> dict:
    """Schedule a round and/or record feedback for one application."""
    round_row = fetch_one(
        db,
        "SELECT round_id FROM interview_rounds WHERE round_id = :rid AND job_id = :jid",
        {"rid": round_id, "jid": application["job_id"]},
    )
    if not round_row:
        raise NotFoundError("Interview round not found for this job")

    params = {
        "aid": application["application_id"],
        "rid": round_id,
        "uid": interviewer_id,
        "scheduled_at": data.get("scheduled_at"),
        "status": data["status"].value if data.get("status") else None,
        "feedback": data.get("feedback"),
        "rating": data.get("rating"),
    }
    existing = fetch_one(
        db,
        "SELECT result_id FROM interview_results WHERE application_id = :aid AND interview_round_id = :rid",
        params,
    )
    if existing:
        db.execute(
            text("""
                UPDATE interview_results
                SET scheduled_at = COALESCE(:scheduled_at, scheduled_at),
                    status = COALESCE(:status, status),
                    feedback = COALESCE(:feedback, feedback),
                    rating = COALESCE(:rating, rating),
                    interviewer_id = :uid,
                    updated_at = CURRENT_TIMESTAMP
                WHERE result_id = :result_id
            """),
            {**params, "result_id": existing["result_id"]}
        )
        result_id = existing["result_id"]
    else:
        result = db.execute(
            text("""
                INSERT INTO interview_results (application_id, interview_round_id, status, scheduled_at,
                    feedback, rating, interviewer_id)
                VALUES (:aid, :rid, COALESCE(:status, 'PENDING'), :scheduled_at, :feedback, :rating, :uid)
                RETURNING result_id
            """),
            params
        )
        result_id = result.fetchone()[0]

    has_feedback = any(data.get(k) is not None for k in ("status", "feedback", "rating"))
    if has_feedback and application["status"] in PRE_INTERVIEW_STATUSES:
        set_status(db, application["application_id"], "INTERVIEW")

    logger.info(f"Interview result {result_id} saved for application {application['application_id']}")
    return next(
        r for r in get_interviews(db, [application["application_id"]])[application["application_id"]]
        if r["result_id"] == result_id
    )


def make_offer(db: Session, application_id: int, data: dict) -> dict:
    """Create or replace the offer for an application; the application becomes OFFERED."""
    params = {
        "aid": application_id,
        "ctc": data["ctc"],
        "offer_date": data.get("offer_date") or date.today(),
        "joining_date": data.get("joining_date"),
        "url": data.get("offer_letter_url"),
    }
    if fetch_one(db, "SELECT offer_id FROM offers WHERE application_id = :aid", params):
        db.execute(
            text("""
                UPDATE offers SET ctc = :ctc, offer_date = :offer_date, joining_date = :joining_date,
                    offer_letter_url = :url, status = 'PENDING', updated_at = CURRENT_TIMESTAMP
                WHERE application_id = :aid
            """),
            params
        )
    else:
        db.execute(
            text("""
                INSERT INTO offers (application_id, ctc, offer_date, joining_date, offer_letter_url, status)
                VALUES (:aid, :ctc, :offer_date, :joining_date, :url, 'PENDING')
            """),
            params
        )
    set_status(db, application_id, "OFFERED")
    return get_offers(db, [application_id])[application_id]


def respond_to_offer(db: Session, student: dict, application_id: int, accept: bool) -> dict:
    """Accept: offer and application ACCEPTED. Decline: offer REJECTED, application WITHDRAWN."""
    app = fetch_one(
        db,
        "SELECT application_id, status FROM applications WHERE application_id = :aid AND student_id = :sid",
        {"aid": application_id, "sid": student["student_id"]},
    )
    if not app:
        raise NotFoundError("Application not found")
    offer = fetch_one(db, "SELECT offer_id, status FROM offers WHERE application_id = :aid", {"aid": application_id})
    if not offer:
        raise NotFoundError("No offer for this application")
    if offer["status"] != "PENDING":
        raise PortalError("Offer has already been answered", code="OFFER_ANSWERED")
    if app["status"] != "OFFERED":
        raise PortalError(f"Cannot respond to an offer on an application in {app['status']} status",
                          code="INVALID_STATUS")

    offer_status, app_status = ("ACCEPTED", "ACCEPTED") if accept else ("REJECTED", "WITHDRAWN")
    db.execute(
        text("UPDATE offers SET status = :status, updated_at = CURRENT_TIMESTAMP WHERE offer_id = :oid"),
        {"status": offer_status, "oid": offer["offer_id"]}
    )
    set_status(db, application_id, app_status)
    logger.info(f"Student {student['student_id']} {'accepted' if accept else 'declined'} offer {offer['offer_id']}")
    return get_offers(db, [application_id])[application_id]


def upcoming_interviews(db: Session, where: str, params: dict, limit: int = 5) -> List[dict]:
    """Scheduled results from now on; `where` narrows by job or student."""
    return fetch_all(
        db,
        f"""
        SELECT r.result_id, r.application_id, r.scheduled_at, ir.name AS round_name,
               j.job_id, j.title AS job_title, c.name AS company_name,
               s.first_name || ' ' || s.last_name AS student_name
        FROM interview_results r
        JOIN interview_rounds ir ON r.interview_round_id = ir.round_id
        JOIN applications a ON r.application_id = a.application_id
        JOIN jobs j ON a.job_id = j.job_id
        JOIN companies c ON j.company_id = c.company_id
        JOIN students s ON a.student_id = s.student_id
        WHERE r.scheduled_at >= :now AND {where}
        ORDER BY r.scheduled_at
        LIMIT :limit
        """,
        {**params, "now": datetime.now(), "limit": limit},
    )
