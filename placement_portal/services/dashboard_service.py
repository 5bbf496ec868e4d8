"""
Dashboard aggregates, one builder per role.

All figures are computed from stored rows. Month grouping happens in Python
so the same queries run on PostgreSQL and SQLite.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Tuple

from sqlalchemy.orm import Session

from placement_portal.db.database import fetch_all, fetch_one
from placement_portal.services.application_service import list_applications, upcoming_interviews
from placement_portal.services.job_service import list_jobs
from placement_portal.services.student_service import placement_summaries
from placement_portal.utils.formatting import as_date, ctc_range_label, job_type_label, status_label

logger = logging.getLogger(__name__)

TREND_MONTHS = 6

# (label, lower bound inclusive, upper bound exclusive) in LPA
CTC_BUCKETS = [
    ("0-5 LPA", 0, 5),
    ("5-10 LPA", 5, 10),
    ("10-15 LPA", 10, 15),
    ("15-20 LPA", 15, 20),
    (">20 LPA", 20, None),
]

# An application counts as interviewed once it has a result row or moved past INTERVIEW
INTERVIEWED_CONDITION = """
    (a.status IN ('INTERVIEW', 'OFFERED', 'ACCEPTED')
     OR EXISTS (SELECT 1 FROM interview_results r WHERE r.application_id = a.application_id))
"""


def _count(db: Session, sql: str, params: dict = None) -> int:
    return fetch_one(db, sql, params or {})["n"]


def last_months(n: int = TREND_MONTHS, today: date = None) -> List[Tuple[int, int]]:
    """(year, month) pairs for the last n months, oldest first, current month included."""
    today = today or date.today()
    year, month = today.year, today.month
    months = []
    for _ in range(n):
        months.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


def _month_name(year: int, month: int) -> str:
    return date(year, month, 1).strftime("%b %Y")


def _trend_window() -> Tuple[List[Tuple[int, int]], date]:
    months = last_months()
    first_year, first_month = months[0]
    return months, date(first_year, first_month, 1)


def ctc_bucket(ctc: float) -> str:
    for label, low, high in CTC_BUCKETS:
        if ctc >= low and (high is None or ctc < high):
            return label
    return CTC_BUCKETS[0][0]


# ============================================================
# SUPER ADMIN
# ============================================================

def super_admin_dashboard(db: Session) -> dict:
    stats = {
        "universities": _count(db, "SELECT COUNT(*) AS n FROM universities WHERE is_active = :active", {"active": True}),
        "jobs": _count(db, "SELECT COUNT(*) AS n FROM jobs"),
        "students": _count(db, "SELECT COUNT(*) AS n FROM students"),
        "users": _count(db, "SELECT COUNT(*) AS n FROM users"),
    }

    university_performance = fetch_all(
        db,
        f"""
        SELECT un.name,
               SUM(CASE WHEN a.status = 'ACCEPTED' THEN 1 ELSE 0 END) AS placements,
               SUM(CASE WHEN a.application_id IS NOT NULL AND {INTERVIEWED_CONDITION} THEN 1 ELSE 0 END) AS interviews,
               SUM(CASE WHEN a.status IN ('OFFERED', 'ACCEPTED') THEN 1 ELSE 0 END) AS offers
        FROM universities un
        LEFT JOIN jobs j ON j.university_id = un.university_id
        LEFT JOIN applications a ON a.job_id = j.job_id
        GROUP BY un.university_id, un.name
        ORDER BY un.name
        """,
    )
    for row in university_performance:
        for key in ("placements", "interviews", "offers"):
            row[key] = int(row[key] or 0)

    months, start = _trend_window()
    accepted = fetch_all(
        db,
        "SELECT offer_date, ctc FROM offers WHERE status = 'ACCEPTED' AND offer_date >= :start",
        {"start": start},
    )
    per_month = {m: 0 for m in months}
    for offer in accepted:
        d = as_date(offer["offer_date"])
        if (d.year, d.month) in per_month:
            per_month[(d.year, d.month)] += 1
    placement_trends = [{"month": _month_name(*m), "placements": per_month[m]} for m in months]

    distribution = {label: 0 for label, _, _ in CTC_BUCKETS}
    for offer in fetch_all(db, "SELECT ctc FROM offers WHERE status = 'ACCEPTED'"):
        distribution[ctc_bucket(float(offer["ctc"]))] += 1
    ctc_distribution = [{"name": label, "value": value} for label, value in distribution.items()]

    return {
        "role": "SUPER_ADMIN",
        "stats": stats,
        "university_performance": university_performance,
        "placement_trends": placement_trends,
        "ctc_distribution": ctc_distribution,
    }


# ============================================================
# UNIVERSITY ADMIN
# ============================================================

def university_admin_dashboard(db: Session, university_id: int) -> dict:
    params = {"uni": university_id}
    stats = {
        "jobs": _count(db, "SELECT COUNT(*) AS n FROM jobs WHERE university_id = :uni", params),
        "open_jobs": _count(db, "SELECT COUNT(*) AS n FROM jobs WHERE university_id = :uni AND status = 'OPEN'", params),
        "placements": _count(
            db,
            """
            SELECT COUNT(*) AS n FROM applications a JOIN jobs j ON a.job_id = j.job_id
            WHERE j.university_id = :uni AND a.status = 'ACCEPTED'
            """,
            params,
        ),
        "companies": _count(db, "SELECT COUNT(*) AS n FROM company_universities WHERE university_id = :uni", params),
    }

    placement_stats = fetch_all(
        db,
        f"""
        SELECT d.name,
               COUNT(a.application_id) AS applied,
               SUM(CASE WHEN a.application_id IS NOT NULL AND {INTERVIEWED_CONDITION} THEN 1 ELSE 0 END) AS interviewed,
               SUM(CASE WHEN a.status = 'ACCEPTED' THEN 1 ELSE 0 END) AS placed
        FROM departments d
        LEFT JOIN students s ON s.department_id = d.department_id
        LEFT JOIN applications a ON a.student_id = s.student_id
        WHERE d.university_id = :uni
        GROUP BY d.department_id, d.name
        ORDER BY d.name
        """,
        params,
    )
    for row in placement_stats:
        for key in ("applied", "interviewed", "placed"):
            row[key] = int(row[key] or 0)

    company_participation = fetch_all(
        db,
        """
        SELECT c.name, COUNT(a.application_id) AS students
        FROM company_universities cu
        JOIN companies c ON cu.company_id = c.company_id
        LEFT JOIN jobs j ON j.company_id = c.company_id AND j.university_id = cu.university_id
        LEFT JOIN applications a ON a.job_id = j.job_id AND a.status = 'ACCEPTED'
        WHERE cu.university_id = :uni
        GROUP BY c.company_id, c.name
        ORDER BY students DESC, c.name
        """,
        params,
    )

    months, start = _trend_window()
    offers = fetch_all(
        db,
        """
        SELECT o.offer_date, o.ctc FROM offers o
        JOIN applications a ON o.application_id = a.application_id
        JOIN jobs j ON a.job_id = j.job_id
        WHERE j.university_id = :uni AND o.status <> 'REJECTED' AND o.offer_date >= :start
        """,
        {**params, "start": start},
    )
    ctc_by_month = {m: [] for m in months}
    for offer in offers:
        d = as_date(offer["offer_date"])
        if (d.year, d.month) in ctc_by_month:
            ctc_by_month[(d.year, d.month)].append(float(offer["ctc"]))
    ctc_trends = [
        {"month": _month_name(*m), "avg_ctc": round(sum(v) / len(v), 2) if v else 0.0}
        for m, v in ctc_by_month.items()
    ]

    job_type_distribution = [
        {"name": job_type_label(r["job_type"]), "value": r["n"]}
        for r in fetch_all(
            db,
            "SELECT job_type, COUNT(*) AS n FROM jobs WHERE university_id = :uni GROUP BY job_type ORDER BY job_type",
            params,
        )
    ]

    recent = list_jobs(db, {"role": "UNIVERSITY_ADMIN", "university_id": university_id}, {}, page=1, page_size=5)
    recent_jobs = [
        {
            "job_id": j["job_id"],
            "title": j["title"],
            "company": j["company_name"],
            "status": j["status"],
            "ctc_range": ctc_range_label(j["ctc_range_min"], j["ctc_range_max"]),
            "applications": j["application_count"],
            "created_at": j["created_at"],
        }
        for j in recent["jobs"]
    ]

    return {
        "role": "UNIVERSITY_ADMIN",
        "stats": stats,
        "placement_stats": placement_stats,
        "company_participation": company_participation,
        "ctc_trends": ctc_trends,
        "job_type_distribution": job_type_distribution,
        "recent_jobs": recent_jobs,
    }


# ============================================================
# SUB-USER
# ============================================================

ASSIGNED = "j.job_id IN (SELECT job_id FROM sub_user_jobs WHERE user_id = :uid)"


def sub_user_dashboard(db: Session, user_id: int) -> dict:
    params = {"uid": user_id}
    today = datetime.combine(date.today(), datetime.min.time())

    stats = {
        "assigned_jobs": _count(db, "SELECT COUNT(*) AS n FROM sub_user_jobs WHERE user_id = :uid", params),
        "today_interviews": _count(
            db,
            f"""
            SELECT COUNT(*) AS n FROM interview_results r
            JOIN applications a ON r.application_id = a.application_id
            JOIN jobs j ON a.job_id = j.job_id
            WHERE r.scheduled_at >= :start AND r.scheduled_at < :end AND {ASSIGNED}
            """,
            {**params, "start": today, "end": today + timedelta(days=1)},
        ),
        "pending_tasks": _count(
            db,
            f"SELECT COUNT(*) AS n FROM applications a JOIN jobs j ON a.job_id = j.job_id WHERE a.status = 'APPLIED' AND {ASSIGNED}",
            params,
        ),
        "selections": _count(
            db,
            f"""
            SELECT COUNT(*) AS n FROM applications a JOIN jobs j ON a.job_id = j.job_id
            WHERE a.status IN ('OFFERED', 'ACCEPTED') AND {ASSIGNED}
            """,
            params,
        ),
    }

    assigned_jobs = fetch_all(
        db,
        """
        SELECT j.job_id, j.title, c.name AS company, j.status, j.location, j.apply_by,
               sj.can_edit_job_details, sj.can_manage_students, sj.can_schedule_interviews,
               (SELECT COUNT(*) FROM applications a WHERE a.job_id = j.job_id) AS applications
        FROM sub_user_jobs sj
        JOIN jobs j ON sj.job_id = j.job_id
        JOIN companies c ON j.company_id = c.company_id
        WHERE sj.user_id = :uid
        ORDER BY j.created_at DESC, j.job_id DESC
        """,
        params,
    )
    for job in assigned_jobs:
        for flag in ("can_edit_job_details", "can_manage_students", "can_schedule_interviews"):
            job[flag] = bool(job[flag])

    application_stats = [
        {"name": status_label(r["status"]), "value": r["n"]}
        for r in fetch_all(
            db,
            f"""
            SELECT a.status, COUNT(*) AS n FROM applications a JOIN jobs j ON a.job_id = j.job_id
            WHERE {ASSIGNED} GROUP BY a.status ORDER BY a.status
            """,
            params,
        )
    ]

    return {
        "role": "SUB_USER",
        "stats": stats,
        "assigned_jobs": assigned_jobs,
        "upcoming_interviews": upcoming_interviews(db, ASSIGNED, params),
        "application_stats": application_stats,
    }


# ============================================================
# STUDENT
# ============================================================

def student_dashboard(db: Session, student: dict) -> dict:
    applications = list_applications(db, student_id=student["student_id"])
    statuses = [a["status"] for a in applications]

    open_jobs = list_jobs(db, student, {}, page=1, page_size=1_000_000)["jobs"]
    eligible_jobs = [j for j in open_jobs if j["is_eligible"] and not j["has_applied"]]

    summary = placement_summaries(db, student_id=student["student_id"]).get(student["student_id"])
    placement_status, highest_package = summary or ("NOT_APPLIED", None)

    return {
        "role": "STUDENT",
        "stats": {
            "applications": len(applications),
            "interviews": sum(1 for s in statuses if s in ("SHORTLISTED", "INTERVIEW")),
            "offers": sum(1 for s in statuses if s in ("OFFERED", "ACCEPTED")),
            "eligible_jobs": len(eligible_jobs),
        },
        "placement_status": placement_status,
        "highest_package": highest_package,
        "recent_applications": applications[:5],
        "upcoming_interviews": upcoming_interviews(db, "a.student_id = :sid", {"sid": student["student_id"]}),
    }
