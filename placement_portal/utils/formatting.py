"""
Display helpers shared by the dashboard service and the HTML templates.
"""

from datetime import date, datetime
from typing import Optional, Union

DateLike = Union[date, datetime, str, None]

ROLE_DISPLAY_NAMES = {
    "SUPER_ADMIN": "Super Administrator",
    "UNIVERSITY_ADMIN": "University Administrator",
    "SUB_USER": "Sub-User",
    "STUDENT": "Student",
}

JOB_TYPE_LABELS = {
    "FULL_TIME": "Full-time",
    "PART_TIME": "Part-time",
    "INTERNSHIP": "Internship",
    "CONTRACT": "Contract",
}

# Badge CSS class per status value, used by the templates
STATUS_COLORS = {
    "DRAFT": "badge-gray",
    "OPEN": "badge-green",
    "IN_PROGRESS": "badge-blue",
    "COMPLETED": "badge-purple",
    "CANCELLED": "badge-red",
    "APPLIED": "badge-blue",
    "SHORTLISTED": "badge-yellow",
    "INTERVIEW": "badge-indigo",
    "OFFERED": "badge-green",
    "ACCEPTED": "badge-emerald",
    "REJECTED": "badge-red",
    "WITHDRAWN": "badge-gray",
    "SCHEDULED": "badge-yellow",
    "NOT_APPLIED": "badge-gray",
    "INTERVIEW_PROCESS": "badge-yellow",
    "PLACED": "badge-green",
    "PASS": "badge-green",
    "FAIL": "badge-red",
    "ON_HOLD": "badge-yellow",
    "PENDING": "badge-yellow",
}


def as_date(value: DateLike) -> Optional[date]:
    """Normalise DB values: PostgreSQL returns date/datetime, SQLite returns ISO strings."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def as_datetime(value: DateLike) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def format_date(value: DateLike, fmt: str = "%b %d, %Y") -> str:
    try:
        parsed = as_datetime(value)
    except ValueError:
        return "Invalid date"
    if parsed is None:
        return ""
    return parsed.strftime(fmt)


def format_number(number: Optional[float]) -> str:
    if number is None:
        return "-"
    if float(number).is_integer():
        return f"{int(number):,}"
    return f"{float(number):,.2f}"


def format_ctc(value: Optional[float], job_type: Optional[str] = None) -> str:
    """Internship compensation is monthly; everything else is annual."""
    if value is None:
        return "-"
    suffix = "/month" if job_type == "INTERNSHIP" else "/year"
    return f"{format_number(value)}{suffix}"


def ctc_range_label(ctc_min: Optional[float], ctc_max: Optional[float]) -> str:
    """'15-20 LPA' style label used on dashboards."""
    if ctc_min is None and ctc_max is None:
        return "Not disclosed"
    if ctc_min is None or ctc_max is None or float(ctc_min) == float(ctc_max):
        value = ctc_min if ctc_min is not None else ctc_max
        return f"{format_number(float(value))} LPA"
    return f"{format_number(float(ctc_min))}-{format_number(float(ctc_max))} LPA"


def status_label(status: Optional[str]) -> str:
    """IN_PROGRESS -> In Progress"""
    if not status:
        return ""
    return " ".join(word.capitalize() for word in status.split("_"))


def status_color(status: Optional[str]) -> str:
    return STATUS_COLORS.get(status or "", "badge-gray")


def job_type_label(job_type: Optional[str]) -> str:
    return JOB_TYPE_LABELS.get(job_type or "", job_type or "")


def role_display_name(role: Optional[str]) -> str:
    return ROLE_DISPLAY_NAMES.get(role or "", role or "")


def calculate_percentage(value: float, total: float) -> int:
    if not total:
        return 0
    return round((value / total) * 100)


def get_initials(name: str) -> str:
    return "".join(part[0] for part in name.split() if part).upper()[:2]


def truncate_text(text: Optional[str], max_length: int) -> str:
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return f"{text[:max_length]}..."


def register_template_filters(env) -> None:
    """Install the helpers as Jinja2 filters."""
    env.filters["format_date"] = format_date
    env.filters["format_ctc"] = format_ctc
    env.filters["ctc_range"] = lambda job: ctc_range_label(job.get("ctc_range_min"), job.get("ctc_range_max"))
    env.filters["status_label"] = status_label
    env.filters["status_color"] = status_color
    env.filters["job_type_label"] = job_type_label
    env.filters["role_name"] = role_display_name
    env.filters["initials"] = get_initials
    env.filters["truncate_text"] = truncate_text
    env.globals["percentage"] = calculate_percentage
