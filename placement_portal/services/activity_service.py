"""
Activity log - audit trail of mutations (job updates, deletions, round edits, ...).

Entries are written in the caller's session so they commit or roll back
together with the change they describe.
"""

import json
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from placement_portal.db.database import fetch_all, fetch_one

logger = logging.getLogger(__name__)


def log_activity(db: Session, user_id: Optional[int], action: str, details: Optional[dict] = None) -> None:
    db.execute(
        text("INSERT INTO activity_logs (user_id, action, details) VALUES (:uid, :action, :details)"),
        {"uid": user_id, "action": action, "details": json.dumps(details or {}, default=str)}
    )
    logger.info(f"{action} by user {user_id}: {details or {}}")


def list_activity(
    db: Session,
    university_id: Optional[int] = None,
    action: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    """Logs newest first. `university_id` limits to actions by that university's users."""
    where = " WHERE 1 = 1"
    params = {}
    if university_id is not None:
        where += " AND u.university_id = :uni"
        params["uni"] = university_id
    if action:
        where += " AND l.action = :action"
        params["action"] = action

    base = " FROM activity_logs l LEFT JOIN users u ON l.user_id = u.user_id" + where
    total = fetch_one(db, "SELECT COUNT(*) AS n" + base, params)["n"]

    rows = fetch_all(
        db,
        "SELECT l.log_id, l.user_id, u.name AS user_name, l.action, l.details, l.created_at"
        + base + " ORDER BY l.log_id DESC LIMIT :limit OFFSET :offset",
        {**params, "limit": page_size, "offset": (page - 1) * page_size},
    )
    for r in rows:
        r["details"] = json.loads(r["details"]) if r["details"] else None
    return {"logs": rows, "total": total, "page": page, "page_size": page_size}
