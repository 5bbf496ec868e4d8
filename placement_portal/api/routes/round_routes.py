"""
Interview Round Routes

GET /jobs/{job_id}/rounds - Rounds of a job, ordered by sequence
POST /jobs/{job_id}/rounds - Replace the job's rounds
PATCH /jobs/{job_id}/rounds/{round_id} - Update one round (e.g. mark COMPLETED)
DELETE /jobs/{job_id}/rounds/{round_id} - Delete one round
"""

import logging
from fastapi import APIRouter, HTTPException, Depends
from typing import List

from placement_portal.db.database import get_db_session
from placement_portal.core.auth import get_current_user
from placement_portal.services import job_service
from placement_portal.services.access_service import load_job_for_view, load_job_for_edit
from placement_portal.services.activity_service import log_activity
from placement_portal.schemas.schemas import (
    RoundUpsert, RoundUpdate, RoundResponse, RoundsUpdateResponse, RoundDetailResponse, MessageResponse
)

router = APIRouter(prefix="/jobs/{job_id}/rounds", tags=["Interview Rounds"])
logger = logging.getLogger(__name__)

ROUNDS_DENIED = "Not authorized to update this job's interview rounds"
ROUNDS_ROLE_DENIED = "Not authorized to update interview rounds"


@router.get("", response_model=List[RoundResponse])
async def get_rounds(job_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        load_job_for_view(db, user, job_id)
        rounds = job_service.get_rounds(db, job_id)
    return [RoundResponse(**r) for r in rounds]


@router.post("", response_model=RoundsUpdateResponse)
async def replace_rounds(job_id: int, rounds: List[RoundUpsert], user: dict = Depends(get_current_user)):
    """
    Rounds without an id are created, rounds with a known id are updated,
    stored rounds not in the body are deleted. Unknown ids are ignored.
    """
    sequences = [r.sequence for r in rounds]
    if len(sequences) != len(set(sequences)):
        raise HTTPException(status_code=400, detail="Interview round sequences must be unique")

    with get_db_session() as db:
        load_job_for_edit(db, user, job_id, ROUNDS_DENIED, ROUNDS_ROLE_DENIED)
        job_service.replace_rounds(db, job_id, [r.model_dump(exclude_unset=True) for r in rounds])
        updated = job_service.get_rounds(db, job_id)
        log_activity(db, user["user_id"], "JOB_ROUNDS_UPDATED", {"job_id": job_id, "rounds": len(updated)})

    return RoundsUpdateResponse(message="Interview rounds updated successfully", rounds=updated)


@router.patch("/{round_id}", response_model=RoundDetailResponse)
async def update_round(job_id: int, round_id: int, updates: RoundUpdate, user: dict = Depends(get_current_user)):
    data = updates.model_dump(exclude_unset=True)
    with get_db_session() as db:
        load_job_for_edit(db, user, job_id, ROUNDS_DENIED, ROUNDS_ROLE_DENIED)
        job_service.get_round(db, job_id, round_id)
        if data.get("sequence") is not None:
            job_service.ensure_sequence_free(db, job_id, data["sequence"], exclude_round_id=round_id)

        job_service.update_round(db, round_id, data)
        updated = job_service.get_round(db, job_id, round_id)
        log_activity(db, user["user_id"], "JOB_ROUND_UPDATED", {"job_id": job_id, "round_id": round_id, "fields": list(data)})

    return RoundDetailResponse(message="Interview round updated successfully", round=updated)


@router.delete("/{round_id}", response_model=MessageResponse)
async def delete_round(job_id: int, round_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        load_job_for_edit(db, user, job_id, ROUNDS_DENIED, ROUNDS_ROLE_DENIED)
        deleted = job_service.get_round(db, job_id, round_id)
        job_service.delete_round(db, round_id)
        log_activity(db, user["user_id"], "JOB_ROUND_DELETED", {"job_id": job_id, "round_id": round_id, "name": deleted["name"]})

    return MessageResponse(message="Interview round deleted successfully")
