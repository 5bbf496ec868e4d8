"""
Application Routes

GET /applications/me - Own applications (student)
GET /applications/{application_id} - Application detail (owning student or staff)
POST /applications/{application_id}/withdraw - Withdraw (student)
PUT /applications/{application_id}/status - Move an application (staff)
PUT /applications/{application_id}/rounds/{round_id} - Schedule a round / record feedback (staff)
POST /applications/{application_id}/offer - Make an offer (staff)
POST /applications/{application_id}/offer/respond - Accept or decline an offer (student)
"""

import logging
from fastapi import APIRouter, HTTPException, Depends
from typing import List

from placement_portal.db.database import get_db_session
from placement_portal.core.auth import get_current_user, get_current_student
from placement_portal.services import application_service
from placement_portal.services.access_service import (
    load_application_for_staff, MANAGE_STUDENTS, SCHEDULE_INTERVIEWS
)
from placement_portal.services.activity_service import log_activity
from placement_portal.schemas.schemas import (
    ApplicationResponse, ApplicationStatusUpdate, InterviewResultUpdate, InterviewResultResponse,
    OfferCreate, OfferRespond, OfferResponse, MessageResponse, UserRole
)

router = APIRouter(prefix="/applications", tags=["Applications"])
logger = logging.getLogger(__name__)


@router.get("/me", response_model=List[ApplicationResponse])
async def get_my_applications(student: dict = Depends(get_current_student)):
    with get_db_session() as db:
        rows = application_service.list_applications(db, student_id=student["student_id"])
    return [ApplicationResponse(**r) for r in rows]


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(application_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        if user["role"] == UserRole.student.value:
            student = await get_current_student(user)
            response = application_service.get_application(db, application_id)
            if response["student_id"] != student["student_id"]:
                raise HTTPException(status_code=404, detail="Application not found")
        else:
            load_application_for_staff(db, user, application_id, MANAGE_STUDENTS)
            response = application_service.get_application(db, application_id)
    return ApplicationResponse(**response)


@router.post("/{application_id}/withdraw", response_model=MessageResponse)
async def withdraw_application(application_id: int, student: dict = Depends(get_current_student)):
    with get_db_session() as db:
        application_service.withdraw(db, student, application_id)
        log_activity(db, student["user_id"], "APPLICATION_WITHDRAWN", {"application_id": application_id})
    return MessageResponse(message="Application withdrawn")


@router.put("/{application_id}/status", response_model=ApplicationResponse)
async def update_application_status(
    application_id: int,
    update: ApplicationStatusUpdate,
    user: dict = Depends(get_current_user)
):
    """No transition table: staff may set any status."""
    with get_db_session() as db:
        app = load_application_for_staff(db, user, application_id, MANAGE_STUDENTS)
        application_service.set_status(db, application_id, update.status.value, update.rejection_reason)
        log_activity(db, user["user_id"], "APPLICATION_STATUS_UPDATED", {
            "application_id": application_id, "from": app["status"], "to": update.status.value
        })
        response = application_service.get_application(db, application_id)
    return ApplicationResponse(**response)


@router.put("/{application_id}/rounds/{round_id}", response_model=InterviewResultResponse)
async def record_interview(
    application_id: int,
    round_id: int,
    update: InterviewResultUpdate,
    user: dict = Depends(get_current_user)
):
    """
    Schedule the round for this applicant and/or record feedback.

    Sub-users need can_schedule_interviews to schedule and
    can_manage_students to record feedback.
    """
    with get_db_session() as db:
        app = None
        if update.scheduled_at is not None:
            app = load_application_for_staff(db, user, application_id, SCHEDULE_INTERVIEWS)
        if update.has_feedback:
            app = load_application_for_staff(db, user, application_id, MANAGE_STUDENTS)

        result = application_service.upsert_interview_result(
            db, app, round_id, update.model_dump(exclude_unset=True), user["user_id"]
        )
        log_activity(db, user["user_id"], "INTERVIEW_RESULT_RECORDED", {
            "application_id": application_id, "round_id": round_id, "status": result["status"]
        })
    return InterviewResultResponse(**result)


@router.post("/{application_id}/offer", response_model=OfferResponse, status_code=201)
async def make_offer(application_id: int, offer: OfferCreate, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        load_application_for_staff(db, user, application_id, MANAGE_STUDENTS)
        response = application_service.make_offer(db, application_id, offer.model_dump())
        log_activity(db, user["user_id"], "OFFER_CREATED", {"application_id": application_id, "ctc": offer.ctc})
    return OfferResponse(**response)


@router.post("/{application_id}/offer/respond", response_model=OfferResponse)
async def respond_to_offer(application_id: int, answer: OfferRespond, student: dict = Depends(get_current_student)):
    with get_db_session() as db:
        response = application_service.respond_to_offer(db, student, application_id, answer.accept)
        log_activity(db, student["user_id"], "OFFER_ACCEPTED" if answer.accept else "OFFER_DECLINED",
                     {"application_id": application_id})
    return OfferResponse(**response)
