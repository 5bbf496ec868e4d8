"""
Company Routes

GET /companies - List companies (super admin: all, university staff: linked to the university)
POST /companies - Create company with contacts
GET /companies/{company_id} - Company detail with contacts and participation history
PUT /companies/{company_id} - Update company
DELETE /companies/{company_id} - Unlink (university admin) or delete (super admin)
POST /companies/{company_id}/contacts - Add contact person
PUT /companies/{company_id}/contacts/{contact_id} - Update contact person
DELETE /companies/{company_id}/contacts/{contact_id} - Remove contact person
"""

import logging
from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy import text
from typing import List, Optional

from placement_portal.db.database import get_db_session, fetch_all, fetch_one
from placement_portal.core.auth import require_roles
from placement_portal.services.activity_service import log_activity
from placement_portal.services.job_service import link_company_to_university
from placement_portal.utils.formatting import as_date
from placement_portal.schemas.schemas import (
    CompanyCreate, CompanyUpdate, CompanyResponse, CompanyDetailResponse,
    ContactCreate, ContactUpdate, ContactResponse, MessageResponse, UserRole
)

router = APIRouter(prefix="/companies", tags=["Companies"])
logger = logging.getLogger(__name__)

staff = require_roles(UserRole.super_admin, UserRole.university_admin, UserRole.sub_user)
admins = require_roles(UserRole.super_admin, UserRole.university_admin)


def _scope(user: dict) -> Optional[int]:
    """University the caller is limited to; None for super admins."""
    return None if user["role"] == UserRole.super_admin.value else user["university_id"]


def _company_select(university_id: Optional[int]) -> str:
    job_scope = " AND j.university_id = :uni" if university_id is not None else ""
    return f"""
        SELECT c.company_id, c.name, c.industry, c.description, c.website, c.address,
               c.is_active, c.created_at,
               (SELECT COUNT(*) FROM jobs j WHERE j.company_id = c.company_id{job_scope}) AS jobs_posted,
               (SELECT COUNT(*) FROM applications a JOIN jobs j ON a.job_id = j.job_id
                WHERE j.company_id = c.company_id AND a.status = 'ACCEPTED'{job_scope}) AS students_hired
        FROM companies c
    """


def _get_company(db, user: dict, company_id: int) -> dict:
    university_id = _scope(user)
    sql = _company_select(university_id) + " WHERE c.company_id = :cid"
    params = {"cid": company_id}
    if university_id is not None:
        sql += " AND c.company_id IN (SELECT company_id FROM company_universities WHERE university_id = :uni)"
        params["uni"] = university_id
    row = fetch_one(db, sql, params)
    if not row:
        raise HTTPException(status_code=404, detail="Company not found")
    return row


def _contacts(db, company_id: int) -> List[dict]:
    rows = fetch_all(
        db,
        """
        SELECT contact_id, company_id, name, email, phone, designation, is_primary
        FROM company_contacts WHERE company_id = :cid ORDER BY is_primary DESC, name
        """,
        {"cid": company_id}
    )
    for r in rows:
        r["is_primary"] = bool(r["is_primary"])
    return rows


def _participation_history(db, company_id: int, university_id: Optional[int]) -> List[dict]:
    """Per year and university: jobs posted, students hired, highest and average accepted CTC."""
    sql = """
        SELECT j.job_id, j.university_id, j.created_at, a.status, o.ctc, o.status AS offer_status
        FROM jobs j
        LEFT JOIN applications a ON a.job_id = j.job_id
        LEFT JOIN offers o ON o.application_id = a.application_id
        WHERE j.company_id = :cid
    """
    params = {"cid": company_id}
    if university_id is not None:
        sql += " AND j.university_id = :uni"
        params["uni"] = university_id

    groups = {}
    for r in fetch_all(db, sql, params):
        key = (str(as_date(r["created_at"]).year), r["university_id"])
        group = groups.setdefault(key, {"jobs": set(), "hired": 0, "packages": []})
        group["jobs"].add(r["job_id"])
        if r["status"] == "ACCEPTED":
            group["hired"] += 1
        if r["offer_status"] == "ACCEPTED" and r["ctc"] is not None:
            group["packages"].append(float(r["ctc"]))

    history = []
    for (year, uni), g in sorted(groups.items(), reverse=True):
        packages = g["packages"]
        history.append({
            "year": year,
            "university_id": uni,
            "jobs_posted": len(g["jobs"]),
            "students_hired": g["hired"],
            "highest_package": max(packages) if packages else 0.0,
            "average_package": round(sum(packages) / len(packages), 2) if packages else 0.0,
        })
    return history


def _insert_contact(db, company_id: int, contact: ContactCreate) -> int:
    if contact.is_primary:
        _clear_primary(db, company_id)
    result = db.execute(
        text("""
            INSERT INTO company_contacts (company_id, name, email, phone, designation, is_primary)
            VALUES (:cid, :name, :email, :phone, :designation, :is_primary)
            RETURNING contact_id
        """),
        {"cid": company_id, **contact.model_dump()}
    )
    return result.fetchone()[0]


def _clear_primary(db, company_id: int) -> None:
    """Only one primary contact per company."""
    db.execute(
        text("UPDATE company_contacts SET is_primary = :no WHERE company_id = :cid"),
        {"no": False, "cid": company_id}
    )


@router.get("", response_model=List[CompanyResponse])
async def list_companies(
    industry: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search in name"),
    participated: Optional[bool] = Query(None, description="Only companies that posted jobs"),
    user: dict = Depends(staff)
):
    university_id = _scope(user)
    sql = _company_select(university_id) + " WHERE 1 = 1"
    params = {}

    if university_id is not None:
        sql += " AND c.company_id IN (SELECT company_id FROM company_universities WHERE university_id = :uni)"
        params["uni"] = university_id
    if industry:
        sql += " AND LOWER(c.industry) = LOWER(:industry)"
        params["industry"] = industry
    if search:
        sql += " AND LOWER(c.name) LIKE LOWER(:search)"
        params["search"] = f"%{search}%"
    sql += " ORDER BY c.name"

    with get_db_session() as db:
        rows = fetch_all(db, sql, params)

    if participated is not None:
        rows = [r for r in rows if (r["jobs_posted"] > 0) == participated]
    return [CompanyResponse(**r) for r in rows]


@router.post("", response_model=CompanyDetailResponse, status_code=201)
async def create_company(company: CompanyCreate, user: dict = Depends(admins)):
    """University admins link the new company to their university; super admins may name one."""
    if user["role"] == UserRole.university_admin.value:
        university_id = user["university_id"]
    else:
        university_id = company.university_id

    with get_db_session() as db:
        if university_id is not None and not fetch_one(
            db, "SELECT university_id FROM universities WHERE university_id = :uni", {"uni": university_id}
        ):
            raise HTTPException(status_code=404, detail="University not found")

        result = db.execute(
            text("""
                INSERT INTO companies (name, industry, description, website, address)
                VALUES (:name, :industry, :description, :website, :address)
                RETURNING company_id
            """),
            company.model_dump(exclude={"university_id", "contacts"})
        )
        company_id = result.fetchone()[0]

        if university_id is not None:
            link_company_to_university(db, company_id, university_id)

        primary_seen = False
        for contact in company.contacts:
            # First primary in the payload wins
            if contact.is_primary and primary_seen:
                contact = contact.model_copy(update={"is_primary": False})
            primary_seen = primary_seen or contact.is_primary
            _insert_contact(db, company_id, contact)

        log_activity(db, user["user_id"], "COMPANY_CREATED", {"company_id": company_id, "name": company.name})

        response = _get_company(db, user, company_id)
        response["contacts"] = _contacts(db, company_id)
        response["participation_history"] = []

    return CompanyDetailResponse(**response)


@router.get("/{company_id}", response_model=CompanyDetailResponse)
async def get_company(company_id: int, user: dict = Depends(staff)):
    with get_db_session() as db:
        response = _get_company(db, user, company_id)
        response["contacts"] = _contacts(db, company_id)
        response["participation_history"] = _participation_history(db, company_id, _scope(user))
    return CompanyDetailResponse(**response)


@router.put("/{company_id}", response_model=CompanyResponse)
async def update_company(company_id: int, updates: CompanyUpdate, user: dict = Depends(admins)):
    data = updates.model_dump(exclude_unset=True)
    with get_db_session() as db:
        _get_company(db, user, company_id)
        if data:
            set_clause = ", ".join(f"{field} = :{field}" for field in data)
            db.execute(
                text(f"UPDATE companies SET {set_clause}, updated_at = CURRENT_TIMESTAMP WHERE company_id = :cid"),
                {**data, "cid": company_id}
            )
            log_activity(db, user["user_id"], "COMPANY_UPDATED", {"company_id": company_id, "fields": list(data)})
        response = _get_company(db, user, company_id)
    return CompanyResponse(**response)


@router.delete("/{company_id}", response_model=MessageResponse)
async def delete_company(company_id: int, user: dict = Depends(admins)):
    with get_db_session() as db:
        company = _get_company(db, user, company_id)

        if user["role"] == UserRole.university_admin.value:
            db.execute(
                text("DELETE FROM company_universities WHERE company_id = :cid AND university_id = :uni"),
                {"cid": company_id, "uni": user["university_id"]}
            )
            log_activity(db, user["user_id"], "COMPANY_UNLINKED", {"company_id": company_id, "name": company["name"]})
            return MessageResponse(message="Company removed from your university")

        db.execute(text("DELETE FROM companies WHERE company_id = :cid"), {"cid": company_id})
        log_activity(db, user["user_id"], "COMPANY_DELETED", {"company_id": company_id, "name": company["name"]})

    return MessageResponse(message="Company deleted")


@router.post("/{company_id}/contacts", response_model=ContactResponse, status_code=201)
async def add_contact(company_id: int, contact: ContactCreate, user: dict = Depends(admins)):
    with get_db_session() as db:
        _get_company(db, user, company_id)
        contact_id = _insert_contact(db, company_id, contact)
    return ContactResponse(contact_id=contact_id, company_id=company_id, **contact.model_dump())


@router.put("/{company_id}/contacts/{contact_id}", response_model=ContactResponse)
async def update_contact(company_id: int, contact_id: int, updates: ContactUpdate, user: dict = Depends(admins)):
    data = updates.model_dump(exclude_unset=True)
    with get_db_session() as db:
        _get_company(db, user, company_id)
        if not fetch_one(
            db, "SELECT contact_id FROM company_contacts WHERE contact_id = :id AND company_id = :cid",
            {"id": contact_id, "cid": company_id}
        ):
            raise HTTPException(status_code=404, detail="Contact not found")

        if data.get("is_primary"):
            _clear_primary(db, company_id)
        if data:
            set_clause = ", ".join(f"{field} = :{field}" for field in data)
            db.execute(
                text(f"UPDATE company_contacts SET {set_clause} WHERE contact_id = :id"),
                {**data, "id": contact_id}
            )

        row = next(c for c in _contacts(db, company_id) if c["contact_id"] == contact_id)
    return ContactResponse(**row)


@router.delete("/{company_id}/contacts/{contact_id}", response_model=MessageResponse)
async def delete_contact(company_id: int, contact_id: int, user: dict = Depends(admins)):
    with get_db_session() as db:
        _get_company(db, user, company_id)
        result = db.execute(
            text("DELETE FROM company_contacts WHERE contact_id = :id AND company_id = :cid"),
            {"id": contact_id, "cid": company_id}
        )
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Contact not found")
    return MessageResponse(message="Contact deleted")
