"""
HTML Pages

GET /login - Login form
POST /login - Authenticate, set the access_token cookie, go to the dashboard
GET /logout - Clear the cookie
GET /dashboard - Role-specific dashboard
GET /jobs - Job list
GET /jobs/{job_id} - Job detail

Pages authenticate with the `access_token` cookie; without a valid one
they redirect to /login.
"""

import logging
import os
from typing import Optional
from fastapi import APIRouter, Form, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from placement_portal.core.auth import ACCESS_TOKEN_COOKIE, create_access_token, user_from_token
from placement_portal.core.config import get_settings
from placement_portal.api.routes.auth_routes import authenticate
from placement_portal.api.routes.dashboard_routes import build_dashboard
from placement_portal.api.routes.job_routes import get_job, list_jobs
from placement_portal.utils.formatting import register_template_filters

router = APIRouter(tags=["Pages"], include_in_schema=False)
logger = logging.getLogger(__name__)
settings = get_settings()

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "templates")
templates = Jinja2Templates(directory=TEMPLATES_DIR)
register_template_filters(templates.env)


def _login_redirect() -> RedirectResponse:
    return RedirectResponse(url="/login", status_code=303)


def _page_user(request: Request) -> Optional[dict]:
    return user_from_token(request.cookies.get(ACCESS_TOKEN_COOKIE))


@router.get("/")
async def index(request: Request):
    return RedirectResponse(url="/dashboard" if _page_user(request) else "/login", status_code=303)


@router.get("/login")
async def login_page(request: Request):
    if _page_user(request):
        return RedirectResponse(url="/dashboard", status_code=303)
    return templates.TemplateResponse(request, "login.html", {"error": None, "email": ""})


@router.post("/login")
async def login_submit(request: Request, email: str = Form(...), password: str = Form(...)):
    try:
        user = authenticate(email, password)
    except HTTPException as e:
        return templates.TemplateResponse(
            request, "login.html", {"error": e.detail, "email": email}, status_code=e.status_code
        )

    token = create_access_token(data={"sub": str(user["user_id"]), "role": user["role"]})
    response = RedirectResponse(url="/dashboard", status_code=303)
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        max_age=settings.jwt_expire_minutes * 60,
    )
    return response


@router.get("/logout")
async def logout():
    response = _login_redirect()
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    return response


@router.get("/dashboard")
async def dashboard_page(request: Request):
    user = _page_user(request)
    if not user:
        return _login_redirect()
    data = await build_dashboard(user)
    return templates.TemplateResponse(request, "dashboard.html", {"user": user, "data": data})


@router.get("/jobs")
async def jobs_page(request: Request, page: int = Query(1, ge=1), search: Optional[str] = Query(None)):
    user = _page_user(request)
    if not user:
        return _login_redirect()
    result = await list_jobs(
        page=page, page_size=20, status=None, job_type=None, company_id=None, university_id=None,
        min_ctc=None, max_ctc=None, location=None, search=search, user=user
    )
    return templates.TemplateResponse(
        request, "jobs.html", {"user": user, "result": result.model_dump(), "search": search or ""}
    )


@router.get("/jobs/{job_id}")
async def job_detail_page(request: Request, job_id: int):
    user = _page_user(request)
    if not user:
        return _login_redirect()
    job = await get_job(job_id, user)
    return templates.TemplateResponse(request, "job_detail.html", {"user": user, "job": job.model_dump()})
