"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from placement_portal.api.routes.auth_routes import router as auth_router
from placement_portal.api.routes.university_routes import router as university_router
from placement_portal.api.routes.sub_user_routes import router as sub_user_router
from placement_portal.api.routes.student_routes import router as student_router
from placement_portal.api.routes.company_routes import router as company_router
from placement_portal.api.routes.job_routes import router as job_router
from placement_portal.api.routes.round_routes import router as round_router
from placement_portal.api.routes.application_routes import router as application_router
from placement_portal.api.routes.dashboard_routes import router as dashboard_router
from placement_portal.api.routes.activity_routes import router as activity_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(university_router)
api_router.include_router(sub_user_router)
api_router.include_router(student_router)
api_router.include_router(company_router)
api_router.include_router(job_router)
api_router.include_router(round_router)
api_router.include_router(application_router)
api_router.include_router(dashboard_router)
api_router.include_router(activity_router)
