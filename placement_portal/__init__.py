"""
University Placement Portal
Multi-tenant placement tracking: universities post jobs for companies,
students apply, sub-users run interview pipelines, admins watch dashboards.

Architecture:
- PostgreSQL: all records (raw SQL through SQLAlchemy)
- FastAPI: JSON API under /api and Jinja2 pages
"""

__version__ = "1.0.0"
