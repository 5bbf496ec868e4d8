"""
Schemas module - Request/Response schemas for API endpoints.

Everything lives in `placement_portal.schemas.schemas`:
- Enums shared with the services (roles, statuses)
- Request schemas (what API accepts)
- Response schemas (what API returns)
"""
