"""
API Version 1 Router.

Aggregates all v1 endpoint routers. Every route requires a session
except the public paths listed in core.dependencies.
"""

from fastapi import APIRouter, Depends

from portal.backend.api.v1.endpoints import (
    admin,
    auth,
    commerce,
    crm,
    dashboard,
    email,
    invoices,
    jobs,
    messages,
    projects,
    proposals,
    seo,
    signal,
)
from portal.backend.core.dependencies import enforce_authentication

router = APIRouter(dependencies=[Depends(enforce_authentication)])

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(crm.router, prefix="/crm", tags=["crm"])
router.include_router(projects.router, prefix="/projects", tags=["projects"])
router.include_router(proposals.router, prefix="/proposals", tags=["proposals"])
router.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
router.include_router(email.router, prefix="/email", tags=["email"])
router.include_router(messages.router, prefix="/messages", tags=["messages"])
router.include_router(seo.router, prefix="/seo", tags=["seo"])
router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
router.include_router(signal.router, prefix="/signal", tags=["signal"])
router.include_router(commerce.router, prefix="/commerce", tags=["commerce"])
