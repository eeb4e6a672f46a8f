"""
API v1 router.

Aggregates the approval, webhook and cron endpoints.
"""
from fastapi import APIRouter

from approval_engine.api.v1 import approvals, cron, webhooks

router = APIRouter(
    responses={
        400: {"description": "Bad Request"},
        403: {"description": "Forbidden"},
        404: {"description": "Not Found"},
        409: {"description": "Conflict"},
        422: {"description": "Validation Error"},
        500: {"description": "Internal Server Error"}
    }
)

router.include_router(approvals.router)
router.include_router(webhooks.router)
router.include_router(cron.router)

__all__ = ["router"]
