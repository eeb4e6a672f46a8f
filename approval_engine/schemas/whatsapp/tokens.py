"""
Action token schemas.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from approval_engine.models.base.enums import ApprovalAction, ApprovalModule
from approval_engine.schemas.common.base import BaseSchema

__all__ = [
    "TokenError",
    "TokenPayload",
    "TokenPair",
    "TokenValidationResult",
    "TokenCleanupResponse",
]


class TokenError(str, Enum):
    """Reasons a token is rejected. Values are the user-facing messages."""
    NOT_FOUND = "Token not found"
    ALREADY_USED = "Token already used"
    EXPIRED = "Token expired"
    INVALID_SIGNATURE = "Invalid token signature"
    CONCURRENTLY_CONSUMED = "Token already used (race condition)"


class TokenPayload(BaseSchema):
    """What a valid token authorizes."""

    tenant_id: str
    entity_type: ApprovalModule
    entity_id: str
    action: ApprovalAction
    approver_id: str


class TokenPair(BaseSchema):
    approve_token: str
    reject_token: str


class TokenValidationResult(BaseSchema):
    valid: bool
    payload: Optional[TokenPayload] = None
    error: Optional[TokenError] = None

    @classmethod
    def ok(cls, payload: TokenPayload) -> "TokenValidationResult":
        return cls(valid=True, payload=payload)

    @classmethod
    def fail(cls, error: TokenError) -> "TokenValidationResult":
        return cls(valid=False, error=error)


class TokenCleanupResponse(BaseSchema):
    deleted: int
