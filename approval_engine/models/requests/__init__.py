"""Approvable request models."""

from .leave_request import LeaveRequest
from .spend_request import SpendRequest
from .asset_request import AssetRequest

__all__ = ["LeaveRequest", "SpendRequest", "AssetRequest"]
