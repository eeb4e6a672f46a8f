"""Approver notifications and message templates."""
