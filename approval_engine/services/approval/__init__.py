"""Approval policy, chain state machine and request processing."""
