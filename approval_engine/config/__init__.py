"""
Configuration package for the approval chain engine.

Holds the environment-driven settings shared by the database layer,
logging, token signing and the WhatsApp channel integration.
"""

from approval_engine.config.settings import settings, get_settings, Settings

__all__ = ['settings', 'get_settings', 'Settings']
