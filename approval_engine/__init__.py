"""Multi-level approval chain engine with a WhatsApp action channel."""

__version__ = "0.1.0"
