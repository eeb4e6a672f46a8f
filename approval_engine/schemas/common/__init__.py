from .base import BaseSchema

__all__ = ["BaseSchema"]
