"""REST API for cfroster."""

from cfroster.api.app import app, create_app
from cfroster.api.models import (
    APIResponse,
    StudentCreate,
    StudentResponse,
    StudentUpdate,
)

__all__ = [
    "APIResponse",
    "StudentCreate",
    "StudentResponse",
    "StudentUpdate",
    "app",
    "create_app",
]
