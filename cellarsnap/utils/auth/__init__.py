"""Authentication utilities."""

from .tokens import create_token
from .dependencies import get_current_user_id, get_optional_user_id, oauth2_scheme

__all__ = [
    "create_token",
    "get_current_user_id",
    "get_optional_user_id",
    "oauth2_scheme",
]
