"""Services layer: content gateway and authentication."""

from .gateway import ContentGateway, GeminiGateway
from .auth_service import AuthService, hash_password

__all__ = [
    "ContentGateway",
    "GeminiGateway",
    "AuthService",
    "hash_password",
]
