from models.users import User
from models.auth_tokens import AuthToken, TokenType

__all__ = ["User", "AuthToken", "TokenType"]
