"""Error taxonomy shared by crud, auth and the HTTP layer.

Every error carries the message shown to the client and the HTTP status it
maps to. ``main`` turns them into ``{"success": false, "error": ...}``.
"""
from typing import Optional


class AppError(Exception):
    status_code = 500
    code: Optional[str] = None

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message}
        if self.code:
            body["code"] = self.code
        return body


class ValidationError(AppError):
    status_code = 400


class AuthError(AppError):
    status_code = 401


class InvalidTokenError(AuthError):
    code = "token_invalid"


class TokenExpiredError(AuthError):
    code = "token_expired"


class TokenNotYetValidError(AuthError):
    code = "token_not_yet_valid"


class AuthorizationError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class InsufficientStockError(AppError):
    status_code = 400
    code = "insufficient_stock"

    def __init__(self, sweet_id: int, sweet_name: str, available: int, requested: int):
        super().__init__(f"Insufficient stock for {sweet_name}. Available: {available}")
        self.sweet_id = sweet_id
        self.sweet_name = sweet_name
        self.available = available
        self.requested = requested

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["details"] = {
            "sweetId": self.sweet_id,
            "sweetName": self.sweet_name,
            "available": self.available,
            "requested": self.requested,
        }
        return body
