"""
Exceptions raised by business operations when a request is refused for a
reason the user should see.
"""
from __future__ import annotations


class BusinessRuleError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BusinessRuleError):
    status_code = 404


class PermissionDeniedError(BusinessRuleError):
    status_code = 403


class ConflictError(BusinessRuleError):
    status_code = 409


__all__ = ["BusinessRuleError", "NotFoundError", "PermissionDeniedError", "ConflictError"]
