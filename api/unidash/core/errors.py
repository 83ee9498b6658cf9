"""
Error taxonomy for module content requests.

Each error carries the HTTP status it is surfaced with; the exception
handlers registered in main.py turn them into JSON responses.
"""

from typing import Any, Dict, Optional

from fastapi import status


class ModuleContentError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
        self.detail = detail or self.default_detail
        self.extra = extra or {}
        super().__init__(self.detail)


class UnauthenticatedError(ModuleContentError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthorized"


class ProfileIncompleteError(ModuleContentError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "User has no batch assigned. Please contact admin."


class ForbiddenError(ModuleContentError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You can only edit content for your own batch"


class ValidationError(ModuleContentError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class NotFoundError(ModuleContentError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class StoreFailureError(ModuleContentError):
    """A persistence call failed; detail is the store's own message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Store operation failed"
