# watergo/core/errors.py
"""
Error taxonomy for the order core.

Every error is an HTTPException with a fixed status code, so services can
raise them directly and FastAPI renders them without extra handlers.
The detail body is always:

    {"error": "<kind>", "message": "<human readable text>"}
"""

from fastapi import HTTPException, status


class OrderCoreError(HTTPException):
    kind: str = "error"
    status_code_default: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        self.message = message
        super().__init__(
            status_code=self.status_code_default,
            detail={"error": self.kind, "message": message},
        )


class ValidationError(OrderCoreError):
    """Malformed input; rejected before any state is read."""

    kind = "validation"
    status_code_default = 422


class NotFoundError(OrderCoreError):
    kind = "not_found"
    status_code_default = status.HTTP_404_NOT_FOUND


class ConflictError(OrderCoreError):
    """Requested transition is illegal for the stored status."""

    kind = "conflict"
    status_code_default = status.HTTP_409_CONFLICT


class AuthorizationError(OrderCoreError):
    kind = "forbidden"
    status_code_default = status.HTTP_403_FORBIDDEN
