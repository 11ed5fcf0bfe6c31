from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ProvisioningAppError(Exception):
    """Base class for errors surfaced to callers of the provisioning core.

    Each subclass pins a machine-readable ``kind`` and the HTTP status it maps
    to. ``message`` is safe to show to a caller; internal store errors are
    never passed through verbatim.
    """

    kind: str = "internal_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class Unauthorized(ProvisioningAppError):
    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(ProvisioningAppError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden: Admin access required"


class InvalidInput(ProvisioningAppError):
    kind = "invalid_input"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message or f"Invalid or missing field: {field}", {"field": field})


class NotFound(ProvisioningAppError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class Conflict(ProvisioningAppError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "User already whitelisted"

    def __init__(self, existing_status: str, message: Optional[str] = None) -> None:
        self.existing_status = existing_status
        super().__init__(message, {"status": existing_status})


class InvalidState(ProvisioningAppError):
    kind = "invalid_state"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Whitelist entry is not pending"

    def __init__(self, current_status: Optional[str] = None, message: Optional[str] = None) -> None:
        self.current_status = current_status
        super().__init__(message, {"status": current_status} if current_status else None)


class StorageError(ProvisioningAppError):
    kind = "storage_error"
    default_message = "Storage operation failed"


class ProvisioningError(ProvisioningAppError):
    kind = "provisioning_error"
    default_message = "Failed to provision user account"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        orphaned: bool = False,
        account_id: Optional[str] = None,
    ) -> None:
        self.orphaned = orphaned
        self.account_id = account_id
        details: Dict[str, Any] = {}
        if orphaned:
            details = {"orphaned": True, "account_id": account_id}
        super().__init__(message, details)


async def provisioning_error_handler(request: Request, exc: ProvisioningAppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request %s %s failed: %s", request.method, request.url.path, exc.kind)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies with the same shape as InvalidInput."""

    errors = exc.errors()
    field = "body"
    if errors:
        loc = [str(part) for part in errors[0].get("loc", ()) if part != "body"]
        if loc:
            field = ".".join(loc)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=InvalidInput(field).to_dict(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProvisioningAppError, provisioning_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
