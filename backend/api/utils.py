"""
Shared API utility functions.
"""

import logging

from fastapi import HTTPException, status

from core.exceptions import (
    MeteringError,
    MeteringValidationError,
    StorageError,
    SubscriptionConflictError,
)

logger = logging.getLogger(__name__)


def http_error_for(exc: MeteringError) -> HTTPException:
    """Translate a domain exception into the HTTP error returned to the caller."""
    if isinstance(exc, MeteringValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, SubscriptionConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{exc}. Please retry.",
            headers={"Retry-After": "1"},
        )
    logger.error("Unmapped metering error: %s", exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )
