"""Translation of relationship exceptions into HTTP errors."""

from fastapi import HTTPException, status

from photo_circle.exceptions import (
    AlreadyFamilyMember,
    FamilyNotFound,
    NotFamilyMember,
    RelationshipError,
    StoreUnavailable,
    UserNotFound,
    ValidationError,
)

# Checked in order; PartialMutation is matched through StoreUnavailable.
ERROR_STATUS_CODES = (
    (UserNotFound, status.HTTP_404_NOT_FOUND),
    (FamilyNotFound, status.HTTP_404_NOT_FOUND),
    (NotFamilyMember, status.HTTP_403_FORBIDDEN),
    (AlreadyFamilyMember, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (StoreUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_code_for(error: RelationshipError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def relationship_http_error(error: RelationshipError) -> HTTPException:
    return HTTPException(
        status_code=status_code_for(error),
        detail={"error": error.error_code, "message": error.message},
    )


def unexpected_http_error(error_code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": error_code, "message": message},
    )
