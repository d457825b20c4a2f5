from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status

class BusinessLogicException(Exception):
    """
    Base class for domain-specific errors (e.g., OfferExpired, NotYourOrder).
    These are expected operational errors, not 500s.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "invalid_request"

    def __init__(self, message, code=None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)


class InvalidInputException(BusinessLogicException):
    default_code = "invalid_input"


class UnauthenticatedException(BusinessLogicException):
    """No driver identity could be resolved for the caller."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "unauthenticated"


class ForbiddenException(BusinessLogicException):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "forbidden"


class NotFoundException(BusinessLogicException):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class ConflictException(BusinessLogicException):
    """
    Offer taken, offer expired, assignment race lost or order in the wrong state.
    Clients are expected to poll again.
    """
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"


def custom_exception_handler(exc, context):
    """
    Custom DRF Exception Handler.
    Maps BusinessLogicException subclasses to their HTTP status with a standard error structure.
    """
    response = exception_handler(exc, context)

    if isinstance(exc, BusinessLogicException):
        return Response(
            {
                "error": {
                    "code": exc.code,
                    "message": exc.message,
                    "type": type(exc).__name__,
                }
            },
            status=exc.status_code
        )

    if response is not None and response.status_code == 400:
        if "error" not in response.data:
            response.data = {
                "error": {
                    "code": "validation_error",
                    "details": response.data
                }
            }

    return response
