"""
Domain errors raised by service functions and translated to responses by views
"""
from rest_framework import status


class ServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response_data(self):
        return {'error': self.message, **self.details}


class ValidationFailed(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class AccessDenied(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message='Permission denied', **details):
        super().__init__(message, **details)


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT


class EmailDeliveryError(Exception):
    """Raised when the mail provider rejects or cannot receive a message"""
