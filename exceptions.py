"""
Error taxonomy for the billing relay.

Every error raised by the payment, membership and access components is a
BillingError. The application factory registers a single handler that turns
these into JSON responses, so routes only raise and never format errors.
"""

from http import HTTPStatus


class BillingError(Exception):
    """
    Base exception for billing and access errors.

    Attributes:
        message: Message returned to the API caller.
        status_code: HTTP status code used when the error reaches a route.
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message, status_code=None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self):
        """Convert exception to dictionary for API responses."""
        return {'error': self.message}

    def __str__(self):
        return f"{self.__class__.__name__}: {self.message}"


class NotFound(BillingError):
    """A community, tier, course or transaction does not exist."""
    status_code = HTTPStatus.NOT_FOUND


class InvalidState(BillingError):
    """The request is well-formed but not allowed in the current state (inactive tier, malformed webhook)."""
    status_code = HTTPStatus.BAD_REQUEST


class UpstreamError(BillingError):
    """
    The payment gateway is unreachable or answered with a non-2xx status.

    `message` stays internal (it is logged); callers only ever see the generic
    public message, so gateway error bodies and credentials never leak.
    """
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    public_message = 'Payment provider error'

    def __init__(self, message, upstream_body=None, upstream_status=None):
        super().__init__(message)
        self.upstream_body = upstream_body
        self.upstream_status = upstream_status

    def to_dict(self):
        return {'error': self.public_message}


class Unauthenticated(BillingError):
    """The caller is not logged in."""
    status_code = HTTPStatus.UNAUTHORIZED

    def __init__(self, message='Authentication required'):
        super().__init__(message)
