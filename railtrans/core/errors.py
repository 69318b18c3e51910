"""
Domain errors raised by the services and mapped to HTTP responses in the API layer.
"""


class RailTransError(Exception):
    status_code = 500

    def __init__(self, message: str, **details) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(RailTransError):
    status_code = 400


class NotFoundError(RailTransError):
    status_code = 404


class ConflictError(RailTransError):
    status_code = 409


class RateLimitError(RailTransError):
    status_code = 429


class PaymentProviderError(RailTransError):
    status_code = 502


class PayloadTooLargeError(RailTransError):
    status_code = 413
