"""
Application error taxonomy.

Services raise these; the handler registered in main.py renders them with
error_response(). Messages are what the client sees, so authentication and
internal failures carry fixed generic text.
"""


class AppError(Exception):
    status_code = 500
    error_code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(AppError):
    """Bad, missing or expired credential. Never says which."""
    status_code = 401
    error_code = "authentication_failed"
    default_message = "Authentication failed"

    def __init__(self, message: str = None):
        # Detail is dropped on purpose; callers may pass it for readability only
        super().__init__(self.default_message)


class AuthorizationError(AppError):
    status_code = 403
    error_code = "forbidden"
    default_message = "Authorization failed"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"
    default_message = "Not found"


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"
    default_message = "Invalid request"


class QuotaExceededError(ValidationError):
    error_code = "quota_exceeded"
    default_message = "Plan quota exceeded"


class PaymentError(AppError):
    status_code = 402
    error_code = "payment_error"
    default_message = "Payment failed"


class InternalError(AppError):
    def __init__(self, message: str = None):
        super().__init__(self.default_message)
