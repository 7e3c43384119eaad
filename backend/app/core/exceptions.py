class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ValidationError(AppError):
    """Raised when a recipient does not match the shape its channel requires."""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)

class DeliveryError(AppError):
    """Raised when a code could not be handed to the email or SMS provider."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class InvalidCodeError(AppError):
    def __init__(self, message: str = "Invalid OTP code"):
        super().__init__(message, status_code=400)

class ExpiredCodeError(AppError):
    def __init__(self, message: str = "OTP has expired"):
        super().__init__(message, status_code=400)

class InvalidTokenError(AppError):
    """Raised for tampered, malformed or foreign session tokens."""
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, status_code=401)

class ExpiredTokenError(AppError):
    def __init__(self, message: str = "Token expired"):
        super().__init__(message, status_code=401)

class RateLimitError(AppError):
    def __init__(self, message: str, retry_after: int):
        super().__init__(message, status_code=429, details={"retry_after": retry_after})
        self.retry_after = retry_after
