"""Error taxonomy for the relay. Every error renders to a JSON body."""


class RelayError(Exception):
    """Base error. Subclasses set ``status_code`` and ``error``."""

    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.error, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class RequestValidationFailed(RelayError):
    status_code = 400
    error = "Bad Request"


class RateLimitExceeded(RelayError):
    status_code = 429
    error = "Too Many Requests"

    def __init__(self, user_id: str, retry_after: float):
        super().__init__(
            f"Rate limit exceeded for user {user_id}",
            {"retry_after_seconds": round(retry_after, 1)},
        )
        self.user_id = user_id
        self.retry_after = retry_after


class UpstreamError(RelayError):
    """A dependency answered with a non-2xx status."""

    error = "API Error"

    def __init__(self, service: str, status: int | None, body=None):
        super().__init__(
            f"{service} API returned status {status}",
            {"service": service, "status": status, "body": body},
        )
        self.service = service
        self.status = status
        self.body = body


class NetworkError(RelayError):
    error = "Network Error"

    def __init__(self, service: str, reason: str = ""):
        super().__init__(
            f"Failed to make request to {service} API",
            {"service": service, "reason": reason} if reason else {"service": service},
        )
        self.service = service


class ConfigurationError(RelayError):
    error = "Configuration Error"

    def __init__(self, name: str):
        super().__init__(f"{name} environment variable is not set")
        self.name = name
