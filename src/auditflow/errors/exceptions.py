"""Custom exception classes for auditflow."""


class AuditFlowError(Exception):
    """Base exception for auditflow."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(AuditFlowError):
    """Request validation failure."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(AuditFlowError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class AuthenticationError(AuditFlowError):
    """API key missing or unknown."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__("AUTHENTICATION_ERROR", message, status_code=401)


class AdmissionError(AuditFlowError):
    """Monthly plan quota exhausted; the audit is never created."""

    def __init__(self, limit: int, used: int):
        self.limit = limit
        self.used = used
        super().__init__(
            "PLAN_LIMIT_EXCEEDED",
            "Monthly audit limit reached for current plan",
            details={"limit": limit, "used": used},
            status_code=429,
        )


class ExecutionError(AuditFlowError):
    """The audit executor raised or returned an error."""

    def __init__(self, message: str):
        super().__init__("EXECUTION_ERROR", message)


class AuditTimeoutError(ExecutionError):
    """The audit executor exceeded the per-job timeout."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Audit timed out after {timeout_ms} ms")
        self.code = "EXECUTION_TIMEOUT"


class DeliveryError(AuditFlowError):
    """A single webhook delivery attempt failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.response_status = status_code
        super().__init__("DELIVERY_ERROR", message, details={"status": status_code}, status_code=502)


class PersistenceError(AuditFlowError):
    """A storage gateway call failed."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__("PERSISTENCE_ERROR", f"{operation} failed: {message}", status_code=500)
