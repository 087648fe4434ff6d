class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class SchedulingError(AppError):
    """Raised when a schedule mutation is well-formed but not allowed."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)


class StaleSnapshotError(AppError):
    """Raised when a mutation was prepared against an outdated schedule snapshot."""
    def __init__(self, expected: int, current: int):
        super().__init__(
            "The schedule changed since it was last read. Reload and try again.",
            status_code=409,
            details={"expectedVersion": expected, "currentVersion": current},
        )
