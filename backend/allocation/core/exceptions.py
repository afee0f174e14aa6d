class AppError(Exception):
    """Base class for all application exceptions."""
    reason = "error"

    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AllocationRejected(AppError):
    """An attempted mutation was refused; allocator state is unchanged."""
    reason = "rejected"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)


class DuplicateAssignmentError(AllocationRejected):
    """Raised when a teacher already holds the subject."""
    reason = "duplicate_assignment"

    def __init__(self, subject_code: str, teacher_id: str):
        self.subject_code = subject_code
        self.teacher_id = teacher_id
        super().__init__(
            f"Teacher {teacher_id} is already assigned to {subject_code}",
            details={"subject_code": subject_code, "teacher_id": teacher_id},
        )


class CapacityExceededError(AllocationRejected):
    """Raised when teacher hours, the per-subject cap or room seats are insufficient."""
    reason = "capacity_exceeded"

    def __init__(self, resource: str, resource_id: str, available: int, requested: int, message: str = None):
        self.resource = resource
        self.resource_id = resource_id
        self.available = available
        self.requested = requested
        if message is None:
            message = f"{resource} {resource_id} has {available} available but {requested} requested"
        super().__init__(
            message,
            details={
                "resource": resource,
                "resource_id": resource_id,
                "available": available,
                "requested": requested,
            },
        )


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    reason = "not_found"

    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class InvalidAllocationError(AppError):
    """Raised when a request is malformed rather than infeasible."""
    reason = "invalid_request"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)


class RosterNotLoadedError(AppError):
    """Raised when allocator routes are used before a roster was supplied."""
    reason = "roster_not_loaded"

    def __init__(self):
        super().__init__("No roster has been loaded for this session", status_code=409)
