"""Error types raised by the hierarchy services.

Business denials (cannot assign, quota exhausted) are plain ``False`` return
values and never show up here.
"""


class HierarchyError(Exception):
    """Base class for hierarchy service errors"""


class NotFoundError(HierarchyError):
    """A referenced user or level does not exist in the caller's company"""

    def __init__(self, resource: str, resource_id: str = None):
        self.resource = resource
        self.resource_id = resource_id
        if resource_id:
            message = f"{resource} '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message)


class StoreUnavailableError(HierarchyError):
    """The backing store could not be reached or timed out.

    Callers must fail the request instead of treating this as a denial.
    """

    def __init__(self, operation: str, cause: Exception = None):
        self.operation = operation
        self.cause = cause
        message = f"Store unavailable during {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class HierarchyValidationError(HierarchyError):
    """A hierarchy level edit would break the reports-to rules"""
