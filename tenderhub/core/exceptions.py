"""Errors raised by model-level workflow operations.

Views turn these into ``{'error': message}`` responses with the carried
status code.
"""


class WorkflowError(Exception):
    """A business rule rejected the requested operation."""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self):
        return self.message


class ConflictError(WorkflowError):
    """The operation would duplicate an existing record."""
    status_code = 409
