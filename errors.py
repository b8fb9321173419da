class TaskFlowError(Exception):
    """Base error; every subclass maps to one HTTP status."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {"message": self.message}


class ValidationError(TaskFlowError):
    status_code = 400
    default_message = "Invalid input"

    def __init__(self, message=None, fields=None):
        super().__init__(message)
        self.fields = fields or {}

    def to_dict(self):
        payload = super().to_dict()
        if self.fields:
            payload["errors"] = self.fields
        return payload


class NotFoundError(TaskFlowError):
    status_code = 404
    default_message = "Not found"


class AuthenticationError(TaskFlowError):
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(TaskFlowError):
    status_code = 403
    default_message = "Forbidden"


# Duplicate accounts and admin self-deletion both answer 400.
class ConflictError(TaskFlowError):
    status_code = 400
    default_message = "Conflict"


class UnexpectedError(TaskFlowError):
    status_code = 500
