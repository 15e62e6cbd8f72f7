"""Error types raised by the services and rendered by the API layer.

Every error carries the HTTP status it maps to, so ``main`` needs a single
handler for the whole family.
"""


class TodoAppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(TodoAppError):
    status_code = 404


class Conflict(TodoAppError):
    status_code = 409


class Unauthorized(TodoAppError):
    status_code = 401


class Forbidden(TodoAppError):
    status_code = 403


class ValidationError(TodoAppError, ValueError):
    # ValueError so pydantic validators report it as a field error
    status_code = 400


class TaskNotFound(NotFound):
    def __init__(self, task_id: int):
        super().__init__(f"Todo not found with id: {task_id}")
        self.task_id = task_id


class UserNotFound(NotFound):
    def __init__(self, username: str):
        super().__init__(f"User not found: {username}")
        self.username = username


class DuplicateUsername(Conflict):
    def __init__(self, username: str):
        super().__init__(f"Username already exists: {username}")


class DuplicateEmail(Conflict):
    def __init__(self, email: str):
        super().__init__(f"Email already exists: {email}")


class AuthenticationFailed(Unauthorized):
    def __init__(self, message: str = "Invalid username or password"):
        super().__init__(message)


class TokenInvalid(Unauthorized):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message)


class TokenExpired(Unauthorized):
    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class AccessDenied(Forbidden):
    def __init__(self, message: str = "You don't have permission to access this todo"):
        super().__init__(message)


class InvalidCredential(ValidationError):
    def __init__(self, message: str = "Current password is incorrect"):
        super().__init__(message)


class DateFormatError(ValidationError):
    def __init__(self, value: str, patterns):
        super().__init__(
            f"Unable to parse date: {value}. Expected formats: {', '.join(patterns)}"
        )
        self.value = value
