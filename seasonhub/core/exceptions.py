from typing import Dict, List, Optional


class SeasonHubError(Exception):
    """Base exception for SeasonHub application."""
    code = "ERROR"

    def __init__(self, message: str = "An unexpected error occurred", code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)

# --- Validation Errors (422) ---
class SeasonValidationError(SeasonHubError):
    """Invalid input detected before anything is written."""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed", errors: Optional[Dict[str, List[str]]] = None):
        self.errors = errors or {}
        super().__init__(message)

class InvalidDateRangeError(SeasonValidationError):
    code = "INVALID_DATE_RANGE"

    def __init__(self, message: str = "end_date must be after start_date"):
        super().__init__(message, errors={"end_date": [message]})

# --- Not Found Errors (404) ---
class EntityNotFoundError(SeasonHubError):
    """Base for Not Found errors."""
    code = "NOT_FOUND"

class SeasonNotFoundError(EntityNotFoundError):
    code = "SEASON_NOT_FOUND"

    def __init__(self, message: str = "Season not found"):
        super().__init__(message)

class SnapshotNotFoundError(EntityNotFoundError):
    code = "SNAPSHOT_NOT_FOUND"

    def __init__(self, message: str = "Snapshot not found"):
        super().__init__(message)

class UserNotFoundError(EntityNotFoundError):
    code = "USER_NOT_FOUND"

    def __init__(self, message: str = "User not found"):
        super().__init__(message)

class RoleAssignmentNotFoundError(EntityNotFoundError):
    code = "ROLE_ASSIGNMENT_NOT_FOUND"

    def __init__(self, message: str = "Role assignment not found"):
        super().__init__(message)

# --- Conflict Errors (409) ---
class ConflictError(SeasonHubError):
    code = "CONFLICT"

class SeasonOverlapError(ConflictError):
    code = "SEASON_OVERLAP"

    def __init__(self, message: str = "Season dates overlap with an existing season of this school"):
        super().__init__(message)

class SeasonAlreadyClosedError(ConflictError):
    code = "SEASON_ALREADY_CLOSED"

    def __init__(self, message: str = "Season is already closed"):
        super().__init__(message)

class SeasonNotClosedError(ConflictError):
    code = "SEASON_NOT_CLOSED"

    def __init__(self, message: str = "Season is not closed"):
        super().__init__(message)

class SeasonImmutableError(ConflictError):
    code = "SEASON_IMMUTABLE"

    def __init__(self, message: str = "Season cannot be modified (closed or historical)"):
        super().__init__(message)

class SnapshotImmutableError(ConflictError):
    code = "SNAPSHOT_IMMUTABLE"

    def __init__(self, message: str = "Snapshot is immutable"):
        super().__init__(message)

# --- Authentication/Authorization Errors (401/403) ---
class AuthError(SeasonHubError):
    code = "UNAUTHORIZED"

class InvalidCredentialsError(AuthError):
    code = "INVALID_CREDENTIALS"

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)

class NoActiveSessionError(AuthError):
    code = "NO_ACTIVE_SESSION"

    def __init__(self, message: str = "No active session"):
        super().__init__(message)

class PermissionDeniedError(AuthError):
    code = "FORBIDDEN"

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)

# --- Integrity Errors (500) ---
class SnapshotIntegrityError(SeasonHubError):
    code = "SNAPSHOT_CHECKSUM_MISMATCH"

    def __init__(self, snapshot_id: int, message: Optional[str] = None):
        self.snapshot_id = snapshot_id
        if message is None:
            message = f"Snapshot {snapshot_id} failed checksum verification"
        super().__init__(message)

class CacheFlushRefusedError(SeasonHubError):
    code = "CACHE_FLUSH_REFUSED"

    def __init__(self, message: str = "Refusing to flush the season cache in production"):
        super().__init__(message)
