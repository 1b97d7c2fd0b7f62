class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised when a natural key (company handle, username) is already taken."""


class RepositoryForbiddenError(RepositoryError):
    """Raised when a payload touches a field the caller may not change."""


class RepositoryUnauthorizedError(RepositoryError):
    """Raised when supplied credentials do not match a stored user."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload or filter validation fails before persistence."""
