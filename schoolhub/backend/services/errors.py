# --- Service Layer Exception Classes ---

class ServiceError(Exception):
    """General exception class for the service layer."""
    pass

class BackendError(ServiceError):
    """The database or the auth provider failed while serving the request."""
    pass

class AuthorizationError(ServiceError):
    """Exception class for authorization-related errors."""
    pass

class NotFoundError(ServiceError):
    """The requested row does not exist."""
    pass

class ConflictError(ServiceError):
    """A uniqueness rule would be broken by the write."""
    pass
