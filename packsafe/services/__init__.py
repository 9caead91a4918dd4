"""Service layer — business logic between the routers and the DAOs.

Each error carries the HTTP status the API answers with; the routers never
translate them by hand.
"""


class ServiceError(Exception):
    status_code = 500


class NotFoundError(ServiceError):
    """Missing, or owned by another user."""

    status_code = 404


class ConflictError(ServiceError):
    """Duplicate e-mail or project name."""

    status_code = 409


class ValidationError(ServiceError):
    """Malformed manifest, empty name, short password."""

    status_code = 422


class AuthenticationError(ServiceError):
    """Bad credentials, token or API key."""

    status_code = 401


class PermissionDeniedError(ServiceError):
    """Authenticated, but not an admin."""

    status_code = 403
