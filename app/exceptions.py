# ABOUTME: Domain exception hierarchy
# ABOUTME: Each error carries a stable code and HTTP status so callers can tell kinds apart


class KeyVPNError(Exception):
    """Base class for all domain errors."""
    code = "ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class DatabaseConnectionError(KeyVPNError):
    """The database server cannot be reached."""
    code = "DATABASE_UNAVAILABLE"
    status_code = 503


class SchemaDependencyError(KeyVPNError):
    """A table was requested before the tables it references exist."""
    code = "SCHEMA_DEPENDENCY"


class MigrationError(KeyVPNError):
    """A migration statement failed with something other than 'already exists'."""
    code = "MIGRATION_FAILED"


class AlreadyExists(KeyVPNError):
    code = "ALREADY_EXISTS"
    status_code = 409


class NotFound(KeyVPNError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidTransition(KeyVPNError):
    """Lifecycle rule violated; the record was not modified."""
    code = "INVALID_TRANSITION"
    status_code = 409


class CapacityExceeded(KeyVPNError):
    """No free account slot left; the record was not modified."""
    code = "CAPACITY_EXCEEDED"
    status_code = 409


class Expired(KeyVPNError):
    """Usage attempted after expiry; the record was not modified."""
    code = "EXPIRED"
    status_code = 410


class InvalidExpiry(KeyVPNError):
    code = "INVALID_EXPIRY"
    status_code = 400


class AuthenticationError(KeyVPNError):
    code = "UNAUTHORIZED"
    status_code = 401


class InvalidPassword(KeyVPNError):
    """Current password did not match on a credential change."""
    code = "INVALID_PASSWORD"
    status_code = 400
