# ABOUTME: Error response models and OpenAPI response examples
# ABOUTME: Pydantic models for API error responses and shared response schemas

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""
    code: str
    message: str
    details: dict | None = None


def _error_example(code: str, message: str) -> dict:
    """Builds a single OpenAPI response entry with an error example."""
    return {"model": ErrorResponse, "content": {"application/json": {"example": {"code": code, "message": message}}}}


# Reusable OpenAPI response fragments for route decorators
AUTH_REQUIRED = {
    401: {
        "description": "Session token missing or invalid",
        **_error_example("UNAUTHORIZED", "Session token is missing or invalid"),
    }
}

NOT_FOUND = {
    404: {
        "description": "Requested resource not found",
        **_error_example("NOT_FOUND", "Key not found: FBX-ABCD1234"),
    }
}

CONFLICT = {
    409: {
        "description": "Lifecycle rule or capacity violated",
        **_error_example("CAPACITY_EXCEEDED", "Key FBX-ABCD1234 (1key) already has 1 of 1 accounts"),
    }
}

EXPIRED = {
    410: {
        "description": "Account is past its expiry",
        **_error_example("EXPIRED", "Account vpnuser123456 expired at 2025-01-01T00:00:00"),
    }
}

BAD_REQUEST = {
    400: {
        "description": "Request rejected by a business rule",
        **_error_example("INVALID_PASSWORD", "Current password is incorrect"),
    }
}
