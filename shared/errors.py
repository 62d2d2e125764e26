"""
shared/errors.py
Application error taxonomy. Handlers in main.py turn these into responses;
not-found and permission failures stay plain HTTPException in the routers.
"""

from typing import Optional


class AppError(Exception):
    status_code: int = 400
    code: str = "app_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class ValidationError(AppError):
    """A write was refused before it reached storage."""
    status_code = 422
    code = "validation_error"

    def __init__(self, detail: str, field: Optional[str] = None):
        super().__init__(detail)
        self.field = field

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["field"] = self.field
        return data


class RateLimitExceeded(AppError):
    status_code = 429
    code = "rate_limited"

    def __init__(self, result, detail: str = "Too many requests. Please try again later."):
        super().__init__(detail)
        self.result = result

    @property
    def retry_after(self) -> int:
        return self.result.retry_after

    def to_dict(self) -> dict:
        return {
            "allowed": False,
            "limit": self.result.limit,
            "remaining": 0,
            "reset": self.result.reset,
            "retryAfter": self.retry_after,
            "detail": self.detail,
        }

    def headers(self) -> dict:
        return {"Retry-After": str(self.retry_after), **self.result.headers()}


class ModerationStateConflict(AppError):
    """The action is not allowed for a profile in its current moderation state."""
    status_code = 409
    code = "moderation_conflict"


class PersistenceFailure(AppError):
    status_code = 503
    code = "persistence_failure"

    def __init__(self, detail: str = "Something went wrong on our side. Please try again."):
        super().__init__(detail)
